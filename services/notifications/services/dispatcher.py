"""Ticket notification fan-out: email with the PDF, optional SMS and WhatsApp"""
from dataclasses import dataclass
from typing import Optional
import logging

import httpx

from shared.database.models import Booking
from shared.utils.retry import retry_with_backoff
from services.notifications.services.email_service import EmailService, EmailAttachment
from services.notifications.services.sms_service import TwilioMessagingService
from services.tickets.services.ticket_assets import TicketAssets, ticket_filename

logger = logging.getLogger(__name__)


@dataclass
class NotificationReport:
    email_sent: bool = False
    sms_sent: bool = False
    whatsapp_sent: bool = False


class NotificationDispatcher:
    """
    Delivers issued tickets to the attendee

    Every channel is best effort: failures are logged with the booking code and
    never raised, so a committed payment and confirmation are never undone by a
    delivery problem.
    """

    def __init__(
        self,
        email_service: EmailService,
        messaging_service: Optional[TwilioMessagingService] = None,
        sms_enabled: bool = False,
        whatsapp_enabled: bool = False,
        max_retries: int = 2,
        retry_delay: float = 0.5
    ):
        self.email_service = email_service
        self.messaging_service = messaging_service
        self.sms_enabled = sms_enabled
        self.whatsapp_enabled = whatsapp_enabled
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    async def dispatch(self, booking: Booking, assets: TicketAssets) -> NotificationReport:
        report = NotificationReport()
        user = booking.user

        if user is None or not user.email:
            logger.info(f"Booking {booking.booking_code} has no contact email, skipping ticket email")
        else:
            report.email_sent = await self._send_email(booking, assets)

        if user is not None and user.phone and self.messaging_service is not None:
            text = self.short_message(booking, assets)
            if self.sms_enabled:
                report.sms_sent = await self._send_message("sms", booking, user.phone, text)
            if self.whatsapp_enabled:
                report.whatsapp_sent = await self._send_message("whatsapp", booking, user.phone, text)

        return report

    @staticmethod
    def email_subject(booking: Booking) -> str:
        return f"Your EventHive ticket for {booking.event.title}"

    @staticmethod
    def email_body(booking: Booking, assets: TicketAssets) -> str:
        name = booking.user.name if booking.user and booking.user.name else "there"
        return (
            f"Hi {name},\n\n"
            f"Thank you for your booking! Your ticket for {booking.event.title} is attached.\n"
            f"Booking code: {booking.booking_code}\n"
            f"Quantity: {booking.quantity}\n\n"
            f"You can also view and verify it online at: {assets.verification_url}\n"
        )

    @staticmethod
    def short_message(booking: Booking, assets: TicketAssets) -> str:
        return (
            f"EventHive: booking {booking.booking_code} for {booking.event.title} is confirmed. "
            f"Ticket: {assets.verification_url}"
        )

    async def _send_email(self, booking: Booking, assets: TicketAssets) -> bool:
        attachment = EmailAttachment(
            filename=ticket_filename(booking.booking_code),
            content=assets.pdf_bytes,
        )
        try:
            sent = await retry_with_backoff(
                lambda: self.email_service.send_email(
                    to_email=booking.user.email,
                    subject=self.email_subject(booking),
                    text_content=self.email_body(booking, assets),
                    attachments=[attachment],
                ),
                max_retries=self.max_retries,
                initial_delay=self.retry_delay,
                # Resend raises requests exceptions, which are OSErrors
                exceptions=(httpx.TransportError, OSError),
            )
        except Exception as e:
            logger.error(
                f"Failed to send ticket email for booking {booking.booking_code}: {type(e).__name__}: {e}",
                exc_info=True
            )
            return False

        if not sent:
            logger.error(f"Ticket email for booking {booking.booking_code} was not accepted")
        return bool(sent)

    async def _send_message(self, channel: str, booking: Booking, phone: str, text: str) -> bool:
        send = self.messaging_service.send_sms if channel == "sms" else self.messaging_service.send_whatsapp
        try:
            await retry_with_backoff(
                lambda: send(phone, text),
                max_retries=self.max_retries,
                initial_delay=self.retry_delay,
                exceptions=(httpx.TransportError, httpx.HTTPStatusError),
            )
            return True
        except Exception as e:
            logger.error(f"Failed to send {channel} for booking {booking.booking_code}: {type(e).__name__}: {e}")
            return False
