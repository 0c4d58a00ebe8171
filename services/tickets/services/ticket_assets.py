"""Ticket asset generation: QR code, PDF document and its durable upload"""
from dataclasses import dataclass
from typing import Optional
import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.database.models import Booking
from shared.exceptions import TicketAssetError, StorageError
from shared.storage.object_storage import ObjectStorage
from shared.utils.qr_generator import generate_qr_png, png_to_data_url
from services.tickets.services.pdf_generator import TicketDocument, render_ticket_pdf

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


@dataclass
class TicketAssets:
    verification_url: str
    qr_data_url: str
    pdf_bytes: bytes
    pdf_url: str


def build_verification_url(base_url: str, booking_code: str) -> str:
    return f"{base_url.rstrip('/')}/ticket/verify/{booking_code}"


def ticket_filename(booking_code: str) -> str:
    return f"ticket-{booking_code}.pdf"


class TicketAssetService:
    """Generates and persists the QR code and PDF bound to a confirmed booking"""

    def __init__(
        self,
        storage: ObjectStorage,
        base_url: str,
        pdf_timeout: float = 15.0,
        compress_pdf: bool = True
    ):
        self.storage = storage
        self.base_url = base_url
        self.pdf_timeout = pdf_timeout
        self.compress_pdf = compress_pdf

    def verification_url(self, booking_code: str) -> str:
        return build_verification_url(self.base_url, booking_code)

    def build_document(self, booking: Booking, verification_url: str) -> TicketDocument:
        """Collect the facts printed on the ticket from a booking with its relations loaded"""
        event = booking.event
        user = booking.user
        organizer = event.organizer
        return TicketDocument(
            booking_code=booking.booking_code,
            quantity=booking.quantity,
            status=booking.status,
            event_title=event.title,
            event_start=event.start_at,
            event_location=event.location,
            verification_url=verification_url,
            attendee_name=user.name if user else None,
            attendee_email=user.email if user else None,
            organizer_name=organizer.name if organizer else None,
            organizer_email=organizer.email if organizer else None,
        )

    async def render_pdf(self, document: TicketDocument, qr_png: bytes) -> bytes:
        """
        Render the PDF in a worker thread, bounded by pdf_timeout

        Returns only once rendering has finished and the buffer is complete.
        """
        return await asyncio.wait_for(
            asyncio.to_thread(render_ticket_pdf, document, qr_png, self.compress_pdf),
            timeout=self.pdf_timeout,
        )

    async def generate(self, booking: Booking, provider_payment_id: Optional[str] = None) -> TicketAssets:
        """
        Generate the QR code and PDF for a booking and upload the PDF

        Raises:
            TicketAssetError: If any step fails
        """
        code = booking.booking_code
        verification_url = self.verification_url(code)

        try:
            qr_png = generate_qr_png(verification_url)
            document = self.build_document(booking, verification_url)
            pdf_bytes = await self.render_pdf(document, qr_png)
        except asyncio.TimeoutError as e:
            raise TicketAssetError(
                f"PDF rendering exceeded {self.pdf_timeout}s", code, provider_payment_id
            ) from e
        except Exception as e:
            raise TicketAssetError(
                f"Ticket rendering failed: {type(e).__name__}: {e}", code, provider_payment_id
            ) from e

        try:
            pdf_url = await self.storage.put(
                f"tickets/{ticket_filename(code)}", pdf_bytes, PDF_CONTENT_TYPE
            )
        except StorageError as e:
            raise TicketAssetError(f"Ticket upload failed: {e.message}", code, provider_payment_id) from e

        logger.info(f"Ticket assets generated for booking {code} ({len(pdf_bytes)} bytes PDF)")
        return TicketAssets(
            verification_url=verification_url,
            qr_data_url=png_to_data_url(qr_png),
            pdf_bytes=pdf_bytes,
            pdf_url=pdf_url,
        )

    async def issue(
        self,
        db: AsyncSession,
        booking: Booking,
        provider_payment_id: Optional[str] = None
    ) -> TicketAssets:
        """Generate assets and record their locations on the booking"""
        code = booking.booking_code
        assets = await self.generate(booking, provider_payment_id)

        booking.qr_code_url = assets.qr_data_url
        booking.pdf_url = assets.pdf_url
        try:
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            raise TicketAssetError(
                f"Could not save ticket asset URLs: {e}", code, provider_payment_id
            ) from e
        return assets
