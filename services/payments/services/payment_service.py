"""Payment confirmation and ticket issuance workflow"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shared.database.models import (
    Booking, BookingStatus, Event, LoyaltyTransaction, Payment, TicketType, User,
)
from shared.exceptions import BookingNotFoundError, PaymentMismatchError, TicketAssetError
from services.notifications.services.dispatcher import NotificationDispatcher, NotificationReport
from services.payments.models.payment import PaymentEntity, RazorpayEvent, WebhookEnvelope, to_minor_units
from services.payments.services.razorpay_service import PROVIDER_NAME
from services.tickets.services.ticket_assets import TicketAssetService, TicketAssets

logger = logging.getLogger(__name__)

# One loyalty point per 10 major units, i.e. per 1000 minor units
MINOR_UNITS_PER_LOYALTY_POINT = 1000

CAPTURED = "captured"


class ConfirmationStatus(str, Enum):
    PROCESSED = "ok"
    IGNORED = "ignored"
    DUPLICATE = "duplicate"
    ASSETS_FAILED = "assets_failed"
    NEEDS_RECONCILIATION = "needs_reconciliation"


@dataclass
class ConfirmationResult:
    status: ConfirmationStatus
    booking_code: Optional[str] = None
    provider_payment_id: Optional[str] = None
    assets: Optional[TicketAssets] = None
    notifications: Optional[NotificationReport] = None


class PaymentConfirmationService:
    """
    Turns a captured payment into a confirmed booking with issued tickets

    Stages run strictly in order: locate booking, record payment and confirm the
    booking in one transaction, generate assets, notify. A stage only runs when
    every earlier stage succeeded.
    """

    def __init__(
        self,
        asset_service: TicketAssetService,
        dispatcher: NotificationDispatcher,
        provider: str = PROVIDER_NAME
    ):
        self.asset_service = asset_service
        self.dispatcher = dispatcher
        self.provider = provider

    async def handle_webhook_event(self, db: AsyncSession, envelope: WebhookEnvelope) -> ConfirmationResult:
        """Route a verified webhook envelope by event type"""
        if envelope.event not in (RazorpayEvent.PAYMENT_CAPTURED.value, RazorpayEvent.PAYMENT_FAILED.value):
            logger.info(f"Webhook event {envelope.event} ignored")
            return ConfirmationResult(ConfirmationStatus.IGNORED)

        entity = envelope.payment_entity()
        if entity is None:
            logger.warning(f"Webhook event {envelope.event} without payment entity ignored")
            return ConfirmationResult(ConfirmationStatus.IGNORED)

        if envelope.event == RazorpayEvent.PAYMENT_CAPTURED.value:
            return await self.confirm_capture(db, entity)
        return await self.handle_failure(db, entity)

    async def find_booking(
        self,
        db: AsyncSession,
        booking_code: str,
        provider_payment_id: Optional[str] = None
    ) -> Booking:
        """
        Load a booking by code with its event (and organizer), ticket type and user

        Raises:
            BookingNotFoundError: If no booking has this code
        """
        stmt = (
            select(Booking)
            .options(
                selectinload(Booking.event).selectinload(Event.organizer),
                selectinload(Booking.ticket_type),
                selectinload(Booking.user),
            )
            .where(Booking.booking_code == booking_code)
        )
        result = await db.execute(stmt)
        booking = result.scalar_one_or_none()
        if booking is None:
            raise BookingNotFoundError(booking_code, provider_payment_id)
        return booking

    async def find_payment(self, db: AsyncSession, provider_payment_id: str) -> Optional[Payment]:
        stmt = select(Payment).where(
            Payment.provider == self.provider,
            Payment.provider_payment_id == provider_payment_id
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    def record_payment(self, db: AsyncSession, booking: Booking, entity: PaymentEntity) -> Payment:
        payment = Payment(
            booking_id=booking.id,
            amount=entity.amount_major,
            provider=self.provider,
            provider_payment_id=entity.id,
            status=entity.status,
        )
        db.add(payment)
        return payment

    async def confirm_booking(self, db: AsyncSession, booking: Booking) -> bool:
        """Compare-and-set PENDING -> CONFIRMED; False when the booking was not pending"""
        result = await db.execute(
            update(Booking)
            .where(Booking.id == booking.id, Booking.status == BookingStatus.PENDING.value)
            .values(status=BookingStatus.CONFIRMED.value)
        )
        return result.rowcount == 1

    async def award_loyalty_points(self, db: AsyncSession, booking: Booking, amount_minor: int) -> int:
        if booking.user_id is None:
            return 0
        points = amount_minor // MINOR_UNITS_PER_LOYALTY_POINT
        if points <= 0:
            return 0

        db.add(LoyaltyTransaction(
            user_id=booking.user_id,
            booking_id=booking.id,
            points=points,
            reason="event_booking",
        ))
        await db.execute(
            update(User)
            .where(User.id == booking.user_id)
            .values(loyalty_points=User.loyalty_points + points)
        )
        return points

    def check_checkout_payment(self, booking: Booking, entity: PaymentEntity) -> None:
        """
        Match a payment fetched for a checkout callback against the claimed booking

        The checkout signature only covers order and payment ids, so the booking,
        the capture state and the amount are taken from the provider's record.

        Raises:
            PaymentMismatchError: reason is booking_mismatch, payment_not_captured or amount_mismatch
        """
        code = booking.booking_code
        if entity.booking_code != code:
            raise PaymentMismatchError(
                "booking_mismatch",
                f"Payment belongs to booking {entity.booking_code or '<none>'}",
                code, entity.id
            )
        if entity.status != CAPTURED:
            raise PaymentMismatchError(
                "payment_not_captured", f"Payment is {entity.status}, not captured", code, entity.id
            )
        expected = to_minor_units(booking.ticket_type.price * booking.quantity)
        if entity.amount != expected:
            raise PaymentMismatchError(
                "amount_mismatch", f"Payment amount {entity.amount} does not match {expected}", code, entity.id
            )

    async def confirm_capture(self, db: AsyncSession, entity: PaymentEntity) -> ConfirmationResult:
        """
        Run the capture workflow for one payment

        Args:
            db: Session used for every stage
            entity: Captured payment (webhook entity or payment fetched from the API)

        Raises:
            BookingNotFoundError: The booking code does not resolve; nothing was written
            SQLAlchemyError: Persisting the payment or the confirmation failed; rolled back
        """
        code = entity.booking_code
        if not code:
            logger.warning(f"Payment {entity.id} has no bookingId in notes, acknowledging without processing")
            return ConfirmationResult(ConfirmationStatus.IGNORED, provider_payment_id=entity.id)

        if await self.find_payment(db, entity.id) is not None:
            logger.info(f"Payment {entity.id} for booking {code} already processed")
            return ConfirmationResult(ConfirmationStatus.DUPLICATE, code, entity.id)

        booking = await self.find_booking(db, code, entity.id)

        try:
            self.record_payment(db, booking, entity)
            await db.flush()
            confirmed = await self.confirm_booking(db, booking)
            points = 0
            if confirmed:
                points = await self.award_loyalty_points(db, booking, entity.amount)
            await db.commit()
        except IntegrityError:
            # A concurrent delivery of the same payment won the insert
            await db.rollback()
            logger.info(f"Payment {entity.id} for booking {code} recorded concurrently, skipping")
            return ConfirmationResult(ConfirmationStatus.DUPLICATE, code, entity.id)
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Could not record payment {entity.id} for booking {code}: {e}", exc_info=True)
            raise

        if not confirmed:
            logger.error(
                f"Payment {entity.id} captured for booking {code} in status {booking.status}; "
                f"recorded without issuing tickets, manual reconciliation required"
            )
            return ConfirmationResult(ConfirmationStatus.NEEDS_RECONCILIATION, code, entity.id)

        logger.info(
            f"Booking {code} confirmed by payment {entity.id} "
            f"({entity.amount_major} {entity.currency or ''}, {points} loyalty points)"
        )

        try:
            assets = await self.asset_service.issue(db, booking, entity.id)
        except TicketAssetError as e:
            logger.error(f"Ticket assets not generated: {e}. Regenerate them for booking {code}", exc_info=True)
            return ConfirmationResult(ConfirmationStatus.ASSETS_FAILED, code, entity.id)

        report = await self.dispatcher.dispatch(booking, assets)
        return ConfirmationResult(ConfirmationStatus.PROCESSED, code, entity.id, assets, report)

    async def handle_failure(self, db: AsyncSession, entity: PaymentEntity) -> ConfirmationResult:
        """Cancel the pending booking of a failed payment and release its tickets"""
        code = entity.booking_code
        if not code:
            logger.warning(f"Failed payment {entity.id} has no bookingId in notes")
            return ConfirmationResult(ConfirmationStatus.IGNORED, provider_payment_id=entity.id)

        try:
            booking = await self.find_booking(db, code, entity.id)
        except BookingNotFoundError:
            logger.warning(f"Failed payment {entity.id} references unknown booking {code}")
            return ConfirmationResult(ConfirmationStatus.IGNORED, code, entity.id)

        current_status = booking.status
        quantity = booking.quantity
        try:
            result = await db.execute(
                update(Booking)
                .where(Booking.id == booking.id, Booking.status == BookingStatus.PENDING.value)
                .values(status=BookingStatus.CANCELLED.value)
            )
            if result.rowcount != 1:
                await db.rollback()
                logger.info(f"Failed payment {entity.id}: booking {code} is {current_status}, left unchanged")
                return ConfirmationResult(ConfirmationStatus.IGNORED, code, entity.id)

            await db.execute(
                update(TicketType)
                .where(TicketType.id == booking.ticket_type_id)
                .values(total_sold=TicketType.total_sold - quantity)
            )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Could not cancel booking {code} after failed payment {entity.id}: {e}", exc_info=True)
            raise

        logger.info(f"Booking {code} cancelled after failed payment {entity.id}; {quantity} tickets released")
        return ConfirmationResult(ConfirmationStatus.PROCESSED, code, entity.id)
