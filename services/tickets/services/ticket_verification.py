"""Public ticket verification"""
from datetime import datetime, timezone
from typing import Optional
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shared.database.models import Booking, BookingStatus, EventStatus
from services.tickets.models.ticket import (
    EventInfo,
    HolderInfo,
    STATUS_MESSAGES,
    TicketInfo,
    TicketStatus,
    TicketTypeInfo,
    TicketVerificationResponse,
)

logger = logging.getLogger(__name__)

VALID_STATUSES = (TicketStatus.UPCOMING, TicketStatus.ONGOING)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; they are stored as UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def classify_ticket(booking: Booking, now: Optional[datetime] = None) -> TicketStatus:
    """Booking state wins over event state, which wins over the event's timing"""
    now = now or datetime.now(timezone.utc)
    event = booking.event

    if booking.status == BookingStatus.CANCELLED.value:
        return TicketStatus.CANCELLED
    if booking.status == BookingStatus.REFUNDED.value:
        return TicketStatus.REFUNDED
    if booking.status == BookingStatus.PENDING.value:
        return TicketStatus.PENDING
    if event.status == EventStatus.CANCELLED.value:
        return TicketStatus.EVENT_CANCELLED

    end_at = _as_utc(event.end_at)
    if end_at is not None and now > end_at:
        return TicketStatus.EXPIRED
    if now > _as_utc(event.start_at):
        return TicketStatus.ONGOING
    return TicketStatus.UPCOMING


class TicketVerificationService:
    """Looks up a booking by code and reports whether its ticket admits entry"""

    async def get_booking(self, db: AsyncSession, booking_code: str) -> Optional[Booking]:
        stmt = (
            select(Booking)
            .options(
                selectinload(Booking.event),
                selectinload(Booking.user),
                selectinload(Booking.ticket_type),
            )
            .where(Booking.booking_code == booking_code)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def verify(
        self,
        db: AsyncSession,
        booking_code: str,
        now: Optional[datetime] = None
    ) -> Optional[TicketVerificationResponse]:
        booking = await self.get_booking(db, booking_code)
        if booking is None:
            logger.info(f"Verification requested for unknown booking {booking_code}")
            return None

        ticket_status = classify_ticket(booking, now)
        event = booking.event
        user = booking.user

        return TicketVerificationResponse(
            valid=ticket_status in VALID_STATUSES,
            ticket=TicketInfo(
                booking_code=booking.booking_code,
                status=ticket_status,
                status_message=STATUS_MESSAGES[ticket_status],
                quantity=booking.quantity,
                created_at=booking.created_at,
                event=EventInfo(
                    title=event.title,
                    start_at=event.start_at,
                    end_at=event.end_at,
                    location=event.location,
                    status=event.status,
                ),
                holder=HolderInfo(
                    name=user.name if user else None,
                    email=user.email if user else None,
                ),
                ticket_type=TicketTypeInfo(
                    name=booking.ticket_type.name,
                    price=booking.ticket_type.price,
                ),
            ),
        )
