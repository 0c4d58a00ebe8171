"""Pydantic models for ticket verification and asset regeneration"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class TicketStatus(str, Enum):
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    PENDING = "pending"
    EVENT_CANCELLED = "event_cancelled"
    EXPIRED = "expired"
    ONGOING = "ongoing"
    UPCOMING = "upcoming"


STATUS_MESSAGES = {
    TicketStatus.CANCELLED: "Ticket has been cancelled",
    TicketStatus.REFUNDED: "Ticket has been refunded",
    TicketStatus.PENDING: "Payment for this ticket has not been confirmed",
    TicketStatus.EVENT_CANCELLED: "Event has been cancelled",
    TicketStatus.EXPIRED: "Event has ended",
    TicketStatus.ONGOING: "Event is currently ongoing",
    TicketStatus.UPCOMING: "Ticket is valid for upcoming event",
}


class EventInfo(BaseModel):
    title: str
    start_at: datetime
    end_at: Optional[datetime] = None
    location: str
    status: str


class HolderInfo(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None


class TicketTypeInfo(BaseModel):
    name: str
    price: Decimal


class TicketInfo(BaseModel):
    booking_code: str
    status: TicketStatus
    status_message: str
    quantity: int
    created_at: Optional[datetime] = None
    event: EventInfo
    holder: HolderInfo
    ticket_type: TicketTypeInfo


class TicketVerificationResponse(BaseModel):
    valid: bool
    ticket: TicketInfo


class RegenerateAssetsResponse(BaseModel):
    booking_code: str
    pdf_url: str
    verification_url: str
    email_sent: bool = False
