"""Pydantic models for Razorpay notifications and checkout callbacks"""
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class RazorpayEvent(str, Enum):
    PAYMENT_CAPTURED = "payment.captured"
    PAYMENT_FAILED = "payment.failed"


class PaymentEntity(BaseModel):
    """payload.payment.entity of a Razorpay webhook, or a payment fetched from the API"""
    model_config = ConfigDict(extra="ignore")

    id: str
    amount: int  # Minor units (paise)
    status: str
    order_id: Optional[str] = None
    currency: Optional[str] = None
    notes: Optional[Any] = None  # Razorpay sends [] when there are no notes

    @property
    def booking_code(self) -> Optional[str]:
        if isinstance(self.notes, dict):
            value = self.notes.get("bookingId")
            if value:
                return str(value)
        return None

    @property
    def amount_major(self) -> Decimal:
        return to_major_units(self.amount)


class WebhookEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    event: str
    payload: Dict[str, Any] = Field(default_factory=dict)

    def payment_entity(self) -> Optional[PaymentEntity]:
        entity = (self.payload.get("payment") or {}).get("entity")
        if not isinstance(entity, dict):
            return None
        return PaymentEntity.model_validate(entity)


class CheckoutVerifyRequest(BaseModel):
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None
    bookingId: Optional[str] = None


class CheckoutVerifyResponse(BaseModel):
    success: bool
    status: str
    bookingId: str
    ticketUrl: str


def to_major_units(amount_minor: int) -> Decimal:
    """10000 paise -> Decimal('100.00')"""
    return (Decimal(amount_minor) / Decimal(100)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def to_minor_units(amount_major: Decimal) -> int:
    """Decimal('100.00') -> 10000 paise"""
    return int((Decimal(amount_major) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
