"""Domain exceptions shared by the payment, ticket and notification services"""
from typing import Optional


class EventHiveError(Exception):
    """Base error; carries the booking code and provider payment id for reconciliation logs"""

    def __init__(
        self,
        message: str,
        booking_code: Optional[str] = None,
        provider_payment_id: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.booking_code = booking_code
        self.provider_payment_id = provider_payment_id

    def __str__(self) -> str:
        context = []
        if self.booking_code:
            context.append(f"booking={self.booking_code}")
        if self.provider_payment_id:
            context.append(f"payment={self.provider_payment_id}")
        if context:
            return f"{self.message} ({', '.join(context)})"
        return self.message


class InvalidSignatureError(EventHiveError):
    """Raised when a provider signature does not match"""


class BookingNotFoundError(EventHiveError):
    """Raised when a booking code does not resolve to a booking"""

    def __init__(self, booking_code: str, provider_payment_id: Optional[str] = None):
        super().__init__("Booking not found", booking_code, provider_payment_id)


class TicketAssetError(EventHiveError):
    """Raised when the QR code, the PDF or its upload fails"""


class StorageError(EventHiveError):
    """Raised when object storage rejects an upload"""


class PaymentGatewayError(EventHiveError):
    """Raised when the payment provider API fails or returns an unexpected payload"""


class NotificationError(EventHiveError):
    """Raised by a notification channel when delivery fails"""


class PaymentMismatchError(EventHiveError):
    """Raised when a fetched payment does not belong to, or does not pay for, the claimed booking"""

    def __init__(
        self,
        reason: str,
        message: str,
        booking_code: Optional[str] = None,
        provider_payment_id: Optional[str] = None
    ):
        super().__init__(message, booking_code, provider_payment_id)
        self.reason = reason
