"""Request dependencies for collaborators built at startup"""
from fastapi import Request

from services.notifications.services.dispatcher import NotificationDispatcher
from services.payments.services.payment_service import PaymentConfirmationService
from services.payments.services.razorpay_service import RazorpayService


def get_confirmation_service(request: Request) -> PaymentConfirmationService:
    return request.app.state.confirmation_service


def get_razorpay_service(request: Request) -> RazorpayService:
    return request.app.state.razorpay_service


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher
