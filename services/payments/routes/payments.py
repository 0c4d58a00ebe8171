"""Payment routes: Razorpay webhook and checkout verification"""
import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.dependencies import get_confirmation_service, get_razorpay_service
from shared.database.session import get_db
from shared.exceptions import (
    BookingNotFoundError, InvalidSignatureError, PaymentGatewayError, PaymentMismatchError,
)
from shared.utils.rate_limiter import limiter, RATE_LIMITS
from shared.utils.signatures import require_webhook_signature, verify_checkout_signature
from services.payments.models.payment import (
    CheckoutVerifyRequest,
    CheckoutVerifyResponse,
    PaymentEntity,
    WebhookEnvelope,
)
from services.payments.services.payment_service import ConfirmationStatus, PaymentConfirmationService
from services.payments.services.razorpay_service import RazorpayService

logger = logging.getLogger(__name__)

router = APIRouter()

SIGNATURE_HEADER = "X-Razorpay-Signature"


@router.post("/webhook")
@limiter.limit(RATE_LIMITS["webhook"])  # Razorpay retries aggressively on non-2xx
async def razorpay_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    service: PaymentConfirmationService = Depends(get_confirmation_service)
):
    """
    Receive Razorpay payment notifications

    The signature is an HMAC-SHA256 of the raw body, so the body is read
    byte-for-byte before any parsing.

    Responses:
        200: processed, ignored, duplicate, assets_failed or needs_reconciliation
        400: invalid signature (nothing persisted)
        404: booking code does not resolve (nothing persisted)
        500: persisting the payment failed (rolled back, provider will retry)
    """
    raw_body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)

    try:
        require_webhook_signature(raw_body, settings.RAZORPAY_WEBHOOK_SECRET, signature)
    except InvalidSignatureError as e:
        logger.warning(f"Webhook rejected: {e}")
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "invalid signature"})

    try:
        envelope = WebhookEnvelope.model_validate(json.loads(raw_body))
        envelope.payment_entity()  # entity shape is checked here, not mid-workflow
    except (ValueError, ValidationError) as e:
        # json.JSONDecodeError is a ValueError; acknowledge so the provider stops retrying
        logger.warning(f"Malformed webhook payload ignored: {e}")
        return {"status": ConfirmationStatus.IGNORED.value}

    try:
        result = await service.handle_webhook_event(db, envelope)
    except BookingNotFoundError as e:
        logger.warning(f"Webhook for unknown booking: {e}")
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": "booking_not_found"})
    except SQLAlchemyError as e:
        logger.error(f"Webhook processing failed: {e}", exc_info=True)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": "internal_error"})

    logger.info(
        f"Webhook {envelope.event} handled: {result.status.value} "
        f"(booking={result.booking_code}, payment={result.provider_payment_id})"
    )
    return {"status": result.status.value}


@router.post("/verify", response_model=CheckoutVerifyResponse)
@limiter.limit(RATE_LIMITS["payment_verify"])
async def verify_checkout(
    request: Request,
    verify_request: CheckoutVerifyRequest,
    db: AsyncSession = Depends(get_db),
    service: PaymentConfirmationService = Depends(get_confirmation_service),
    razorpay: RazorpayService = Depends(get_razorpay_service)
):
    """
    Confirm a booking from the browser checkout callback

    Runs the same confirmation workflow as the webhook, using the payment
    fetched from Razorpay. Whichever of the two arrives second is a duplicate.
    The fetched payment must name this booking in its notes, be captured and
    cover the booking total; otherwise 400 and nothing is written.
    """
    order_id = verify_request.razorpay_order_id
    payment_id = verify_request.razorpay_payment_id
    booking_code = verify_request.bookingId

    if not all([order_id, payment_id, verify_request.razorpay_signature, booking_code]):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="missing_required_fields")

    if not verify_checkout_signature(order_id, payment_id, settings.RAZORPAY_KEY_SECRET, verify_request.razorpay_signature):
        logger.warning(f"Checkout verification rejected for booking {booking_code}: invalid signature")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_signature")

    try:
        booking = await service.find_booking(db, booking_code, payment_id)
        payload = await razorpay.fetch_payment(payment_id)
        entity = PaymentEntity.model_validate(payload)
        service.check_checkout_payment(booking, entity)
        result = await service.confirm_capture(db, entity)
    except BookingNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="booking_not_found")
    except PaymentMismatchError as e:
        logger.warning(f"Checkout verification rejected: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.reason)
    except (PaymentGatewayError, ValidationError) as e:
        logger.error(f"Checkout verification for booking {booking_code} failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="payment_gateway_error")
    except SQLAlchemyError:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="internal_error")

    return CheckoutVerifyResponse(
        success=True,
        status=result.status.value,
        bookingId=booking_code,
        ticketUrl=service.asset_service.verification_url(booking_code),
    )
