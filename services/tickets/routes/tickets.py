"""Ticket routes: public verification and admin asset regeneration"""
import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_confirmation_service, get_dispatcher
from shared.auth.dependencies import get_current_admin
from shared.database.models import BookingStatus
from shared.database.session import get_db
from shared.exceptions import BookingNotFoundError, TicketAssetError
from shared.utils.rate_limiter import limiter, RATE_LIMITS
from services.notifications.services.dispatcher import NotificationDispatcher
from services.payments.services.payment_service import PaymentConfirmationService
from services.tickets.models.ticket import RegenerateAssetsResponse, TicketVerificationResponse
from services.tickets.services.ticket_verification import TicketVerificationService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/verify/{booking_code}", response_model=TicketVerificationResponse)
@limiter.limit(RATE_LIMITS["public"])
async def verify_ticket(
    request: Request,
    booking_code: str,
    db: AsyncSession = Depends(get_db)
):
    """
    Public check of the ticket behind a QR code

    `valid` is true only for upcoming and ongoing events of confirmed bookings.
    """
    service = TicketVerificationService()
    result = await service.verify(db, booking_code)

    if result is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"valid": False, "error": "Ticket not found"}
        )
    return result


@router.post("/{booking_code}/regenerate-assets", response_model=RegenerateAssetsResponse)
@limiter.limit(RATE_LIMITS["admin"])
async def regenerate_ticket_assets(
    request: Request,
    booking_code: str,
    notify: bool = Query(False, description="Send the regenerated ticket to the attendee"),
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(get_current_admin),
    service: PaymentConfirmationService = Depends(get_confirmation_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher)
):
    """
    Rebuild the QR code and PDF of a confirmed booking

    Repair path for confirmations whose asset generation failed.
    Requires an ADMIN token.
    """
    try:
        booking = await service.find_booking(db, booking_code)
    except BookingNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="booking_not_found")

    if booking.status != BookingStatus.CONFIRMED.value:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Booking is {booking.status}, only confirmed bookings have tickets"
        )

    try:
        assets = await service.asset_service.issue(db, booking)
    except TicketAssetError as e:
        logger.error(f"Asset regeneration failed: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="asset_generation_failed")

    logger.info(f"Ticket assets regenerated for booking {booking_code} by {current_user.get('user_id')}")

    email_sent = False
    if notify:
        report = await dispatcher.dispatch(booking, assets)
        email_sent = report.email_sent

    return RegenerateAssetsResponse(
        booking_code=booking_code,
        pdf_url=assets.pdf_url,
        verification_url=assets.verification_url,
        email_sent=email_sent,
    )
