"""EventHive payments API - application entry point"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
import logging
from contextlib import asynccontextmanager
from typing import Optional

from app.core.config import settings, Settings
from shared.database import connection
from shared.database.connection import init_db, close_db
from shared.database.session import ping
from shared.storage.object_storage import ObjectStorage, S3ObjectStorage
from shared.utils.rate_limiter import limiter, rate_limit_exceeded_handler
from services.notifications.services.dispatcher import NotificationDispatcher
from services.notifications.services.email_service import EmailService
from services.notifications.services.sms_service import TwilioMessagingService
from services.payments.services.payment_service import PaymentConfirmationService
from services.payments.services.razorpay_service import RazorpayService
from services.tickets.services.ticket_assets import TicketAssetService

# Logging configuration
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def configure_services(app: FastAPI, config: Settings = settings, storage: Optional[ObjectStorage] = None):
    """Build the collaborators shared by every request and attach them to app.state"""
    storage = storage or S3ObjectStorage(
        bucket=config.MINIO_BUCKET_TICKETS,
        endpoint_url=config.MINIO_ENDPOINT or None,
        access_key=config.MINIO_ACCESS_KEY or None,
        secret_key=config.MINIO_SECRET_KEY or None,
        region=config.MINIO_REGION,
        public_base_url=config.MINIO_PUBLIC_URL or None,
    )
    asset_service = TicketAssetService(
        storage=storage,
        base_url=config.APP_BASE_URL,
        pdf_timeout=config.TICKET_PDF_TIMEOUT_SECONDS,
        compress_pdf=config.TICKET_PDF_COMPRESSION,
    )
    dispatcher = NotificationDispatcher(
        email_service=EmailService(config.RESEND_API_KEY, config.RESEND_FROM_EMAIL),
        messaging_service=TwilioMessagingService(
            account_sid=config.TWILIO_ACCOUNT_SID,
            auth_token=config.TWILIO_AUTH_TOKEN,
            sms_from=config.TWILIO_SMS_FROM,
            whatsapp_from=config.TWILIO_WHATSAPP_FROM,
            timeout=config.OUTBOUND_TIMEOUT_SECONDS,
        ),
        sms_enabled=config.NOTIFY_SMS,
        whatsapp_enabled=config.NOTIFY_WHATSAPP,
        max_retries=config.NOTIFY_MAX_RETRIES,
    )

    app.state.asset_service = asset_service
    app.state.dispatcher = dispatcher
    app.state.razorpay_service = RazorpayService(
        key_id=config.RAZORPAY_KEY_ID,
        key_secret=config.RAZORPAY_KEY_SECRET,
        api_base=config.RAZORPAY_API_BASE,
        timeout=config.OUTBOUND_TIMEOUT_SECONDS,
    )
    app.state.confirmation_service = PaymentConfirmationService(asset_service, dispatcher)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle"""
    logger.info("Starting application...")
    await init_db()
    configure_services(app)
    logger.info("Application started")
    yield
    logger.info("Shutting down application...")
    await close_db()
    logger.info("Application stopped")


app = FastAPI(
    title="EventHive Payments API",
    description="Payment confirmation and ticket issuance for EventHive events",
    version="1.0.0",
    lifespan=lifespan
)

# CORS first, then rate limiting
if settings.APP_ENV == "development":
    logger.info("Development mode: CORS allows every origin")
    allow_origins = ["*"]
    allow_credentials = False  # credentials cannot be combined with allow_origins=["*"]
else:
    allow_origins = [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]
    allow_credentials = True
    logger.info(f"CORS origins: {allow_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=allow_credentials,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

from services.payments.routes.payments import router as payments_router
from services.tickets.routes.tickets import router as tickets_router

app.include_router(payments_router, prefix="/api/v1/payments", tags=["payments"])
app.include_router(tickets_router, prefix="/api/v1/tickets", tags=["tickets"])


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "ok", "service": "eventhive-payments"}


@app.get("/ready")
async def ready():
    """Ready check endpoint - verifies the database connection"""
    if connection.async_session_maker is None:
        return JSONResponse(status_code=503, content={"status": "not ready", "error": "database not initialized"})
    try:
        async with connection.async_session_maker() as session:
            await ping(session)
    except Exception as e:
        logger.error(f"Ready check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "not ready", "error": str(e)})
    return {"status": "ready", "database": "connected"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.APP_DEBUG
    )
