import json
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

# Settings are read at import time
os.environ["APP_ENV"] = "test"
os.environ["APP_BASE_URL"] = "https://eventhive.test"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "test_key_secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "test_webhook_secret"
os.environ["RESEND_API_KEY"] = ""
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["RATE_LIMIT_STORAGE_URI"] = "memory://"

from httpx import ASGITransport, AsyncClient  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from main import app  # noqa: E402
from shared.database.connection import Base  # noqa: E402
from shared.database.models import (  # noqa: E402
    Booking, BookingStatus, Event, EventStatus, TicketType, User, UserRole,
)
from shared.database.session import get_db  # noqa: E402
from shared.exceptions import StorageError  # noqa: E402
from shared.storage.object_storage import ObjectStorage  # noqa: E402
from shared.utils.rate_limiter import limiter  # noqa: E402
from shared.utils.signatures import compute_signature  # noqa: E402
from services.notifications.services.dispatcher import NotificationDispatcher  # noqa: E402
from services.payments.services.payment_service import PaymentConfirmationService  # noqa: E402
from services.payments.services.razorpay_service import RazorpayService  # noqa: E402
from services.tickets.services.ticket_assets import TicketAssetService  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite://"
WEBHOOK_SECRET = "test_webhook_secret"
KEY_SECRET = "test_key_secret"
BASE_URL = "https://eventhive.test"
STORAGE_BASE_URL = "https://storage.eventhive.test"


class FakeStorage(ObjectStorage):
    """In-memory storage; set fail to simulate an unavailable bucket"""

    def __init__(self):
        self.objects = {}
        self.fail = False

    async def put(self, key, data, content_type):
        if self.fail:
            raise StorageError(f"Upload failed for {key}: bucket unavailable")
        self.objects[key] = (data, content_type)
        return f"{STORAGE_BASE_URL}/{key}"


class FakeEmailService:
    """Records sent emails; set fail to raise on send"""

    def __init__(self):
        self.sent = []
        self.fail = False

    async def send_email(self, to_email, subject, text_content, html_content=None, attachments=None):
        if self.fail:
            raise RuntimeError("mail provider unavailable")
        self.sent.append({
            "to": to_email,
            "subject": subject,
            "text": text_content,
            "attachments": attachments or [],
        })
        return True


@pytest_asyncio.fixture(scope="function")
async def async_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_maker(async_engine):
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def email_service():
    return FakeEmailService()


@pytest.fixture
def services(storage, email_service):
    asset_service = TicketAssetService(storage=storage, base_url=BASE_URL, pdf_timeout=15.0, compress_pdf=False)
    dispatcher = NotificationDispatcher(email_service=email_service, max_retries=0, retry_delay=0)
    return SimpleNamespace(
        storage=storage,
        email_service=email_service,
        asset_service=asset_service,
        dispatcher=dispatcher,
        confirmation_service=PaymentConfirmationService(asset_service, dispatcher),
        razorpay_service=RazorpayService("rzp_test_key", KEY_SECRET, "https://api.razorpay.test/v1"),
    )


@pytest_asyncio.fixture(scope="function")
async def async_client(session_maker, services):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.asset_service = services.asset_service
    app.state.dispatcher = services.dispatcher
    app.state.confirmation_service = services.confirmation_service
    app.state.razorpay_service = services.razorpay_service
    limiter.enabled = False

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture
def make_booking(session_maker):
    """Create organizer, event, ticket type, optional attendee and a booking"""

    async def _make(
        booking_code="EH-TEST-0001",
        quantity=2,
        status=BookingStatus.PENDING,
        attendee=True,
        attendee_email="attendee@example.com",
        event_status=EventStatus.PUBLISHED,
        start_at=None,
        end_at=None,
        total_sold=10,
    ):
        start_at = start_at or datetime.now(timezone.utc) + timedelta(days=10)
        async with session_maker() as session:
            organizer = User(name="Hive Events", email=f"organizer-{booking_code}@example.com",
                             role=UserRole.ORGANIZER.value)
            session.add(organizer)
            await session.flush()

            event = Event(
                organizer_id=organizer.id,
                title="Monsoon Music Festival",
                location="Jawaharlal Nehru Stadium, Delhi",
                start_at=start_at,
                end_at=end_at,
                status=event_status.value,
            )
            session.add(event)
            await session.flush()

            ticket_type = TicketType(
                event_id=event.id,
                name="General Admission",
                price=Decimal("750.00"),
                total_quantity=100,
                total_sold=total_sold,
            )
            session.add(ticket_type)

            user = None
            if attendee:
                user = User(name="Asha Verma", email=attendee_email, phone="+919800000001")
                session.add(user)
            await session.flush()

            booking = Booking(
                booking_code=booking_code,
                user_id=user.id if user else None,
                event_id=event.id,
                ticket_type_id=ticket_type.id,
                quantity=quantity,
                status=status.value,
            )
            session.add(booking)
            await session.commit()

            return SimpleNamespace(
                booking_id=booking.id,
                booking_code=booking_code,
                user_id=user.id if user else None,
                ticket_type_id=ticket_type.id,
                event_id=event.id,
            )

    return _make


def payment_payload(booking_code="EH-TEST-0001", payment_id="pay_TEST0001", amount=150000,
                    event="payment.captured", notes=None):
    if notes is None:
        notes = {"bookingId": booking_code}
    return {
        "entity": "event",
        "event": event,
        "contains": ["payment"],
        "payload": {
            "payment": {
                "entity": {
                    "id": payment_id,
                    "entity": "payment",
                    "amount": amount,
                    "currency": "INR",
                    "status": "captured" if event == "payment.captured" else "failed",
                    "order_id": "order_TEST0001",
                    "method": "upi",
                    "notes": notes,
                }
            }
        },
        "created_at": 1760000000,
    }


def signed(body, secret=WEBHOOK_SECRET):
    """Raw body bytes and the headers Razorpay would send with them"""
    raw = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
    return raw, {
        "Content-Type": "application/json",
        "X-Razorpay-Signature": compute_signature(raw, secret),
    }
