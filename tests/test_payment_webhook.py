"""Webhook API tests: signature gate, capture workflow, idempotency and failure isolation"""
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from shared.database.models import Booking, BookingStatus, LoyaltyTransaction, Payment, TicketType, User
from conftest import payment_payload, signed, STORAGE_BASE_URL

WEBHOOK_URL = "/api/v1/payments/webhook"


async def count_payments(session_maker):
    async with session_maker() as session:
        return await session.scalar(select(func.count()).select_from(Payment))


async def load_booking(session_maker, code):
    async with session_maker() as session:
        result = await session.execute(select(Booking).where(Booking.booking_code == code))
        return result.scalar_one()


@pytest.mark.asyncio
async def test_captured_payment_confirms_booking_and_sends_ticket(async_client, session_maker, make_booking, services):
    await make_booking(booking_code="EH-CAPTURE-01", quantity=2)
    raw, headers = signed(payment_payload("EH-CAPTURE-01", "pay_CAPTURE01", amount=150000))

    response = await async_client.post(WEBHOOK_URL, content=raw, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}

    async with session_maker() as session:
        payment = (await session.execute(select(Payment))).scalar_one()
    assert payment.amount == Decimal("1500.00")
    assert payment.provider == "razorpay"
    assert payment.provider_payment_id == "pay_CAPTURE01"
    assert payment.status == "captured"

    booking = await load_booking(session_maker, "EH-CAPTURE-01")
    assert booking.status == BookingStatus.CONFIRMED.value
    assert booking.qr_code_url.startswith("data:image/png;base64,")
    assert booking.pdf_url == f"{STORAGE_BASE_URL}/tickets/ticket-EH-CAPTURE-01.pdf"
    assert payment.booking_id == booking.id

    assert len(services.email_service.sent) == 1
    email = services.email_service.sent[0]
    assert email["to"] == "attendee@example.com"
    assert email["subject"] == "Your EventHive ticket for Monsoon Music Festival"
    assert "https://eventhive.test/ticket/verify/EH-CAPTURE-01" in email["text"]
    attachment = email["attachments"][0]
    assert attachment.filename == "ticket-EH-CAPTURE-01.pdf"
    assert attachment.content.startswith(b"%PDF")


@pytest.mark.asyncio
async def test_amount_is_stored_in_major_units(async_client, session_maker, make_booking):
    await make_booking(booking_code="EH-AMOUNT-01")
    raw, headers = signed(payment_payload("EH-AMOUNT-01", "pay_AMOUNT01", amount=10000))

    response = await async_client.post(WEBHOOK_URL, content=raw, headers=headers)

    assert response.status_code == 200
    async with session_maker() as session:
        payment = (await session.execute(select(Payment))).scalar_one()
    assert payment.amount == Decimal("100.00")


@pytest.mark.asyncio
async def test_replayed_webhook_is_acknowledged_once(async_client, session_maker, make_booking, services):
    await make_booking(booking_code="EH-REPLAY-01")
    raw, headers = signed(payment_payload("EH-REPLAY-01", "pay_REPLAY01"))

    first = await async_client.post(WEBHOOK_URL, content=raw, headers=headers)
    second = await async_client.post(WEBHOOK_URL, content=raw, headers=headers)

    assert first.status_code == 200
    assert first.json() == {"status": "ok"}
    assert second.status_code == 200
    assert second.json() == {"status": "duplicate"}
    assert await count_payments(session_maker) == 1
    assert len(services.email_service.sent) == 1

    booking = await load_booking(session_maker, "EH-REPLAY-01")
    assert booking.status == BookingStatus.CONFIRMED.value


@pytest.mark.asyncio
async def test_invalid_signature_is_rejected_before_any_write(async_client, session_maker, make_booking, services):
    await make_booking(booking_code="EH-FORGED-01")
    raw, headers = signed(payment_payload("EH-FORGED-01", "pay_FORGED01"))
    signature = headers["X-Razorpay-Signature"]
    headers["X-Razorpay-Signature"] = ("0" if signature[0] != "0" else "1") + signature[1:]

    response = await async_client.post(WEBHOOK_URL, content=raw, headers=headers)

    assert response.status_code == 400
    assert response.json() == {"error": "invalid signature"}
    assert await count_payments(session_maker) == 0
    booking = await load_booking(session_maker, "EH-FORGED-01")
    assert booking.status == BookingStatus.PENDING.value
    assert services.email_service.sent == []


@pytest.mark.asyncio
async def test_missing_signature_header_is_rejected(async_client, session_maker, make_booking):
    await make_booking(booking_code="EH-NOSIG-01")
    raw, headers = signed(payment_payload("EH-NOSIG-01", "pay_NOSIG01"))
    del headers["X-Razorpay-Signature"]

    response = await async_client.post(WEBHOOK_URL, content=raw, headers=headers)

    assert response.status_code == 400
    assert await count_payments(session_maker) == 0


@pytest.mark.asyncio
async def test_signature_is_checked_against_the_raw_body(async_client, session_maker, make_booking):
    await make_booking(booking_code="EH-RAW-01")
    # Unusual spacing: re-serializing the parsed JSON would not reproduce these bytes
    raw = (
        b'{ "event" : "payment.captured",  "payload": {"payment": {"entity": '
        b'{"id": "pay_RAW01", "amount": 150000, "currency": "INR", "status": "captured", '
        b'"notes": {"bookingId": "EH-RAW-01"}}}}}'
    )
    raw, headers = signed(raw)

    response = await async_client.post(WEBHOOK_URL, content=raw, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert await count_payments(session_maker) == 1


@pytest.mark.asyncio
async def test_unknown_booking_returns_404_without_payment(async_client, session_maker, services):
    raw, headers = signed(payment_payload("EH-MISSING-01", "pay_MISSING01"))

    response = await async_client.post(WEBHOOK_URL, content=raw, headers=headers)

    assert response.status_code == 404
    assert response.json() == {"error": "booking_not_found"}
    assert await count_payments(session_maker) == 0
    assert services.email_service.sent == []


@pytest.mark.asyncio
async def test_payment_without_booking_reference_is_ignored(async_client, session_maker, make_booking):
    await make_booking(booking_code="EH-NONOTES-01")
    # Razorpay sends an empty list when a payment has no notes
    raw, headers = signed(payment_payload("EH-NONOTES-01", "pay_NONOTES01", notes=[]))

    response = await async_client.post(WEBHOOK_URL, content=raw, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"status": "ignored"}
    assert await count_payments(session_maker) == 0


@pytest.mark.asyncio
async def test_unhandled_event_type_is_ignored(async_client, session_maker, make_booking):
    await make_booking(booking_code="EH-ORDER-01")
    raw, headers = signed(payment_payload("EH-ORDER-01", "pay_ORDER01", event="order.paid"))

    response = await async_client.post(WEBHOOK_URL, content=raw, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"status": "ignored"}
    assert await count_payments(session_maker) == 0


@pytest.mark.asyncio
async def test_malformed_json_with_valid_signature_is_ignored(async_client, session_maker):
    raw, headers = signed(b'{"event": "payment.captured", "payload": ')

    response = await async_client.post(WEBHOOK_URL, content=raw, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"status": "ignored"}


@pytest.mark.asyncio
async def test_malformed_payment_entity_is_ignored(async_client, session_maker):
    payload = payment_payload("EH-BADENTITY-01", "pay_BADENTITY01")
    del payload["payload"]["payment"]["entity"]["amount"]
    raw, headers = signed(payload)

    response = await async_client.post(WEBHOOK_URL, content=raw, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"status": "ignored"}
    assert await count_payments(session_maker) == 0


@pytest.mark.asyncio
async def test_workflow_value_error_is_not_reported_as_ignored(async_client, services, monkeypatch):
    async def broken(db, envelope):
        raise ValueError("unexpected state")

    monkeypatch.setattr(services.confirmation_service, "handle_webhook_event", broken)
    raw, headers = signed(payment_payload("EH-BROKEN-01", "pay_BROKEN01"))

    with pytest.raises(ValueError):
        await async_client.post(WEBHOOK_URL, content=raw, headers=headers)


@pytest.mark.asyncio
async def test_email_failure_keeps_confirmation(async_client, session_maker, make_booking, services):
    await make_booking(booking_code="EH-MAILFAIL-01")
    services.email_service.fail = True
    raw, headers = signed(payment_payload("EH-MAILFAIL-01", "pay_MAILFAIL01"))

    response = await async_client.post(WEBHOOK_URL, content=raw, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert await count_payments(session_maker) == 1
    booking = await load_booking(session_maker, "EH-MAILFAIL-01")
    assert booking.status == BookingStatus.CONFIRMED.value
    assert booking.pdf_url is not None


@pytest.mark.asyncio
async def test_storage_failure_skips_notification(async_client, session_maker, make_booking, services):
    await make_booking(booking_code="EH-NOSTORE-01")
    services.storage.fail = True
    raw, headers = signed(payment_payload("EH-NOSTORE-01", "pay_NOSTORE01"))

    response = await async_client.post(WEBHOOK_URL, content=raw, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"status": "assets_failed"}
    assert await count_payments(session_maker) == 1
    booking = await load_booking(session_maker, "EH-NOSTORE-01")
    assert booking.status == BookingStatus.CONFIRMED.value
    assert booking.pdf_url is None
    assert services.email_service.sent == []


@pytest.mark.asyncio
async def test_guest_booking_is_confirmed_without_email(async_client, session_maker, make_booking, services):
    await make_booking(booking_code="EH-GUEST-01", attendee=False)
    raw, headers = signed(payment_payload("EH-GUEST-01", "pay_GUEST01"))

    response = await async_client.post(WEBHOOK_URL, content=raw, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    booking = await load_booking(session_maker, "EH-GUEST-01")
    assert booking.status == BookingStatus.CONFIRMED.value
    assert services.email_service.sent == []
    assert services.storage.objects["tickets/ticket-EH-GUEST-01.pdf"][0].startswith(b"%PDF")


@pytest.mark.asyncio
async def test_capture_for_cancelled_booking_needs_reconciliation(async_client, session_maker, make_booking, services):
    await make_booking(booking_code="EH-LATE-01", status=BookingStatus.CANCELLED)
    raw, headers = signed(payment_payload("EH-LATE-01", "pay_LATE01"))

    response = await async_client.post(WEBHOOK_URL, content=raw, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"status": "needs_reconciliation"}
    assert await count_payments(session_maker) == 1
    booking = await load_booking(session_maker, "EH-LATE-01")
    assert booking.status == BookingStatus.CANCELLED.value
    assert booking.pdf_url is None
    assert services.email_service.sent == []


@pytest.mark.asyncio
async def test_capture_awards_loyalty_points(async_client, session_maker, make_booking):
    created = await make_booking(booking_code="EH-LOYAL-01")
    raw, headers = signed(payment_payload("EH-LOYAL-01", "pay_LOYAL01", amount=150000))

    await async_client.post(WEBHOOK_URL, content=raw, headers=headers)
    await async_client.post(WEBHOOK_URL, content=raw, headers=headers)

    async with session_maker() as session:
        user = await session.get(User, created.user_id)
        transactions = (await session.execute(select(LoyaltyTransaction))).scalars().all()
    assert user.loyalty_points == 150
    assert len(transactions) == 1
    assert transactions[0].points == 150


@pytest.mark.asyncio
async def test_failed_payment_cancels_booking_and_releases_tickets(async_client, session_maker, make_booking, services):
    created = await make_booking(booking_code="EH-DECLINED-01", quantity=3, total_sold=10)
    raw, headers = signed(payment_payload("EH-DECLINED-01", "pay_DECLINED01", event="payment.failed"))

    response = await async_client.post(WEBHOOK_URL, content=raw, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    booking = await load_booking(session_maker, "EH-DECLINED-01")
    assert booking.status == BookingStatus.CANCELLED.value
    async with session_maker() as session:
        ticket_type = await session.get(TicketType, created.ticket_type_id)
    assert ticket_type.total_sold == 7
    assert await count_payments(session_maker) == 0
    assert services.email_service.sent == []


@pytest.mark.asyncio
async def test_failed_payment_does_not_cancel_confirmed_booking(async_client, session_maker, make_booking):
    created = await make_booking(booking_code="EH-PAID-01", status=BookingStatus.CONFIRMED, total_sold=10)
    raw, headers = signed(payment_payload("EH-PAID-01", "pay_RETRYFAIL01", event="payment.failed"))

    response = await async_client.post(WEBHOOK_URL, content=raw, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"status": "ignored"}
    booking = await load_booking(session_maker, "EH-PAID-01")
    assert booking.status == BookingStatus.CONFIRMED.value
    async with session_maker() as session:
        ticket_type = await session.get(TicketType, created.ticket_type_id)
    assert ticket_type.total_sold == 10
