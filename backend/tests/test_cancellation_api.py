import json

import pytest
from sqlalchemy import select

from marketplace.models import AuditLog, Booking
from marketplace.models.enums import AuditAction, BookingStatus, PaymentStatus
from tests.conftest import auth_headers, create_booking, create_listing, create_user

pytestmark = pytest.mark.anyio


async def reload(session, booking: Booking) -> Booking:
    await session.refresh(booking)
    return booking


def cancel_url(booking: Booking) -> str:
    return f"/v1/bookings/{booking.id}/cancel"


def preview_url(booking: Booking) -> str:
    return f"/v1/bookings/{booking.id}/refund-preview"


async def test_preview_matches_cancellation(client, db_session, parties, gateway_server):
    booking = await create_booking(db_session, parties["listing"], parties["guest"])
    headers = auth_headers(parties["guest"])

    preview = await client.get(preview_url(booking), headers=headers)
    assert preview.status_code == 200
    data = preview.json()
    assert data["cancelling_party"] == "guest"
    assert data["cancelled_by"] == "guest"
    assert data["total_amount_cents"] == 11880
    assert data["breakdown"]["policy"] == "moderate"
    assert data["breakdown"]["refund_amount_cents"] == 11000
    assert data["breakdown"]["cancellation_fee_cents"] == 880
    assert data["breakdown"]["is_in_grace_period"] is False
    assert data["distribution"]["platform_keeps_cents"] == 880
    assert data["summary"].startswith("Full refund of the stay")

    # Preview writes nothing
    assert gateway_server.requests == []
    assert (await reload(db_session, booking)).status == BookingStatus.PAID

    response = await client.post(cancel_url(booking), json={"reason": "Change of plans"}, headers=headers)
    assert response.status_code == 200
    result = response.json()
    assert result["breakdown"] == data["breakdown"]
    assert result["status"] == "cancelled_by_guest"
    assert result["refund_amount_cents"] == 11000
    assert result["cancellation_fee_cents"] == 880
    assert result["refund_status"] == "refunded"
    assert result["refund_reference"] == "re_1"


async def test_guest_cancel_records_cancellation_and_instructs_refund(
    client, db_session, parties, gateway_server
):
    booking = await create_booking(db_session, parties["listing"], parties["guest"])

    response = await client.post(
        cancel_url(booking),
        json={"reason": "  Change of plans  "},
        headers=auth_headers(parties["guest"]),
    )
    assert response.status_code == 200

    assert len(gateway_server.requests) == 1
    request = gateway_server.requests[0]
    assert request.headers["Idempotency-Key"] == str(booking.id)
    body = json.loads(request.content)
    assert body["amount_cents"] == 11000
    assert body["currency"] == "DZD"
    assert body["payment_reference"] == "pay_123"

    booking = await reload(db_session, booking)
    assert booking.status == BookingStatus.CANCELLED_BY_GUEST
    assert booking.payment_status == PaymentStatus.PARTIALLY_REFUNDED
    assert booking.cancelled_by_id == parties["guest"].id
    assert booking.cancellation_reason == "Change of plans"
    assert booking.cancelled_at is not None
    assert booking.refund_amount_cents == 11000
    assert booking.cancellation_fee_cents == 880
    assert booking.refund_reference == "re_1"

    result = await db_session.execute(
        select(AuditLog).where(AuditLog.resource_id == booking.id).order_by(AuditLog.created_at)
    )
    actions = {entry.action for entry in result.scalars().all()}
    assert actions == {AuditAction.REFUND_INSTRUCTED, AuditAction.BOOKING_CANCELLED}


async def test_host_cancel_refunds_everything(client, db_session, parties):
    booking = await create_booking(
        db_session, parties["listing"], parties["guest"], days_until_check_in=2
    )

    response = await client.post(
        cancel_url(booking), json={"reason": "Plumbing failure"}, headers=auth_headers(parties["host"])
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "cancelled_by_host"
    assert data["cancelled_by"] == "host"
    assert data["refund_amount_cents"] == 11880
    assert data["cancellation_fee_cents"] == 0
    assert data["breakdown"]["service_fee_refund_cents"] == 880

    booking = await reload(db_session, booking)
    assert booking.payment_status == PaymentStatus.REFUNDED


async def test_admin_cancel_with_settlement_percent(client, db_session, parties):
    listing = await create_listing(db_session, parties["host"], cancellation_policy="non_refundable")
    booking = await create_booking(db_session, listing, parties["guest"])

    response = await client.post(
        cancel_url(booking),
        json={"reason": "Dispute settled", "refund_percent_override": 50},
        headers=auth_headers(parties["admin"]),
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "cancelled_by_admin"
    assert data["cancelled_by"] == "admin"
    assert data["breakdown"]["subtotal_refund_percent"] == 50
    assert data["refund_amount_cents"] == 6000
    assert data["cancellation_fee_cents"] == 5880


async def test_admin_cancel_without_override_uses_guest_rules(client, db_session, parties):
    listing = await create_listing(db_session, parties["host"], cancellation_policy="strict")
    booking = await create_booking(db_session, listing, parties["guest"])

    response = await client.post(
        cancel_url(booking), json={"reason": "Fraud review"}, headers=auth_headers(parties["admin"])
    )
    assert response.status_code == 200
    assert response.json()["breakdown"]["subtotal_refund_percent"] == 50


async def test_guest_cannot_set_refund_percent(client, db_session, parties, gateway_server):
    booking = await create_booking(db_session, parties["listing"], parties["guest"])

    response = await client.post(
        cancel_url(booking),
        json={"reason": "Please", "refund_percent_override": 100},
        headers=auth_headers(parties["guest"]),
    )
    assert response.status_code == 403
    assert gateway_server.requests == []


async def test_blank_reason_is_rejected_before_anything_runs(client, db_session, parties, gateway_server):
    booking = await create_booking(db_session, parties["listing"], parties["guest"])
    headers = auth_headers(parties["guest"])

    response = await client.post(cancel_url(booking), json={"reason": "   "}, headers=headers)
    assert response.status_code == 422
    assert response.json()["detail"] == "A cancellation reason is required"

    response = await client.post(cancel_url(booking), json={}, headers=headers)
    assert response.status_code == 422

    assert gateway_server.requests == []
    assert (await reload(db_session, booking)).status == BookingStatus.PAID


@pytest.mark.parametrize(
    "status",
    [BookingStatus.COMPLETED, BookingStatus.CANCELLED_BY_HOST, BookingStatus.EXPIRED],
)
async def test_non_cancellable_status(client, db_session, parties, status):
    booking = await create_booking(db_session, parties["listing"], parties["guest"], status=status)

    response = await client.post(
        cancel_url(booking), json={"reason": "Too late"}, headers=auth_headers(parties["guest"])
    )
    assert response.status_code == 409

    preview = await client.get(preview_url(booking), headers=auth_headers(parties["guest"]))
    assert preview.status_code == 409


async def test_pending_payment_without_payment_is_invalid(client, db_session, parties):
    booking = await create_booking(
        db_session,
        parties["listing"],
        parties["guest"],
        status=BookingStatus.PENDING_PAYMENT,
        payment_status=PaymentStatus.PENDING,
    )

    response = await client.post(
        cancel_url(booking), json={"reason": "Never mind"}, headers=auth_headers(parties["guest"])
    )
    assert response.status_code == 409


async def test_unpaid_booking_cancels_without_refund(client, db_session, parties, gateway_server):
    booking = await create_booking(
        db_session,
        parties["listing"],
        parties["guest"],
        status=BookingStatus.CONFIRMED,
        payment_status=PaymentStatus.PENDING,
        days_until_check_in=1,
    )

    response = await client.post(
        cancel_url(booking), json={"reason": "Found another place"}, headers=auth_headers(parties["guest"])
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "cancelled_by_guest"
    assert data["refund_status"] == "not_applicable"
    assert data["refund_amount_cents"] == 0
    assert data["cancellation_fee_cents"] == 0
    assert gateway_server.requests == []


async def test_duplicate_cancel_refunds_once(client, db_session, parties, gateway_server):
    booking = await create_booking(db_session, parties["listing"], parties["guest"])
    headers = auth_headers(parties["guest"])

    first = await client.post(cancel_url(booking), json={"reason": "Sick"}, headers=headers)
    second = await client.post(cancel_url(booking), json={"reason": "Sick"}, headers=headers)

    assert first.status_code == 200
    assert second.status_code == 409
    assert len(gateway_server.requests) == 1


async def test_provider_failure_leaves_booking_unchanged(client, db_session, parties, gateway_server):
    booking = await create_booking(db_session, parties["listing"], parties["guest"])
    gateway_server.fail_with(500)

    response = await client.post(
        cancel_url(booking), json={"reason": "Change of plans"}, headers=auth_headers(parties["guest"])
    )
    assert response.status_code == 502
    assert response.json()["detail"] == (
        "Refund could not be processed. Your booking has not been cancelled."
    )

    booking = await reload(db_session, booking)
    assert booking.status == BookingStatus.PAID
    assert booking.payment_status == PaymentStatus.PAID
    assert booking.cancelled_at is None
    assert booking.refund_amount_cents is None

    result = await db_session.execute(select(AuditLog).where(AuditLog.resource_id == booking.id))
    assert result.scalars().all() == []


async def test_deferred_refund_is_committed_as_pending(client, db_session, parties, gateway_server):
    booking = await create_booking(db_session, parties["listing"], parties["guest"])
    gateway_server.body = {"status": "pending"}

    response = await client.post(
        cancel_url(booking), json={"reason": "Change of plans"}, headers=auth_headers(parties["guest"])
    )
    assert response.status_code == 200
    assert response.json()["refund_status"] == "pending"

    booking = await reload(db_session, booking)
    assert booking.status == BookingStatus.CANCELLED_BY_GUEST
    assert booking.payment_status == PaymentStatus.REFUND_PENDING


async def test_inconsistent_pricing_aborts_cancellation(client, db_session, parties, gateway_server):
    booking = await create_booking(
        db_session, parties["listing"], parties["guest"], total_adjustment_cents=100
    )

    response = await client.post(
        cancel_url(booking), json={"reason": "Change of plans"}, headers=auth_headers(parties["guest"])
    )
    assert response.status_code == 500
    assert "contact support" in response.json()["detail"]
    assert gateway_server.requests == []
    assert (await reload(db_session, booking)).status == BookingStatus.PAID


async def test_unrelated_user_cannot_see_or_cancel(client, db_session, parties):
    booking = await create_booking(db_session, parties["listing"], parties["guest"])
    headers = auth_headers(parties["stranger"])

    assert (await client.get(f"/v1/bookings/{booking.id}", headers=headers)).status_code == 404
    assert (await client.get(preview_url(booking), headers=headers)).status_code == 403
    response = await client.post(cancel_url(booking), json={"reason": "Because"}, headers=headers)
    assert response.status_code == 403


async def test_unknown_booking(client, parties):
    response = await client.post(
        "/v1/bookings/00000000-0000-0000-0000-000000000000/cancel",
        json={"reason": "Because"},
        headers=auth_headers(parties["guest"]),
    )
    assert response.status_code == 404


async def test_get_booking_for_parties(client, db_session, parties):
    booking = await create_booking(db_session, parties["listing"], parties["guest"])

    for who in ("guest", "host", "admin"):
        response = await client.get(f"/v1/bookings/{booking.id}", headers=auth_headers(parties[who]))
        assert response.status_code == 200
        assert response.json()["total_amount_cents"] == 11880


async def test_unregistered_or_inactive_identity_is_forbidden(client, db_session, parties):
    booking = await create_booking(db_session, parties["listing"], parties["guest"])
    inactive = await create_user(db_session, is_active=False)

    response = await client.get(preview_url(booking), headers={"Authorization": "Bearer nobody"})
    assert response.status_code == 403
    response = await client.get(preview_url(booking), headers=auth_headers(inactive))
    assert response.status_code == 403


async def test_legacy_policy_value_previews_as_moderate(client, db_session, parties):
    listing = await create_listing(db_session, parties["host"], cancellation_policy="semi_flexible")
    booking = await create_booking(db_session, listing, parties["guest"], days_until_check_in=3)

    response = await client.get(preview_url(booking), headers=auth_headers(parties["guest"]))
    assert response.status_code == 200
    assert response.json()["breakdown"]["policy"] == "moderate"
    assert response.json()["breakdown"]["subtotal_refund_percent"] == 50


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_unpaid_booking_preview_matches_cancellation(client, db_session, parties, gateway_server):
    booking = await create_booking(
        db_session,
        parties["listing"],
        parties["guest"],
        status=BookingStatus.CONFIRMED,
        payment_status=PaymentStatus.PENDING,
    )
    headers = auth_headers(parties["guest"])

    preview = (await client.get(preview_url(booking), headers=headers)).json()
    assert preview["payment_captured"] is False
    assert preview["refund_amount_cents"] == 0
    assert preview["cancellation_fee_cents"] == 0
    assert preview["distribution"]["platform_keeps_cents"] == 0

    result = (
        await client.post(cancel_url(booking), json={"reason": "Found another place"}, headers=headers)
    ).json()
    assert result["refund_amount_cents"] == preview["refund_amount_cents"]
    assert result["cancellation_fee_cents"] == preview["cancellation_fee_cents"]
    assert result["summary"] == preview["summary"]


async def test_paid_booking_preview_reports_applied_amounts(client, db_session, parties):
    booking = await create_booking(db_session, parties["listing"], parties["guest"])

    preview = (await client.get(preview_url(booking), headers=auth_headers(parties["guest"]))).json()
    assert preview["payment_captured"] is True
    assert preview["refund_amount_cents"] == 11000
    assert preview["cancellation_fee_cents"] == 880


async def test_malformed_gateway_reply_leaves_booking_unchanged(client, db_session, parties, gateway_server):
    booking = await create_booking(db_session, parties["listing"], parties["guest"])
    gateway_server.text = "OK"

    response = await client.post(
        cancel_url(booking), json={"reason": "Change of plans"}, headers=auth_headers(parties["guest"])
    )
    assert response.status_code == 502
    assert (await reload(db_session, booking)).status == BookingStatus.PAID


async def test_admin_settles_own_booking_as_admin(client, db_session, parties):
    booking = await create_booking(db_session, parties["listing"], parties["admin"])
    headers = auth_headers(parties["admin"])

    preview = await client.get(
        preview_url(booking), params={"refund_percent_override": 25}, headers=headers
    )
    assert preview.status_code == 200
    assert preview.json()["cancelled_by"] == "admin"
    assert preview.json()["breakdown"]["subtotal_refund_percent"] == 25

    response = await client.post(
        cancel_url(booking),
        json={"reason": "Goodwill settlement", "refund_percent_override": 25},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled_by_admin"
    assert response.json()["refund_amount_cents"] == 3500


async def test_admin_cancelling_own_booking_without_override_is_guest(client, db_session, parties):
    booking = await create_booking(db_session, parties["listing"], parties["admin"])

    response = await client.post(
        cancel_url(booking), json={"reason": "Trip called off"}, headers=auth_headers(parties["admin"])
    )
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled_by_guest"


async def test_guest_preview_with_refund_percent_is_forbidden(client, db_session, parties):
    booking = await create_booking(db_session, parties["listing"], parties["guest"])

    response = await client.get(
        preview_url(booking),
        params={"refund_percent_override": 100},
        headers=auth_headers(parties["guest"]),
    )
    assert response.status_code == 403


async def test_legacy_booking_without_created_at(client, db_session, parties):
    booking = await create_booking(
        db_session, parties["listing"], parties["guest"], days_until_check_in=20, booked_hours_ago=1
    )
    booking.created_at = None
    await db_session.commit()
    headers = auth_headers(parties["guest"])

    detail = await client.get(f"/v1/bookings/{booking.id}", headers=headers)
    assert detail.status_code == 200
    assert detail.json()["created_at"] is None

    preview = await client.get(preview_url(booking), headers=headers)
    assert preview.json()["breakdown"]["is_in_grace_period"] is False
