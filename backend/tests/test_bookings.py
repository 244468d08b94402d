"""
Tests for the booking lifecycle: pricing, identifiers, slot accounting,
Razorpay order/verification, approval, cancellation and completion.
"""

import asyncio
import re
from datetime import datetime

import httpx
import pytest

from pleasure_holidays.core.errors import InternalError
from pleasure_holidays.services import bookings as booking_service
from pleasure_holidays.services.bookings import compute_pricing, generate_booking_id, order_amount
from pleasure_holidays.services.payments import PaymentGateway, expected_signature, verify_signature

from conftest import RAZORPAY_SECRET

BOOKING_ID = re.compile(r"^PH\d{6}\d{4}$")


# ==================== RULES ====================


def test_compute_pricing():
    pricing = compute_pricing(1000, 3)
    assert pricing.base_price == 3000
    assert pricing.discount == 0
    assert pricing.taxes == 540
    assert pricing.total_amount == 3540

    for unit_price in (999.99, 1234.5, 0.1):
        for travelers in range(1, 8):
            p = compute_pricing(unit_price, travelers)
            assert p.base_price == unit_price * travelers
            assert p.taxes == 0.18 * p.base_price
            assert p.total_amount == p.base_price - p.discount + p.taxes

    # Rounding happens once, when converting to the gateway amount
    assert order_amount(compute_pricing(999.99, 3).total_amount) == 353996


def test_generate_booking_id():
    booking_id = generate_booking_id("PH", now=datetime(2026, 10, 18, 9, 30))
    assert BOOKING_ID.match(booking_id)
    assert booking_id.startswith("PH261018")
    assert BOOKING_ID.match(generate_booking_id())


def test_order_amount_is_in_minor_units():
    assert order_amount(3540) == 354000
    assert order_amount(1456.73) == 145673
    assert order_amount(0.1 + 0.2) == 30


def test_signature_verification():
    good = expected_signature(RAZORPAY_SECRET, "order_1", "pay_1")
    assert verify_signature(RAZORPAY_SECRET, "order_1", "pay_1", good)

    mutated = good[:-1] + ("0" if good[-1] != "0" else "1")
    cases = [
        ("order_1", "pay_1", mutated),
        ("order_2", "pay_1", good),
        ("order_1", "pay_2", good),
        ("order_1", "pay_1", good.upper()),
        ("order_1", "pay_1", ""),
    ]
    for order_id, payment_id, signature in cases:
        assert not verify_signature(RAZORPAY_SECRET, order_id, payment_id, signature), (order_id, payment_id, signature)

    # No secret configured never verifies
    assert not verify_signature("", "order_1", "pay_1", expected_signature("", "order_1", "pay_1"))


def test_gateway_error_statuses_raise_internal_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"description": "Authentication failed"}})

    gateway = PaymentGateway("key", "secret", "https://razorpay.test/v1", transport=httpx.MockTransport(handler))
    with pytest.raises(InternalError):
        asyncio.run(gateway.create_order(amount=100, currency="INR", receipt="PH2610180001", notes={}))


# ==================== CREATE / SLOTS ====================


def _package_slots(client, package_id: str) -> int:
    return client.get(f"/api/packages/{package_id}").json()["data"]["package"]["availability"]["booked_slots"]


def test_create_booking_prices_and_reserves(client, customer, make_package, book):
    headers, user = customer
    package = make_package()

    res = book(headers, package["id"], adults=2, children=1)
    assert res.status_code == 201, res.text
    booking = res.json()["data"]["booking"]

    assert BOOKING_ID.match(booking["booking_id"])
    assert booking["customer"] == user["id"]
    assert booking["status"] == "pending"
    assert booking["approval"]["status"] == "pending"
    assert booking["payment"]["status"] == "pending"
    assert booking["total_travelers"] == 3
    assert booking["pricing"]["base_price"] == 3000
    assert booking["pricing"]["taxes"] == 540
    assert booking["pricing"]["total_amount"] == 3540
    assert booking["notifications"][0]["title"] == "Booking received"
    assert _package_slots(client, package["id"]) == 3


def test_last_slot_cannot_be_double_booked(client, register, make_package, book):
    first, _ = register("first@example.com")
    second, _ = register("second@example.com")
    package = make_package(total_slots=1)

    assert book(first, package["id"]).status_code == 201
    assert client.get(f"/api/packages/{package['id']}").json()["data"]["package"]["is_available"] is False

    res = book(second, package["id"])
    assert res.status_code == 400
    assert _package_slots(client, package["id"]) == 1


def test_party_larger_than_remaining_slots_is_rejected(client, customer, make_package, book):
    headers, _ = customer
    package = make_package(total_slots=3)

    res = book(headers, package["id"], adults=2, children=2)
    assert res.status_code == 400
    assert res.json()["message"] == "Not enough slots available for this package"
    assert _package_slots(client, package["id"]) == 0


def test_unapproved_package_cannot_be_booked(client, customer, agent, make_package, book):
    headers, _ = customer
    agent_headers, _ = agent
    package = make_package(headers=agent_headers)

    res = book(headers, package["id"])
    assert res.status_code == 400
    assert res.json()["message"] == "Package is not available for booking"


def test_invalid_travel_dates_are_rejected(client, customer, make_package):
    headers, _ = customer
    package = make_package()
    body = {
        "package_id": package["id"],
        "travel_details": {
            "start_date": "2026-12-06T00:00:00Z",
            "end_date": "2026-12-01T00:00:00Z",
            "number_of_travelers": {"adults": 1},
        },
    }
    assert client.post("/api/bookings", json=body, headers=headers).status_code == 400


def test_agent_books_for_customer(client, customer, agent, make_package, book):
    customer_headers, customer_user = customer
    agent_headers, agent_user = agent
    package = make_package()

    assert book(agent_headers, package["id"]).status_code == 400

    res = book(agent_headers, package["id"], customer_id=customer_user["id"])
    assert res.status_code == 201
    booking = res.json()["data"]["booking"]
    assert booking["customer"] == customer_user["id"]
    assert booking["agent"] == agent_user["id"]

    # Visible to both the customer and the mediating agent
    assert client.get(f"/api/bookings/{booking['id']}", headers=customer_headers).status_code == 200
    assert client.get(f"/api/bookings/{booking['id']}", headers=agent_headers).status_code == 200
    assert len(client.get("/api/bookings", headers=agent_headers).json()["data"]["bookings"]) == 1


def test_booking_records_active_agent(client, customer, agent, admin_headers, register, make_package, book):
    customer_headers, customer_user = customer
    agent_headers, agent_user = agent
    other_agent, _ = register("other-agent@example.com", role="agent")
    package = make_package()

    res = book(customer_headers, package["id"], agent_id=agent_user["id"])
    assert res.status_code == 201, res.text
    assert res.json()["data"]["booking"]["agent"] == agent_user["id"]

    res = book(admin_headers, package["id"], customer_id=customer_user["id"], agent_id=agent_user["id"])
    assert res.status_code == 201, res.text
    booking = res.json()["data"]["booking"]
    assert booking["customer"] == customer_user["id"]
    assert booking["agent"] == agent_user["id"]
    assert len(client.get("/api/bookings", headers=agent_headers).json()["data"]["bookings"]) == 2

    # Only active agents can be recorded
    assert book(customer_headers, package["id"], agent_id=customer_user["id"]).status_code == 404
    res = client.put(f"/api/admin/users/{agent_user['id']}", json={"is_active": False}, headers=admin_headers)
    assert res.status_code == 200
    assert book(customer_headers, package["id"], agent_id=agent_user["id"]).status_code == 404

    # Agents always record themselves
    res = book(other_agent, package["id"], customer_id=customer_user["id"], agent_id=agent_user["id"])
    assert res.status_code == 403


def test_customers_only_see_their_own_bookings(client, register, make_package, book):
    owner, _ = register("owner@example.com")
    stranger, _ = register("stranger@example.com")
    package = make_package()
    booking = book(owner, package["id"]).json()["data"]["booking"]

    assert client.get(f"/api/bookings/{booking['id']}", headers=stranger).status_code == 403
    assert client.get("/api/bookings", headers=stranger).json()["data"]["bookings"] == []
    assert len(client.get("/api/bookings", headers=owner).json()["data"]["bookings"]) == 1


def test_booking_id_collision_is_retried(client, customer, make_package, book, monkeypatch):
    headers, _ = customer
    package = make_package()
    ids = iter(["PH2610180001", "PH2610180001", "PH2610180002"])
    monkeypatch.setattr(booking_service, "generate_booking_id", lambda prefix="PH", now=None: next(ids))

    first = book(headers, package["id"]).json()["data"]["booking"]
    second = book(headers, package["id"]).json()["data"]["booking"]
    assert first["booking_id"] == "PH2610180001"
    assert second["booking_id"] == "PH2610180002"


def test_exhausted_booking_id_retries_release_slots(client, customer, make_package, book, monkeypatch):
    headers, _ = customer
    package = make_package()
    monkeypatch.setattr(booking_service, "generate_booking_id", lambda prefix="PH", now=None: "PH2610189999")

    assert book(headers, package["id"]).status_code == 201
    res = book(headers, package["id"], adults=2)
    assert res.status_code == 500
    assert res.json()["success"] is False
    assert _package_slots(client, package["id"]) == 1


# ==================== PAYMENT ====================


def _create_booking(client, headers, make_package, book, **kwargs) -> tuple[dict, dict]:
    package = make_package()
    res = book(headers, package["id"], **kwargs)
    assert res.status_code == 201, res.text
    return package, res.json()["data"]["booking"]


def test_payment_order_and_verification(client, customer, make_package, book, gateway_calls):
    headers, _ = customer
    _, booking = _create_booking(client, headers, make_package, book, adults=2, children=1)

    res = client.post(f"/api/bookings/{booking['id']}/payment/create-order", headers=headers)
    assert res.status_code == 200, res.text
    order = res.json()["data"]
    assert order["amount"] == 354000
    assert order["currency"] == "INR"
    assert order["key_id"] == "rzp_test_key"

    call = gateway_calls[0]
    assert call["url"] == "https://razorpay.test/v1/orders"
    assert call["auth"].startswith("Basic ")
    assert call["payload"]["amount"] == 354000
    assert call["payload"]["receipt"] == booking["booking_id"]

    signature = expected_signature(RAZORPAY_SECRET, order["order_id"], "pay_123")
    bad = client.post(
        f"/api/bookings/{booking['id']}/payment/verify",
        json={"razorpay_order_id": order["order_id"], "razorpay_payment_id": "pay_999", "razorpay_signature": signature},
        headers=headers,
    )
    assert bad.status_code == 400
    assert bad.json()["message"] == "Invalid payment signature"

    foreign = client.post(
        f"/api/bookings/{booking['id']}/payment/verify",
        json={
            "razorpay_order_id": "order_elsewhere",
            "razorpay_payment_id": "pay_123",
            "razorpay_signature": expected_signature(RAZORPAY_SECRET, "order_elsewhere", "pay_123"),
        },
        headers=headers,
    )
    assert foreign.status_code == 400

    body = {"razorpay_order_id": order["order_id"], "razorpay_payment_id": "pay_123", "razorpay_signature": signature}
    res = client.post(f"/api/bookings/{booking['id']}/payment/verify", json=body, headers=headers)
    assert res.status_code == 200, res.text
    paid = res.json()["data"]["booking"]
    assert paid["status"] == "confirmed"
    assert paid["payment"]["status"] == "completed"
    assert paid["payment"]["razorpay_payment_id"] == "pay_123"
    assert paid["payment"]["paid_at"] is not None

    again = client.post(f"/api/bookings/{booking['id']}/payment/verify", json=body, headers=headers)
    assert again.status_code == 400
    assert again.json()["message"] == "Payment already completed"

    order_again = client.post(f"/api/bookings/{booking['id']}/payment/create-order", headers=headers)
    assert order_again.status_code == 400


def test_gateway_failure_leaves_booking_untouched(settings, customer, make_package, book, client):
    headers, _ = customer
    _, booking = _create_booking(client, headers, make_package, book)

    def failing(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("gateway unreachable", request=request)

    client.app.state.context.gateway = PaymentGateway(
        settings.razorpay_key_id,
        settings.razorpay_key_secret,
        settings.razorpay_api_url,
        transport=httpx.MockTransport(failing),
    )

    res = client.post(f"/api/bookings/{booking['id']}/payment/create-order", headers=headers)
    assert res.status_code == 500
    assert res.json()["message"] == "Failed to create payment order"

    stored = client.get(f"/api/bookings/{booking['id']}", headers=headers).json()["data"]["booking"]
    assert stored["payment"]["razorpay_order_id"] is None
    assert stored["payment"]["status"] == "pending"


def test_verify_without_order_is_rejected(client, customer, make_package, book):
    headers, _ = customer
    _, booking = _create_booking(client, headers, make_package, book)
    body = {
        "razorpay_order_id": "order_x",
        "razorpay_payment_id": "pay_x",
        "razorpay_signature": expected_signature(RAZORPAY_SECRET, "order_x", "pay_x"),
    }
    res = client.post(f"/api/bookings/{booking['id']}/payment/verify", json=body, headers=headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Payment order does not belong to this booking"


# ==================== APPROVAL / CANCEL / COMPLETE ====================


def test_approve_twice_is_rejected(client, customer, admin_headers, make_package, book):
    headers, _ = customer
    _, booking = _create_booking(client, headers, make_package, book)

    pending = client.get("/api/bookings/pending/approval", headers=admin_headers).json()["data"]["bookings"]
    assert [b["id"] for b in pending] == [booking["id"]]

    res = client.post(
        f"/api/bookings/{booking['id']}/approve", json={"notes": "Hotel blocks confirmed"}, headers=admin_headers
    )
    assert res.status_code == 200
    approved = res.json()["data"]["booking"]
    assert approved["approval"]["status"] == "approved"
    assert approved["approval"]["notes"] == "Hotel blocks confirmed"
    assert approved["approval"]["approved_by"] is not None

    again = client.post(f"/api/bookings/{booking['id']}/approve", headers=admin_headers)
    assert again.status_code == 400
    assert again.json()["message"] == "Booking is already approved"

    assert client.post(f"/api/bookings/{booking['id']}/approve", headers=headers).status_code == 403


def test_cancel_releases_slots_exactly_once(client, customer, make_package, book):
    headers, _ = customer
    package, booking = _create_booking(client, headers, make_package, book, adults=2)
    assert _package_slots(client, package["id"]) == 2

    res = client.post(f"/api/bookings/{booking['id']}/cancel", json={"reason": "Change of plans"}, headers=headers)
    assert res.status_code == 200
    cancelled = res.json()["data"]["booking"]
    assert cancelled["status"] == "cancelled"
    assert cancelled["cancellation"]["cancellation_reason"] == "Change of plans"
    assert cancelled["slots_released"] is True
    assert _package_slots(client, package["id"]) == 0

    again = client.post(f"/api/bookings/{booking['id']}/cancel", headers=headers)
    assert again.status_code == 400
    assert again.json()["message"] == "Booking is already cancelled"
    assert _package_slots(client, package["id"]) == 0


def test_reject_then_cancel_does_not_release_twice(client, customer, admin_headers, make_package, book):
    headers, _ = customer
    package = make_package()
    # A second booking keeps the counter above zero so a double release would show
    book(headers, package["id"], adults=3)
    booking = book(headers, package["id"], adults=2).json()["data"]["booking"]
    assert _package_slots(client, package["id"]) == 5

    res = client.post(f"/api/bookings/{booking['id']}/reject", json={"reason": "Dates unavailable"}, headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["data"]["booking"]["approval"]["rejection_reason"] == "Dates unavailable"
    assert _package_slots(client, package["id"]) == 3

    assert client.post(f"/api/bookings/{booking['id']}/approve", headers=admin_headers).status_code == 400
    assert client.post(f"/api/bookings/{booking['id']}/payment/create-order", headers=headers).status_code == 400

    assert client.post(f"/api/bookings/{booking['id']}/cancel", headers=headers).status_code == 200
    assert _package_slots(client, package["id"]) == 3


def test_cancel_permissions(client, register, make_package, book):
    owner, _ = register("owner@example.com")
    stranger, _ = register("stranger@example.com")
    outsider_agent, _ = register("outsider@example.com", role="agent")
    _, booking = _create_booking(client, owner, make_package, book)

    assert client.post(f"/api/bookings/{booking['id']}/cancel", headers=stranger).status_code == 403
    assert client.post(f"/api/bookings/{booking['id']}/cancel", headers=outsider_agent).status_code == 403


def _pay(client, headers, booking) -> dict:
    order = client.post(f"/api/bookings/{booking['id']}/payment/create-order", headers=headers).json()["data"]
    body = {
        "razorpay_order_id": order["order_id"],
        "razorpay_payment_id": "pay_abc",
        "razorpay_signature": expected_signature(RAZORPAY_SECRET, order["order_id"], "pay_abc"),
    }
    res = client.post(f"/api/bookings/{booking['id']}/payment/verify", json=body, headers=headers)
    assert res.status_code == 200, res.text
    return res.json()["data"]["booking"]


def test_cancelling_paid_booking_records_refund(client, customer, make_package, book):
    headers, _ = customer
    _, booking = _create_booking(client, headers, make_package, book, adults=2, children=1)
    _pay(client, headers, booking)

    res = client.post(f"/api/bookings/{booking['id']}/cancel", headers=headers)
    assert res.status_code == 200
    cancelled = res.json()["data"]["booking"]
    assert cancelled["payment"]["status"] == "refunded"
    assert cancelled["payment"]["refund_amount"] == 3540
    assert cancelled["cancellation"]["refund_percentage"] == 100


def test_complete_requires_confirmed(client, customer, admin_headers, make_package, book):
    headers, _ = customer
    _, booking = _create_booking(client, headers, make_package, book)

    res = client.post(f"/api/bookings/{booking['id']}/complete", headers=admin_headers)
    assert res.status_code == 400

    _pay(client, headers, booking)
    res = client.post(f"/api/bookings/{booking['id']}/complete", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["data"]["booking"]["status"] == "completed"

    assert client.post(f"/api/bookings/{booking['id']}/cancel", headers=headers).status_code == 400


def test_paid_booking_cannot_be_rejected(client, customer, admin_headers, make_package, book):
    headers, _ = customer
    package, booking = _create_booking(client, headers, make_package, book, adults=2)
    _pay(client, headers, booking)

    res = client.post(f"/api/bookings/{booking['id']}/reject", json={"reason": "Overbooked"}, headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Paid bookings must be cancelled so the payment is refunded"
    assert _package_slots(client, package["id"]) == 2

    stored = client.get(f"/api/bookings/{booking['id']}", headers=headers).json()["data"]["booking"]
    assert stored["approval"]["status"] == "pending"
    assert stored["slots_released"] is False

    res = client.post(f"/api/bookings/{booking['id']}/complete", headers=admin_headers)
    assert res.status_code == 200
    review = {"rating": 4, "comment": "Smooth trip"}
    assert client.post(f"/api/bookings/{booking['id']}/reviews", json=review, headers=headers).status_code == 201


def test_rejected_booking_cannot_be_completed(client, customer, admin_headers, make_package, book):
    headers, _ = customer
    package, booking = _create_booking(client, headers, make_package, book)

    res = client.post(f"/api/bookings/{booking['id']}/reject", headers=admin_headers)
    assert res.status_code == 200
    assert _package_slots(client, package["id"]) == 0

    # Neither payment nor a manual confirmation can revive it
    assert client.post(f"/api/bookings/{booking['id']}/payment/create-order", headers=headers).status_code == 400
    res = client.put(f"/api/admin/bookings/{booking['id']}/status", json={"status": "confirmed"}, headers=admin_headers)
    assert res.status_code == 400
    res = client.post(f"/api/bookings/{booking['id']}/complete", headers=admin_headers)
    assert res.status_code == 400

    stored = client.get(f"/api/bookings/{booking['id']}", headers=headers).json()["data"]["booking"]
    assert stored["status"] == "pending"
    assert stored["approval"]["status"] == "rejected"


def test_only_pending_bookings_can_be_rejected(client, customer, admin_headers, make_package, book):
    headers, _ = customer
    _, booking = _create_booking(client, headers, make_package, book)
    res = client.put(
        f"/api/admin/bookings/{booking['id']}/status",
        json={"status": "confirmed", "notes": "Paid in cash at the office"},
        headers=admin_headers,
    )
    assert res.status_code == 200

    res = client.post(f"/api/bookings/{booking['id']}/reject", headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Cannot reject a confirmed booking"


def test_admin_status_override(client, customer, admin_headers, make_package, book):
    headers, _ = customer
    _, booking = _create_booking(client, headers, make_package, book)

    res = client.put(
        f"/api/admin/bookings/{booking['id']}/status",
        json={"status": "confirmed", "notes": "Paid in cash at the office"},
        headers=admin_headers,
    )
    assert res.status_code == 200
    assert res.json()["data"]["booking"]["status"] == "confirmed"

    res = client.put(f"/api/admin/bookings/{booking['id']}/status", json={"status": "pending"}, headers=admin_headers)
    assert res.status_code == 400


# ==================== EMBEDDED REVIEWS / DOCUMENTS ====================


def test_embedded_review_only_after_completion_by_owner(client, register, admin_headers, make_package, book):
    owner, _ = register("owner@example.com")
    stranger, _ = register("stranger@example.com")
    _, booking = _create_booking(client, owner, make_package, book)
    review = {"rating": 5, "comment": "Wonderful trip"}

    res = client.post(f"/api/bookings/{booking['id']}/reviews", json=review, headers=owner)
    assert res.status_code == 400

    _pay(client, owner, booking)
    client.post(f"/api/bookings/{booking['id']}/complete", headers=admin_headers)

    assert client.post(f"/api/bookings/{booking['id']}/reviews", json=review, headers=stranger).status_code == 403
    res = client.post(f"/api/bookings/{booking['id']}/reviews", json=review, headers=owner)
    assert res.status_code == 201
    assert res.json()["data"]["booking"]["reviews"][0]["rating"] == 5


def test_add_document(client, register, make_package, book):
    owner, _ = register("owner@example.com")
    stranger, _ = register("stranger@example.com")
    _, booking = _create_booking(client, owner, make_package, book)
    document = {"type": "passport", "name": "Passport scan", "url": "https://files.example.com/passport.pdf"}

    assert client.post(f"/api/bookings/{booking['id']}/documents", json=document, headers=stranger).status_code == 403
    res = client.post(f"/api/bookings/{booking['id']}/documents", json=document, headers=owner)
    assert res.status_code == 201
    assert res.json()["data"]["booking"]["documents"][0]["type"] == "passport"


def test_admin_dashboard_counts_revenue(client, customer, admin_headers, make_package, book):
    headers, _ = customer
    _, booking = _create_booking(client, headers, make_package, book, adults=2, children=1)
    _pay(client, headers, booking)

    res = client.get("/api/admin/dashboard", headers=admin_headers)
    assert res.status_code == 200
    stats = res.json()["data"]["statistics"]
    assert stats["bookings"]["total"] == 1
    assert stats["bookings"]["total_revenue"] == 3540
    assert stats["packages"]["approved"] == 1
    assert stats["users"]["total"] == 2
