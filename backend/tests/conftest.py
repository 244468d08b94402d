"""
Shared fixtures: an app wired to an in-memory MongoDB (mongomock-motor) and a
Razorpay client whose network layer is an httpx.MockTransport.
"""

import json

import httpx
import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from pleasure_holidays.core.config import Settings
from pleasure_holidays.main import create_app
from pleasure_holidays.services.payments import PaymentGateway

ADMIN_EMAIL = "admin@pleasureholidays.in"
ADMIN_PASSWORD = "admin-secret"
RAZORPAY_KEY_ID = "rzp_test_key"
RAZORPAY_SECRET = "rzp_test_secret"
PASSWORD = "secret123"


@pytest.fixture
def settings():
    return Settings(
        environment="development",
        log_level="WARNING",
        mongodb_uri=None,
        database_name="pleasure_holidays_test",
        jwt_secret="test-jwt-secret",
        bcrypt_rounds=4,
        razorpay_key_id=RAZORPAY_KEY_ID,
        razorpay_key_secret=RAZORPAY_SECRET,
        razorpay_api_url="https://razorpay.test/v1",
        rate_limit_enabled=False,
        admin_email=ADMIN_EMAIL,
        admin_password=ADMIN_PASSWORD,
    )


@pytest.fixture
def db():
    return AsyncMongoMockClient()["pleasure_holidays_test"]


@pytest.fixture
def gateway_calls():
    """Requests seen by the fake gateway, in order."""
    return []


@pytest.fixture
def gateway(settings, gateway_calls):
    def handler(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        gateway_calls.append(
            {"url": str(request.url), "auth": request.headers.get("authorization"), "payload": payload}
        )
        return httpx.Response(
            200,
            json={
                "id": f"order_test_{len(gateway_calls)}",
                "amount": payload["amount"],
                "currency": payload["currency"],
                "receipt": payload["receipt"],
                "status": "created",
            },
        )

    return PaymentGateway(
        key_id=settings.razorpay_key_id,
        key_secret=settings.razorpay_key_secret,
        api_url=settings.razorpay_api_url,
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def client(settings, db, gateway):
    app = create_app(settings=settings, database=db, gateway=gateway)
    # Entering the context runs the lifespan: indexes and the bootstrap admin
    with TestClient(app) as c:
        yield c


def _headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def register(client):
    """register(email, role="customer") -> (headers, user)"""

    def _register(email: str, role: str = "customer", password: str = PASSWORD, **extra):
        body = {"first_name": "Test", "last_name": role.title(), "email": email, "password": password, "role": role}
        body.update(extra)
        res = client.post("/api/auth/register", json=body)
        assert res.status_code == 201, res.text
        data = res.json()["data"]
        return _headers(data["token"]), data["user"]

    return _register


@pytest.fixture
def login(client):
    def _login(email: str, password: str = PASSWORD):
        res = client.post("/api/auth/login", json={"email": email, "password": password})
        assert res.status_code == 200, res.text
        data = res.json()["data"]
        return _headers(data["token"]), data["user"]

    return _login


@pytest.fixture
def admin_headers(login):
    headers, _ = login(ADMIN_EMAIL, ADMIN_PASSWORD)
    return headers


@pytest.fixture
def customer(register):
    return register("customer@example.com")


@pytest.fixture
def agent(register):
    return register("agent@example.com", role="agent")


@pytest.fixture
def package_payload():
    def _payload(**overrides) -> dict:
        payload = {
            "name": "Goa Beach Escape",
            "description": "Five relaxed days on the beaches of North Goa",
            "destination": {"country": "India", "city": "Goa"},
            "duration": {"days": 5, "nights": 4},
            "pricing": {"base_price": 1000, "currency": "INR"},
            "inclusions": {"accommodation": "resort", "meals": ["breakfast"], "transportation": ["flight"]},
            "category": "beach",
            "total_slots": 10,
            "cancellation_policy": "Full refund up to 7 days before departure",
            "tags": ["beach", "sun"],
        }
        payload.update(overrides)
        return payload

    return _payload


@pytest.fixture
def make_package(client, admin_headers, package_payload):
    """Create a package; by default as admin, which approves it on creation."""

    def _make(headers: dict | None = None, **overrides) -> dict:
        res = client.post("/api/packages", json=package_payload(**overrides), headers=headers or admin_headers)
        assert res.status_code == 201, res.text
        return res.json()["data"]["package"]

    return _make


@pytest.fixture
def travel_details():
    def _details(adults: int = 1, children: int = 0, infants: int = 0) -> dict:
        return {
            "start_date": "2026-12-01T00:00:00Z",
            "end_date": "2026-12-06T00:00:00Z",
            "number_of_travelers": {"adults": adults, "children": children, "infants": infants},
        }

    return _details


@pytest.fixture
def book(client, travel_details):
    """book(headers, package_id, adults=1, ...) -> response"""

    def _book(headers: dict, package_id: str, adults: int = 1, children: int = 0, infants: int = 0, **extra):
        body = {"package_id": package_id, "travel_details": travel_details(adults, children, infants)}
        body.update(extra)
        return client.post("/api/bookings", json=body, headers=headers)

    return _book
