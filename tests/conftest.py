from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from app import create_app
from booking_schemas import AuthUser
from config import Settings
from payments.gateways import MockGateway
from persistence.db import init_db, make_engine, make_session_factory
from persistence.store import Store
from services import Services


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self._payload = payload or {"id": "email_123"}
        self.text = str(self._payload)

    def json(self):
        return self._payload


class FakeEmailSession:
    """Records Resend calls instead of sending them."""

    def __init__(self, status_code=200):
        self.status_code = status_code
        self.sent = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.sent.append({"url": url, "json": json, "headers": headers})
        return FakeResponse(self.status_code)


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        payment_env="mock",
        resend_api_key="re_test_key",
        profile_fetch_attempts=2,
        profile_fetch_delay=0,
    )


@pytest.fixture
def store():
    engine = make_engine("sqlite://")
    init_db(engine)
    return Store(make_session_factory(engine))


@pytest.fixture
def gateway():
    return MockGateway()


@pytest.fixture
def email_session():
    return FakeEmailSession()


@pytest.fixture
def services(settings, store, gateway, email_session):
    svc = Services(settings, store, gateway, email_session=email_session)
    svc.bookings.profile_reads.sleep = lambda seconds: None
    return svc


@pytest.fixture
def tourist(store):
    return store.insert("profiles", {
        "email": "amani@example.com",
        "full_name": "Amani Uwase",
        "phone": "+250788000111",
        "role": "tourist",
    })


@pytest.fixture
def admin(store):
    return store.insert("profiles", {"email": "admin@example.com", "full_name": "Site Admin", "role": "admin"})


@pytest.fixture
def user(tourist):
    return AuthUser(id=tourist["id"], email=tourist["email"])


@pytest.fixture
def hotel(store):
    return store.insert("hotels", {
        "name": "Lake Kivu Serena",
        "location": "Gisenyi",
        "price_per_night": 50000,
        "status": "approved",
    })


@pytest.fixture
def rejected_hotel(store):
    return store.insert("hotels", {"name": "Closed Lodge", "price_per_night": 30000, "status": "rejected"})


@pytest.fixture
def tour(store):
    return store.insert("tours", {
        "name": "Gorilla Trekking",
        "duration_days": 2,
        "max_participants": 10,
        "price_per_person": 120000,
        "status": "approved",
    })


@pytest.fixture
def attraction(store):
    return store.insert("attractions", {
        "name": "Kigali Genocide Memorial",
        "location": "Kigali",
        "entry_fee": 5000,
    })


@pytest.fixture
def client(services):
    return TestClient(create_app(services=services))


@pytest.fixture
def age_booking(store):
    """Push a booking's created_at back in time."""
    def _age(booking_id, hours):
        record = store.get("bookings", booking_id)
        store.update("bookings", booking_id, {"created_at": record["created_at"] - timedelta(hours=hours)})
    return _age
