import os

# Settings are read at import time; point everything at throwaway local backends.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["CANCELLATION_TOKEN_SECRET"] = "test-cancellation-secret"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"  # never contacted: tasks run eagerly
os.environ["NOTIFICATIONS_EAGER"] = "true"
os.environ["ADMIN_NOTIFICATION_EMAIL"] = ""

import uuid
from datetime import date, datetime, timezone
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.core.security import create_access_token, hash_password
from app.db.session import Base, get_db
from app.main import app
from app.models.booking import Booking
from app.models.cancellation import CancellationRequest
from app.models.user import User
from app.services import cancellation_token

SECRET = "test-cancellation-secret"


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def notify_mock(monkeypatch):
    mock = MagicMock()
    monkeypatch.setattr("app.api.v1.routes.cancellations.notify_admin_of_request", mock)
    return mock


@pytest.fixture
def client(session_factory, notify_mock):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_booking(db):
    def _make(**overrides) -> Booking:
        fields = {
            "id": str(uuid.uuid4()),
            "order_number": "A0GWPTWH",
            "customer_email": "test@example.com",
            "customer_name": "Mario Rossi",
            "product_name": "Dog-friendly hike",
            "booking_date": date.today(),
            "trip_end_date": None,
            "status": "confirmed",
        }
        fields.update(overrides)
        booking = Booking(**fields)
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking
    return _make


@pytest.fixture
def booking(make_booking):
    return make_booking()


@pytest.fixture
def token_for():
    def _token(b: Booking, email: str | None = None, issued_at_ms: int | None = None, secret: str = SECRET) -> str:
        return cancellation_token.generate(b.id, b.order_number, email or b.customer_email, secret, issued_at_ms=issued_at_ms)
    return _token


@pytest.fixture
def make_request(db):
    def _make(b: Booking, status: str = "pending", requested_at: datetime | None = None) -> CancellationRequest:
        req = CancellationRequest(
            id=str(uuid.uuid4()),
            booking_id=b.id,
            token=cancellation_token.generate(b.id, b.order_number, b.customer_email, SECRET),
            order_number=b.order_number,
            customer_email=b.customer_email,
            customer_name=b.customer_name,
            status=status,
            requested_at=requested_at or datetime.now(timezone.utc),
        )
        db.add(req)
        db.commit()
        return req
    return _make


@pytest.fixture
def staff_user(db):
    user = User(
        id=str(uuid.uuid4()),
        email="ops@example.com",
        full_name="Ops",
        role="ops",
        password_hash=hash_password("ops-password"),
        is_active=True,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def staff_headers(staff_user):
    return {"Authorization": f"Bearer {create_access_token(staff_user.id)}"}


@pytest.fixture
def admin_email(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_NOTIFICATION_EMAIL", "admin@example.com")
    return "admin@example.com"
