import os
from typing import List, Tuple

# Set testing environment before the app is imported
os.environ["TESTING"] = "1"
os.environ.setdefault("TEST_DATABASE_URL", "sqlite:///./test.db")

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.api.deps import get_ephemeral_store, get_mailer
from app.core.database import Base, SessionLocal, engine
from app.core.ephemeral_store import InMemoryEphemeralStore
from app.core.exceptions import MailDeliveryError
from app.core.security import UserRole
from app.models.doctor import Doctor
from app.models.slot import Slot
from app.models.user import User
from app.services.email_service import Mailer
from datetime import datetime, timedelta


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingMailer(Mailer):
    def __init__(self):
        self.sent: List[Tuple[str, str, str]] = []
        self.otps: List[Tuple[str, str]] = []

    def send(self, to_email: str, subject: str, html_body: str) -> None:
        self.sent.append((to_email, subject, html_body))

    def send_otp(self, to_email: str, otp: str, ttl_minutes: int) -> None:
        self.otps.append((to_email, otp))
        super().send_otp(to_email, otp, ttl_minutes)

    def last_otp_for(self, email: str) -> str:
        return [code for to, code in self.otps if to == email][-1]


class FailingMailer(Mailer):
    def send(self, to_email: str, subject: str, html_body: str) -> None:
        raise MailDeliveryError()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryEphemeralStore(clock=clock)


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture(scope="function")
def test_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(test_db, store, mailer):
    app.dependency_overrides[get_ephemeral_store] = lambda: store
    app.dependency_overrides[get_mailer] = lambda: mailer
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def db_session(test_db):
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def register_and_login(client, email: str, role: str = "patient", password: str = "TestPassword123") -> dict:
    """Register a user through the API and return bearer auth headers."""
    response = client.post("/api/v1/auth/register", json={
        "email": email,
        "password": password,
        "first_name": email.split("@")[0].title(),
        "role": role,
    })
    assert response.status_code == 201, response.text
    login = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert login.status_code == 200, login.text
    return {"Authorization": f"Bearer {login.json()['access_token']}"}


def seed_slot(approved: bool = True, email: str = "doc@example.com") -> int:
    """Insert a doctor and one future slot directly; returns the slot id."""
    db = SessionLocal()
    try:
        user = User(
            email=email,
            password_hash="not-a-real-hash",
            first_name="Doc",
            role=UserRole.DOCTOR,
        )
        db.add(user)
        db.flush()
        doctor = Doctor(
            user_id=user.id,
            specialization="Cardiology",
            consultation_fee=500,
            mode="both",
            is_approved=approved,
            is_active=True,
        )
        db.add(doctor)
        db.flush()
        start = datetime(2030, 1, 1, 9, 0)
        slot = Slot(doctor_id=doctor.id, start_time=start, end_time=start + timedelta(minutes=30))
        db.add(slot)
        db.commit()
        return slot.id
    finally:
        db.close()
