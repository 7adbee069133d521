import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# Must be set before the service modules are imported.
TEST_DB_PATH = os.path.join(tempfile.gettempdir(), "conference_service_test.db")
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"
os.environ["TESTING"] = "1"
os.environ.pop("REDIS_URL", None)

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from conference_service import models
from conference_service.database import Base, SessionLocal, engine
from conference_service.intervals import utcnow
from conference_service.main import app
from conference_service.settings import ALGORITHM, SECRET_KEY


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def tomorrow_at():
    """Return a factory for naive-UTC datetimes tomorrow at a given hour."""
    base = (utcnow() + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)

    def _at(hour: int, minute: int = 0) -> datetime:
        return base + timedelta(hours=hour, minutes=minute)

    return _at


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role: models.UserRole = models.UserRole.USER, name: str = None) -> models.User:
        counter["n"] += 1
        user = models.User(
            name=name or f"user{counter['n']}",
            email=f"user{counter['n']}@example.com",
            password_hash="not-a-real-hash",
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_room(db):
    def _make(name: str = "Room A", capacity: int = 10, equipment: str = "") -> models.Room:
        room = models.Room(name=name, capacity=capacity, equipment=equipment)
        db.add(room)
        db.commit()
        db.refresh(room)
        return room

    return _make


@pytest.fixture
def make_booking(db):
    def _make(room: models.Room, user: models.User, start: datetime, end: datetime) -> models.Booking:
        booking = models.Booking(
            room_id=room.id,
            user_id=user.id,
            start_date=start,
            end_date=end,
            status=models.BookingStatus.CONFIRMED,
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    return _make


def make_token(user_id: int, role: str = "User", minutes: int = 30) -> str:
    payload = {
        "sub": str(user_id),
        "user_id": user_id,
        "name": f"user{user_id}",
        "email": f"user{user_id}@example.com",
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


@pytest.fixture
def auth_headers():
    """Build Authorization headers for a user id and role."""

    def _headers(user_id: int, role: str = "User") -> dict:
        return {"Authorization": f"Bearer {make_token(user_id, role)}"}

    return _headers
