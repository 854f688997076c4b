import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_tourbooking.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ALGORITHM", "HS256")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from unittest.mock import MagicMock, AsyncMock

from tourbooking.main import app
from tourbooking.config import settings
from tourbooking.database import Base, get_db, get_redis_client
from tourbooking.routers import booking_router
from tourbooking import models

# --- Test Database Setup ---
# One in-memory database shared by every connection of the pool
engine = create_engine(
    "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Fresh tables for every test. The workflows commit and roll back for real,
    so the tables are recreated instead of wrapping the test in a transaction.
    """
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


# --- Mocking External Services ---
@pytest.fixture(scope="function", autouse=True)
def mock_background_tasks(mocker):
    """
    Mocks the background tasks and the Redis-backed limiter started in the lifespan.
    """
    mocker.patch("tourbooking.main.run_outbox_poller", new_callable=AsyncMock)
    mocker.patch("tourbooking.main.run_booking_scheduler", new_callable=AsyncMock)
    mocker.patch("tourbooking.main.FastAPILimiter.init", new_callable=AsyncMock)


@pytest.fixture
def redis_client():
    """A Redis stand-in that always misses."""
    client = MagicMock()
    client.get.return_value = None
    return client


# --- API Test Client Fixture ---
@pytest.fixture(scope="function")
def client(db_session, redis_client):
    def override_get_db():
        yield db_session

    def override_get_redis_client():
        yield redis_client

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis_client] = override_get_redis_client
    app.dependency_overrides[booking_router.create_booking_limiter] = lambda: None
    app.dependency_overrides[booking_router.read_bookings_limiter] = lambda: None

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


# --- Auth ---
@pytest.fixture
def make_auth_headers():
    def _make(user_id: str = "user-1") -> dict:
        token = jwt.encode({"sub": user_id}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
        return {"Authorization": f"Bearer {token}"}
    return _make


@pytest.fixture
def auth_headers(make_auth_headers, traveler):
    return make_auth_headers(traveler.id)


@pytest.fixture
def admin_headers(make_auth_headers, admin):
    return make_auth_headers(admin.id)


# --- Seed data ---
@pytest.fixture
def traveler(db_session):
    profile = models.UserProfile(id="user-1", full_name="Abebe Kebede", role=models.UserRole.TRAVELER)
    db_session.add(profile)
    db_session.commit()
    return profile


@pytest.fixture
def admin(db_session):
    profile = models.UserProfile(id="admin-1", full_name="Site Admin", role=models.UserRole.ADMIN)
    db_session.add(profile)
    db_session.commit()
    return profile


@pytest.fixture
def destination(db_session):
    db_destination = models.Destination(
        name="Simien Mountains",
        description="Highlands, gelada baboons and deep escarpments.",
        country="Ethiopia",
        popular=True,
    )
    db_session.add(db_destination)
    db_session.commit()
    return db_destination


@pytest.fixture
def make_package(db_session, destination):
    def _make(**overrides) -> models.Package:
        fields = dict(
            destination_id=destination.id,
            title="Simien Trek",
            description="Five days walking the Simien escarpment.",
            duration_days=5,
            price=Decimal("10000.00"),
            max_participants=10,
            available_slots=5,
            includes=["Guide", "Camping gear"],
            excludes=["Flights"],
            itinerary=[{"day": 1, "title": "Debark to Sankaber", "activities": ["Hike", "Camp"]}],
            difficulty_level=models.DifficultyLevel.MODERATE,
            active=True,
            featured=False,
        )
        fields.update(overrides)
        db_package = models.Package(**fields)
        db_session.add(db_package)
        db_session.commit()
        db_session.refresh(db_package)
        return db_package
    return _make


@pytest.fixture
def package(make_package):
    return make_package()


@pytest.fixture
def future_date():
    return datetime.date.today() + datetime.timedelta(days=30)
