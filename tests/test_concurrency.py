import datetime
import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from tourbooking import crud, models, schemas
from tourbooking.database import Base
from tourbooking.exceptions import InsufficientSlotsError, PersistenceError

SLOTS = 3
REQUESTS = 12


@pytest.fixture
def file_sessionmaker(tmp_path):
    """
    A database file shared by real, separate connections. The in-memory
    StaticPool engine used elsewhere hands every thread the same connection.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'concurrency.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def scarce_package_id(file_sessionmaker):
    db = file_sessionmaker()
    db.add(models.UserProfile(id="user-1", full_name="Abebe Kebede", role=models.UserRole.TRAVELER))
    destination = models.Destination(name="Lalibela", description="Rock-hewn churches.", country="Ethiopia")
    db.add(destination)
    db.flush()
    package = models.Package(
        destination_id=destination.id,
        title="Lalibela Pilgrimage",
        description="Three days among the churches.",
        duration_days=3,
        price=Decimal("8000.00"),
        max_participants=10,
        available_slots=SLOTS,
        difficulty_level=models.DifficultyLevel.EASY,
    )
    db.add(package)
    db.commit()
    package_id = package.id
    db.close()
    return package_id


def test_concurrent_bookings_never_oversell(file_sessionmaker, scarce_package_id):
    travel_date = datetime.date.today() + datetime.timedelta(days=30)
    start = threading.Barrier(REQUESTS)

    def book_one_slot(_):
        db = file_sessionmaker()
        request = schemas.BookingCreate(
            package_id=scarce_package_id,
            travel_date=travel_date,
            participants=1,
            payment_method=models.PaymentMethod.CBE_BIRR,
        )
        try:
            start.wait()
            crud.create_booking(db, request, "user-1")
            return "booked"
        except InsufficientSlotsError:
            return "sold_out"
        except PersistenceError:
            # SQLite gave up waiting for the write lock; nothing was written
            return "busy"
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=REQUESTS) as pool:
        outcomes = list(pool.map(book_one_slot, range(REQUESTS)))

    booked = outcomes.count("booked")
    assert 1 <= booked <= SLOTS

    db = file_sessionmaker()
    try:
        assert db.get(models.Package, scarce_package_id).available_slots == SLOTS - booked
        assert db.query(models.Booking).count() == booked
        assert db.query(models.Payment).count() == booked
    finally:
        db.close()
