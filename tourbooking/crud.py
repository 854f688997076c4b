import json
import datetime
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from . import models, schemas, payments
from .booking_status import assert_transition
from .config import settings
from .exceptions import (
    TourBookingError,
    ValidationError,
    InsufficientSlotsError,
    IdempotencyKeyReusedError,
    NotFoundError,
    PermissionDeniedError,
    PaymentDeclinedError,
    PersistenceError,
)

logger = logging.getLogger("tour_booking")

# (inclusive lower bound, exclusive upper bound)
PRICE_RANGES = {
    schemas.PriceRange.LOW: (None, Decimal("10000")),
    schemas.PriceRange.MEDIUM: (Decimal("10000"), Decimal("25000")),
    schemas.PriceRange.HIGH: (Decimal("25000"), None),
}


def matches_price_range(price, price_range: schemas.PriceRange) -> bool:
    low, high = PRICE_RANGES[price_range]
    price = Decimal(str(price))
    if low is not None and price < low:
        return False
    if high is not None and price >= high:
        return False
    return True


# --- Catalog ---

def get_packages(
        db: Session,
        destination_id: Optional[int] = None,
        featured: Optional[bool] = None,
        search: Optional[str] = None,
        price_range: Optional[schemas.PriceRange] = None,
        difficulty: Optional[models.DifficultyLevel] = None,
        skip: int = 0,
        limit: int = 100,
) -> list[models.Package]:
    """
    Active packages, newest first, narrowed by the optional filters.
    `search` is a case-insensitive substring match on title or description.
    """
    query = db.query(models.Package).options(joinedload(models.Package.destination)).filter(
        models.Package.active.is_(True)
    )

    if destination_id is not None:
        query = query.filter(models.Package.destination_id == destination_id)
    if featured is not None:
        query = query.filter(models.Package.featured.is_(featured))
    if search:
        term = search.lower()
        query = query.filter(or_(
            func.lower(models.Package.title).contains(term, autoescape=True),
            func.lower(models.Package.description).contains(term, autoescape=True),
        ))
    if price_range is not None:
        low, high = PRICE_RANGES[price_range]
        if low is not None:
            query = query.filter(models.Package.price >= low)
        if high is not None:
            query = query.filter(models.Package.price < high)
    if difficulty is not None:
        query = query.filter(models.Package.difficulty_level == difficulty)

    return query.order_by(
        models.Package.created_at.desc(), models.Package.id.desc()
    ).offset(skip).limit(limit).all()


def get_featured_packages(db: Session, limit: int = 3) -> list[models.Package]:
    return get_packages(db, featured=True, limit=limit)


def get_package(db: Session, package_id: int, active_only: bool = True) -> Optional[models.Package]:
    query = db.query(models.Package).options(joinedload(models.Package.destination)).filter(
        models.Package.id == package_id
    )
    if active_only:
        query = query.filter(models.Package.active.is_(True))
    return query.first()


def get_destinations(db: Session, popular: Optional[bool] = None, limit: Optional[int] = None):
    query = db.query(models.Destination)
    if popular is not None:
        query = query.filter(models.Destination.popular.is_(popular))
    query = query.order_by(models.Destination.name)
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def get_reviews(db: Session, package_id: Optional[int] = None, destination_id: Optional[int] = None):
    query = db.query(models.Review)
    if package_id is not None:
        query = query.filter(models.Review.package_id == package_id)
    if destination_id is not None:
        query = query.filter(models.Review.destination_id == destination_id)
    return query.order_by(models.Review.created_at.desc()).all()


# --- Helpers for the booking workflows ---

def _adjust_available_slots(db: Session, package_id: int, delta: int) -> bool:
    """
    Moves `available_slots` by `delta` in a single conditional UPDATE so the
    counter never leaves [0, max_participants]. Returns False when no row
    matched, i.e. the change would have crossed a bound.
    Does NOT commit.
    """
    stmt = update(models.Package).where(models.Package.id == package_id)
    if delta < 0:
        stmt = stmt.where(
            models.Package.active.is_(True),
            models.Package.available_slots >= -delta,
        )
    else:
        stmt = stmt.where(models.Package.available_slots + delta <= models.Package.max_participants)

    stmt = stmt.values(available_slots=models.Package.available_slots + delta).execution_options(
        synchronize_session=False
    )
    result = db.execute(stmt)
    return result.rowcount == 1


def _current_available_slots(db: Session, package_id: int) -> int:
    slots = db.query(models.Package.available_slots).filter(models.Package.id == package_id).scalar()
    return slots or 0


def _add_booking_event(db: Session, event: str, db_booking: models.Booking):
    """
    Adds an event to the outbox. Does NOT commit: it is written in the same
    transaction as the booking change it describes.
    """
    payload = {
        "event": event,
        "booking_id": db_booking.id,
        "package_id": db_booking.package_id,
        "user_id": db_booking.user_id,
        "participants": db_booking.participants,
        "status": db_booking.status.value,
    }
    db.add(models.OutboxEvent(
        topic=settings.KAFKA_BOOKING_TOPIC,
        payload=json.dumps(payload),
        status="PENDING"
    ))


def get_booking(db: Session, booking_id: int) -> Optional[models.Booking]:
    return db.query(models.Booking).options(
        joinedload(models.Booking.package), selectinload(models.Booking.payments)
    ).filter(models.Booking.id == booking_id).first()


def get_booking_by_idempotency_key(db: Session, user_id: str, idempotency_key: str) -> Optional[models.Booking]:
    return db.query(models.Booking).filter(
        models.Booking.user_id == user_id,
        models.Booking.idempotency_key == idempotency_key
    ).first()


def _replayed_booking(db: Session, booking: schemas.BookingCreate, user_id: str) -> Optional[models.Booking]:
    """
    Returns the booking previously created with the same idempotency key, or
    None. A key reused with a different package, date or party size is rejected.
    """
    existing = get_booking_by_idempotency_key(db, user_id, booking.idempotency_key)
    if existing is None:
        return None

    if (existing.package_id, existing.travel_date, existing.participants) != \
            (booking.package_id, booking.travel_date, booking.participants):
        raise IdempotencyKeyReusedError(
            f"Idempotency key {booking.idempotency_key} was already used for booking {existing.id}."
        )

    logger.info(f"Replaying booking {existing.id} for idempotency key {booking.idempotency_key}")
    return existing


# --- Booking writer ---

def create_booking(db: Session, booking: schemas.BookingCreate, user_id: str) -> models.Booking:
    """
    Books a package in one transaction: reserve slots, insert the booking,
    charge and record the payment, confirm. Either every write commits or
    none does.
    """
    idempotency_key = booking.idempotency_key or None
    if idempotency_key is not None:
        existing = _replayed_booking(db, booking, user_id)
        if existing is not None:
            return existing

    if booking.travel_date < datetime.date.today():
        raise ValidationError("Travel date must be today or later.")

    db_package = get_package(db, booking.package_id)
    if db_package is None:
        raise NotFoundError(f"Package {booking.package_id} not found.")

    # Fast rejection before any write. The conditional update below is what
    # actually guards against concurrent bookings.
    if booking.participants > db_package.available_slots:
        raise InsufficientSlotsError(booking.package_id, booking.participants, db_package.available_slots)

    total_amount = Decimal(db_package.price) * booking.participants

    try:
        # 1. Reserve the slots
        if not _adjust_available_slots(db, booking.package_id, -booking.participants):
            raise InsufficientSlotsError(
                booking.package_id, booking.participants, _current_available_slots(db, booking.package_id)
            )

        # 2. Insert the booking as pending
        db_booking = models.Booking(
            user_id=user_id,
            package_id=booking.package_id,
            travel_date=booking.travel_date,
            participants=booking.participants,
            total_amount=total_amount,
            status=models.BookingStatus.PENDING,
            special_requests=booking.special_requests or None,
            idempotency_key=idempotency_key,
        )
        db.add(db_booking)
        db.flush()

        # 3. Charge
        charge = payments.charge(booking.payment_method, total_amount, reference=f"booking-{db_booking.id}")
        if not charge.succeeded:
            raise PaymentDeclinedError(f"Payment via {booking.payment_method.value} was declined.")

        # 4. Record the payment
        db.add(models.Payment(
            booking_id=db_booking.id,
            amount=total_amount,
            payment_method=booking.payment_method,
            transaction_id=charge.transaction_id,
            status=models.PaymentStatus.COMPLETED,
            payment_date=charge.processed_at,
        ))

        # 5. Confirm
        assert_transition(db_booking.status, models.BookingStatus.CONFIRMED)
        db_booking.status = models.BookingStatus.CONFIRMED
        _add_booking_event(db, "booking_confirmed", db_booking)

        db.commit()
    except TourBookingError:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        # A concurrent request with the same key committed first
        if idempotency_key is not None:
            existing = _replayed_booking(db, booking, user_id)
            if existing is not None:
                return existing
        logger.error(f"Failed to create booking for package {booking.package_id}: {e}")
        raise PersistenceError("The booking could not be saved.") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to create booking for package {booking.package_id}: {e}")
        raise PersistenceError("The booking could not be saved.") from e

    db.refresh(db_booking)
    logger.info(
        f"Booking {db_booking.id} confirmed: package {db_booking.package_id}, "
        f"{db_booking.participants} participants, {db_booking.total_amount} {settings.CURRENCY}"
    )
    return db_booking


# --- Cancellation writer ---

def cancel_booking(db: Session, booking_id: int, user_id: str, is_admin: bool = False) -> models.Booking:
    """
    Cancels a booking and returns its participants to the package in one
    transaction. Travellers may only cancel trips that have not started.
    """
    db_booking = get_booking(db, booking_id)
    if db_booking is None:
        raise NotFoundError(f"Booking {booking_id} not found.")
    if db_booking.user_id != user_id and not is_admin:
        raise PermissionDeniedError("You can only cancel your own bookings.")

    assert_transition(db_booking.status, models.BookingStatus.CANCELLED)

    if not is_admin and db_booking.travel_date <= datetime.date.today():
        raise ValidationError("Only upcoming trips can be cancelled.")

    try:
        if not _adjust_available_slots(db, db_booking.package_id, db_booking.participants):
            raise PersistenceError(
                f"Releasing {db_booking.participants} slots would exceed the capacity of package {db_booking.package_id}."
            )

        db_booking.status = models.BookingStatus.CANCELLED
        for payment in db_booking.payments:
            if payment.status == models.PaymentStatus.COMPLETED:
                payment.status = models.PaymentStatus.REFUNDED

        _add_booking_event(db, "booking_cancelled", db_booking)
        db.commit()
    except TourBookingError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to cancel booking {booking_id}: {e}")
        raise PersistenceError("The booking could not be cancelled.") from e

    db.refresh(db_booking)
    logger.info(f"Booking {booking_id} cancelled, {db_booking.participants} slots released.")
    return db_booking


# --- Customer bookings ---

def get_bookings_by_user(
        db: Session,
        user_id: str,
        status: Optional[models.BookingStatus] = None,
        skip: int = 0,
        limit: int = 100,
) -> list[models.Booking]:
    query = db.query(models.Booking).options(
        joinedload(models.Booking.package), selectinload(models.Booking.payments)
    ).filter(models.Booking.user_id == user_id)
    if status is not None:
        query = query.filter(models.Booking.status == status)
    return query.order_by(
        models.Booking.created_at.desc(), models.Booking.id.desc()
    ).offset(skip).limit(limit).all()


def get_user_booking_stats(db: Session, user_id: str) -> schemas.UserBookingStats:
    rows = db.query(models.Booking.status, func.count(models.Booking.id)).filter(
        models.Booking.user_id == user_id
    ).group_by(models.Booking.status).all()
    counts = {status: count for status, count in rows}
    return schemas.UserBookingStats(
        total=sum(counts.values()),
        confirmed=counts.get(models.BookingStatus.CONFIRMED, 0),
        pending=counts.get(models.BookingStatus.PENDING, 0),
        completed=counts.get(models.BookingStatus.COMPLETED, 0),
    )


# --- Admin ---

def get_user_profile(db: Session, user_id: str) -> Optional[models.UserProfile]:
    return db.query(models.UserProfile).filter(models.UserProfile.id == user_id).first()


def count_users(db: Session) -> int:
    return db.query(func.count(models.UserProfile.id)).scalar() or 0


def sum_completed_payments(db: Session) -> Decimal:
    total = db.query(func.coalesce(func.sum(models.Payment.amount), 0)).filter(
        models.Payment.status == models.PaymentStatus.COMPLETED
    ).scalar()
    return Decimal(str(total))


def get_dashboard_stats(db: Session) -> schemas.DashboardStats:
    booking_statuses = [status for (status,) in db.query(models.Booking.status).all()]
    total_packages = db.query(func.count(models.Package.id)).scalar() or 0
    total_users = count_users(db)
    total_revenue = sum_completed_payments(db)

    return schemas.DashboardStats(
        total_bookings=len(booking_statuses),
        total_revenue=total_revenue,
        total_packages=total_packages,
        total_users=total_users,
        confirmed_bookings=booking_statuses.count(models.BookingStatus.CONFIRMED),
        pending_bookings=booking_statuses.count(models.BookingStatus.PENDING),
    )


def get_recent_bookings(db: Session, limit: int = 10) -> list[models.Booking]:
    return db.query(models.Booking).options(
        joinedload(models.Booking.package),
        joinedload(models.Booking.user),
        selectinload(models.Booking.payments),
    ).order_by(models.Booking.created_at.desc(), models.Booking.id.desc()).limit(limit).all()


def set_booking_status(db: Session, booking_id: int, new_status: models.BookingStatus) -> models.Booking:
    """
    Admin override of a booking's status. Only legal transitions are accepted.
    Slot counts are left untouched.
    """
    db_booking = get_booking(db, booking_id)
    if db_booking is None:
        raise NotFoundError(f"Booking {booking_id} not found.")

    assert_transition(db_booking.status, new_status)
    db_booking.status = new_status
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to update booking {booking_id} to {new_status.value}: {e}")
        raise PersistenceError("The booking status could not be updated.") from e

    db.refresh(db_booking)
    return db_booking


def toggle_package_active(db: Session, package_id: int) -> models.Package:
    db_package = get_package(db, package_id, active_only=False)
    if db_package is None:
        raise NotFoundError(f"Package {package_id} not found.")

    db_package.active = not db_package.active
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to toggle package {package_id}: {e}")
        raise PersistenceError("The package could not be updated.") from e

    db.refresh(db_package)
    return db_package


# --- Functions for the scheduler ---

def get_finished_bookings(db: Session, today: datetime.date) -> list[models.Booking]:
    """
    Confirmed bookings whose trip (travel date + package duration) has ended
    by `today`.
    """
    candidates = db.query(models.Booking).options(joinedload(models.Booking.package)).filter(
        models.Booking.status == models.BookingStatus.CONFIRMED,
        models.Booking.travel_date <= today
    ).all()
    return [
        b for b in candidates
        if b.travel_date + datetime.timedelta(days=b.package.duration_days) <= today
    ]


def mark_booking_completed(db: Session, db_booking: models.Booking):
    """
    Moves a booking to completed and records the event.
    Note: Does NOT commit. The calling scheduler function is responsible for the commit.
    """
    assert_transition(db_booking.status, models.BookingStatus.COMPLETED)
    db_booking.status = models.BookingStatus.COMPLETED
    _add_booking_event(db, "booking_completed", db_booking)
