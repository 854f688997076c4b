from sqlalchemy import (
    Column, Integer, String, Text, Numeric, Boolean, Date, TIMESTAMP, JSON, ForeignKey,
    CheckConstraint, UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum
from sqlalchemy import Enum as SQLEnum
import datetime

from .database import Base


def _values(enum_cls):
    # Store the lowercase values, not the member names
    return [member.value for member in enum_cls]


# --- Enums ---
class UserRole(PyEnum):
    TRAVELER = "traveler"
    ADMIN = "admin"
    SYSTEM_ADMIN = "system_admin"


class DifficultyLevel(PyEnum):
    EASY = "easy"
    MODERATE = "moderate"
    CHALLENGING = "challenging"


class BookingStatus(PyEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PaymentMethod(PyEnum):
    CHAPA = "chapa"
    TELEBIRR = "telebirr"
    CBE_BIRR = "cbe_birr"
    CREDIT_CARD = "credit_card"


class PaymentStatus(PyEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


ADMIN_ROLES = {UserRole.ADMIN, UserRole.SYSTEM_ADMIN}


# --- User Profile ---
class UserProfile(Base):
    __tablename__ = "user_profiles"

    # Same id as the identity provider's subject
    id = Column(String(64), primary_key=True)
    full_name = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=True)
    role = Column(SQLEnum(UserRole, values_callable=_values), default=UserRole.TRAVELER, nullable=False)

    created_at = Column(TIMESTAMP, default=datetime.datetime.utcnow)
    updated_at = Column(TIMESTAMP, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    bookings = relationship("Booking", back_populates="user")


# --- Destination ---
class Destination(Base):
    __tablename__ = "destinations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    country = Column(String(128), nullable=False)
    image_url = Column(String(512), nullable=True)
    popular = Column(Boolean, default=False, nullable=False)

    created_at = Column(TIMESTAMP, default=datetime.datetime.utcnow)
    updated_at = Column(TIMESTAMP, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    packages = relationship("Package", back_populates="destination")


# --- Package (tour product) ---
class Package(Base):
    __tablename__ = "packages"

    id = Column(Integer, primary_key=True, index=True)
    destination_id = Column(Integer, ForeignKey("destinations.id"), index=True, nullable=False)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    duration_days = Column(Integer, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)

    # Capacity
    max_participants = Column(Integer, nullable=False)
    available_slots = Column(Integer, nullable=False)

    # Lists of strings, itinerary is a list of {day, title, activities}
    includes = Column(JSON, nullable=True)
    excludes = Column(JSON, nullable=True)
    itinerary = Column(JSON, nullable=True)

    difficulty_level = Column(
        SQLEnum(DifficultyLevel, values_callable=_values), default=DifficultyLevel.MODERATE, nullable=False
    )
    image_url = Column(String(512), nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    featured = Column(Boolean, default=False, nullable=False)

    created_at = Column(TIMESTAMP, default=datetime.datetime.utcnow)
    updated_at = Column(TIMESTAMP, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    destination = relationship("Destination", back_populates="packages")
    bookings = relationship("Booking", back_populates="package")

    __table_args__ = (
        CheckConstraint("available_slots >= 0", name="ck_packages_slots_non_negative"),
        CheckConstraint("available_slots <= max_participants", name="ck_packages_slots_within_capacity"),
        Index("ix_packages_active_created", "active", "created_at"),
    )


# --- Booking ---
class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), ForeignKey("user_profiles.id"), index=True, nullable=False)
    package_id = Column(Integer, ForeignKey("packages.id"), index=True, nullable=False)

    booking_date = Column(TIMESTAMP, default=datetime.datetime.utcnow, nullable=False)
    travel_date = Column(Date, nullable=False)
    participants = Column(Integer, nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(
        SQLEnum(BookingStatus, values_callable=_values), default=BookingStatus.PENDING, nullable=False
    )
    special_requests = Column(Text, nullable=True)

    # Client supplied, deduplicates repeated submissions
    idempotency_key = Column(String(128), nullable=True)

    created_at = Column(TIMESTAMP, default=datetime.datetime.utcnow)
    updated_at = Column(TIMESTAMP, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    user = relationship("UserProfile", back_populates="bookings")
    package = relationship("Package", back_populates="bookings")
    payments = relationship("Payment", back_populates="booking", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("participants >= 1", name="ck_bookings_participants_positive"),
        UniqueConstraint("user_id", "idempotency_key", name="uq_bookings_user_idempotency_key"),
        Index("ix_bookings_status", "status"),
    )


# --- Payment ---
class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), unique=True, nullable=False)

    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(SQLEnum(PaymentMethod, values_callable=_values), nullable=False)
    transaction_id = Column(String(64), unique=True, nullable=True)
    status = Column(
        SQLEnum(PaymentStatus, values_callable=_values), default=PaymentStatus.PENDING, nullable=False
    )
    payment_date = Column(TIMESTAMP, nullable=True)

    created_at = Column(TIMESTAMP, default=datetime.datetime.utcnow)

    booking = relationship("Booking", back_populates="payments")


# --- Review ---
class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), ForeignKey("user_profiles.id"), index=True, nullable=False)
    package_id = Column(Integer, ForeignKey("packages.id"), index=True, nullable=True)
    destination_id = Column(Integer, ForeignKey("destinations.id"), index=True, nullable=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=False)

    created_at = Column(TIMESTAMP, default=datetime.datetime.utcnow)
    updated_at = Column(TIMESTAMP, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    user = relationship("UserProfile")

    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
    )


# --- Outbox ---
class OutboxEvent(Base):
    __tablename__ = "outbox_events"

    id = Column(Integer, primary_key=True, index=True)

    # PENDING until the poller has published it
    status = Column(String(20), default="PENDING", nullable=False)
    topic = Column(String(255), nullable=False)
    payload = Column(Text, nullable=False)

    created_at = Column(TIMESTAMP, default=datetime.datetime.utcnow)

    __table_args__ = (
        Index('ix_outbox_events_status', 'status'),
    )
