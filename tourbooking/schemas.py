from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from enum import Enum
import datetime

from .models import BookingStatus, DifficultyLevel, PaymentMethod, PaymentStatus


class PriceRange(str, Enum):
    LOW = "low"          # under 10,000
    MEDIUM = "medium"    # 10,000 - 24,999
    HIGH = "high"        # 25,000 and over


# --- Catalog ---

class ItineraryDay(BaseModel):
    day: int
    title: str
    activities: List[str] = Field(default_factory=list)


class DestinationRead(BaseModel):
    id: int
    name: str
    description: str
    country: str
    image_url: Optional[str] = None
    popular: bool

    class Config:
        from_attributes = True


class DestinationSummary(BaseModel):
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


class PackageRead(BaseModel):
    id: int
    destination_id: int
    title: str
    description: str
    duration_days: int
    price: float
    max_participants: int
    available_slots: int
    includes: List[str] = Field(default_factory=list)
    excludes: List[str] = Field(default_factory=list)
    itinerary: List[ItineraryDay] = Field(default_factory=list)
    difficulty_level: DifficultyLevel
    image_url: Optional[str] = None
    active: bool
    featured: bool
    created_at: datetime.datetime
    destination: Optional[DestinationSummary] = None

    @field_validator("includes", "excludes", "itinerary", mode="before")
    @classmethod
    def empty_list_for_null(cls, value):
        return [] if value is None else value

    class Config:
        from_attributes = True


class ReviewRead(BaseModel):
    id: int
    user_id: str
    package_id: Optional[int] = None
    destination_id: Optional[int] = None
    rating: int
    comment: str
    created_at: datetime.datetime

    class Config:
        from_attributes = True


# --- Bookings ---

class BookingCreate(BaseModel):
    package_id: int
    travel_date: datetime.date
    participants: int = Field(ge=1)
    special_requests: Optional[str] = None
    payment_method: PaymentMethod
    # Repeating a request with the same key returns the original booking
    idempotency_key: Optional[str] = Field(default=None, min_length=1, max_length=128)


class PaymentRead(BaseModel):
    amount: float
    payment_method: PaymentMethod
    transaction_id: Optional[str] = None
    status: PaymentStatus
    payment_date: Optional[datetime.datetime] = None

    class Config:
        from_attributes = True


class PackageSummary(BaseModel):
    id: int
    title: str
    duration_days: int
    image_url: Optional[str] = None

    class Config:
        from_attributes = True


class CustomerSummary(BaseModel):
    full_name: str

    class Config:
        from_attributes = True


class BookingRead(BaseModel):
    id: int
    user_id: str
    package_id: int
    booking_date: datetime.datetime
    travel_date: datetime.date
    participants: int
    total_amount: float
    status: BookingStatus
    special_requests: Optional[str] = None
    created_at: datetime.datetime
    package: Optional[PackageSummary] = None
    payments: List[PaymentRead] = Field(default_factory=list)

    class Config:
        from_attributes = True


class AdminBookingRead(BookingRead):
    user: Optional[CustomerSummary] = None


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


class UserBookingStats(BaseModel):
    total: int
    confirmed: int
    pending: int
    completed: int


# --- Admin ---

class DashboardStats(BaseModel):
    total_bookings: int
    total_revenue: float
    total_packages: int
    total_users: int
    confirmed_bookings: int
    pending_bookings: int
