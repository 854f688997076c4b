import logging
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from redis import Redis
from typing import List, Annotated, Optional

from fastapi_limiter.depends import RateLimiter

from .. import schemas, crud, models, cache
from ..auth import get_current_user_id, get_key_by_user_id_or_ip, is_admin
from ..config import settings
from ..database import get_db, get_redis_client
from ..exceptions import TourBookingError, http_status_for

logger = logging.getLogger("tour_booking")

router = APIRouter(prefix="/bookings", tags=["Bookings"])

create_booking_limiter = RateLimiter(
    times=settings.BOOKING_RATE_LIMIT_PER_MINUTE, minutes=1, identifier=get_key_by_user_id_or_ip
)
read_bookings_limiter = RateLimiter(times=60, minutes=1, identifier=get_key_by_user_id_or_ip)


@router.post(
    "/",
    response_model=schemas.BookingRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(create_booking_limiter)]
)
def create_booking(
        booking: schemas.BookingCreate,
        user_id: Annotated[str, Depends(get_current_user_id)],
        db: Session = Depends(get_db),
        redis_client: Redis = Depends(get_redis_client)
):
    """
    Book a package for the authenticated user and pay with the chosen method.
    """
    try:
        db_booking = crud.create_booking(db=db, booking=booking, user_id=user_id)
    except TourBookingError as e:
        logger.warning(f"Booking rejected for user {user_id} on package {booking.package_id}: {e}")
        raise HTTPException(status_code=http_status_for(e), detail=str(e))

    cache.invalidate_package(redis_client, db_booking.package_id)
    return db_booking


@router.get("/", response_model=List[schemas.BookingRead], dependencies=[Depends(read_bookings_limiter)])
def read_user_bookings(
        user_id: Annotated[str, Depends(get_current_user_id)],
        booking_status: Optional[models.BookingStatus] = Query(default=None, alias="status"),
        db: Session = Depends(get_db),
        skip: int = 0,
        limit: int = 100
):
    """
    Get the authenticated user's bookings, newest first.
    """
    return crud.get_bookings_by_user(db=db, user_id=user_id, status=booking_status, skip=skip, limit=limit)


@router.get("/stats", response_model=schemas.UserBookingStats)
def read_user_booking_stats(
        user_id: Annotated[str, Depends(get_current_user_id)],
        db: Session = Depends(get_db)
):
    return crud.get_user_booking_stats(db=db, user_id=user_id)


@router.post("/{booking_id}/cancel", response_model=schemas.BookingRead)
def cancel_booking(
        booking_id: int,
        user_id: Annotated[str, Depends(get_current_user_id)],
        db: Session = Depends(get_db),
        redis_client: Redis = Depends(get_redis_client)
):
    """
    Cancel a booking and release its slots. Owners may cancel upcoming trips,
    administrators any booking that is not yet cancelled or completed.
    """
    try:
        db_booking = crud.cancel_booking(
            db=db, booking_id=booking_id, user_id=user_id, is_admin=is_admin(db, user_id)
        )
    except TourBookingError as e:
        logger.warning(f"Cancellation of booking {booking_id} by user {user_id} rejected: {e}")
        raise HTTPException(status_code=http_status_for(e), detail=str(e))

    cache.invalidate_package(redis_client, db_booking.package_id)
    return db_booking
