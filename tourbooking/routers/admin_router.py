from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from redis import Redis
from typing import List

from .. import schemas, crud, cache
from ..auth import get_current_admin_id
from ..database import get_db, get_redis_client
from ..exceptions import TourBookingError, http_status_for

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(get_current_admin_id)])


@router.get("/stats", response_model=schemas.DashboardStats)
def read_dashboard_stats(db: Session = Depends(get_db)):
    return crud.get_dashboard_stats(db)


@router.get("/bookings", response_model=List[schemas.AdminBookingRead])
def read_recent_bookings(limit: int = 10, db: Session = Depends(get_db)):
    return crud.get_recent_bookings(db, limit=limit)


@router.patch("/bookings/{booking_id}/status", response_model=schemas.AdminBookingRead)
def update_booking_status(
        booking_id: int,
        update: schemas.BookingStatusUpdate,
        db: Session = Depends(get_db)
):
    try:
        return crud.set_booking_status(db, booking_id=booking_id, new_status=update.status)
    except TourBookingError as e:
        raise HTTPException(status_code=http_status_for(e), detail=str(e))


@router.patch("/packages/{package_id}/toggle-active", response_model=schemas.PackageRead)
def toggle_package_active(
        package_id: int,
        db: Session = Depends(get_db),
        redis_client: Redis = Depends(get_redis_client)
):
    try:
        db_package = crud.toggle_package_active(db, package_id=package_id)
    except TourBookingError as e:
        raise HTTPException(status_code=http_status_for(e), detail=str(e))

    cache.invalidate_package(redis_client, package_id)
    return db_package
