import asyncio
import logging
from datetime import date
from sqlalchemy.orm import Session
from .config import settings
from .database import SessionLocal
from . import crud

logger = logging.getLogger("booking_scheduler")


async def complete_finished_bookings(db: Session, today: date | None = None) -> int:
    """
    Marks confirmed bookings whose trip has ended as completed and queues a
    "booking_completed" event for each. Returns how many were completed.
    """
    today = today or date.today()
    logger.info(f"Checking for trips that ended by {today}...")

    finished = crud.get_finished_bookings(db, today)
    if not finished:
        logger.info("No finished trips.")
        return 0

    completed = 0
    for booking in finished:
        crud.mark_booking_completed(db, booking)
        completed += 1
        logger.info(f"Booking {booking.id} completed (travelled {booking.travel_date}).")

    db.commit()  # Commit all completions and their events at once
    logger.info(f"Completed {completed} bookings.")
    return completed


async def run_booking_scheduler():
    """
    Main background loop for the scheduler.
    """
    while True:
        logger.info("Scheduler waking up to check for finished trips...")
        db: Session = SessionLocal()
        try:
            await complete_finished_bookings(db)
        except Exception as e:
            logger.error(f"Error in booking scheduler loop: {e}")
            db.rollback()
        finally:
            db.close()

        await asyncio.sleep(settings.SCHEDULER_INTERVAL_SECONDS)
