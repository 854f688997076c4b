import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from . import models
from .database import engine
from .routers import admin_router, booking_router, catalog_router
from .outbox_poller import run_outbox_poller
from .booking_scheduler import run_booking_scheduler

import redis.asyncio as redis
from fastapi_limiter import FastAPILimiter
from .config import settings

logger = logging.getLogger("tour_booking")

# Alembic owns the schema in production, this keeps local setups working
models.Base.metadata.create_all(bind=engine)


async def _stop_task(task: asyncio.Task, name: str):
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        logger.info(f"{name} task successfully cancelled.")
    except Exception as e:
        logger.error(f"Error during {name} shutdown: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manages application startup and shutdown events.
    """
    logger.info("Tour Booking Service starting up...")

    redis_client = None
    try:
        redis_client = redis.from_url(settings.REDIS_URL, encoding="utf-8")
        await FastAPILimiter.init(redis_client)
        logger.info("FastAPILimiter initialized with Redis.")
    except Exception as e:
        logger.error(f"Failed to initialize FastAPILimiter: {e}")

    poller_task = asyncio.create_task(run_outbox_poller())
    scheduler_task = asyncio.create_task(run_booking_scheduler())

    yield  # The application is now running

    logger.info("Tour Booking Service shutting down...")

    if redis_client is not None:
        await redis_client.close()

    await _stop_task(poller_task, "Outbox poller")
    await _stop_task(scheduler_task, "Booking scheduler")


app = FastAPI(
    title="Tour Booking API",
    description="Tour packages, bookings and mock payments.",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(catalog_router.router)
app.include_router(booking_router.router)
app.include_router(admin_router.router)


@app.get("/")
def read_root():
    return {"message": "Welcome to the Tour Booking API"}
