"""
Library Seat Booking API - Main Application Entry Point

Students book library seats by the day or by the month, pay from a coin
wallet and check in at the door; librarians run their libraries and
withdraw earnings. Highlights:
- Atomic booking / payment / ledger writes with conflict detection
- Refunds that reverse exactly what was charged
- Attendance state machine for single-day and monthly bookings
- Periodic, idempotent status reconciliation sweep
- Structured logging with request correlation and Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from seatbook.core.config import get_settings
from seatbook.core.exceptions import register_exception_handlers
from seatbook.core.logging import setup_logging, get_logger
from seatbook.core.metrics import metrics_endpoint
from seatbook.api.router import api_router
from seatbook.api.middleware import RequestLoggingMiddleware
from seatbook.services.notification_service import get_redis, close_redis, get_redis_stats
from seatbook.tasks.sweep import start_scheduler, stop_scheduler

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        timezone=settings.TIMEZONE,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without user notifications")

    sweep_task = start_scheduler()

    yield

    await stop_scheduler(sweep_task)
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Library seat booking API: wallet payments, bookings, refunds and attendance",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "notifications": await get_redis_stats(),
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
