"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from seatbook.api.routes import (
    admin,
    attendance,
    auth,
    bookings,
    dashboard,
    libraries,
    monthly_bookings,
    wallet,
)

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(wallet.router)
api_router.include_router(bookings.router)
api_router.include_router(monthly_bookings.router)
api_router.include_router(attendance.router)
api_router.include_router(libraries.router)
api_router.include_router(admin.router)
api_router.include_router(dashboard.router)
