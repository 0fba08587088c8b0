"""
Monthly booking endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from seatbook.core.security import ROLE_STUDENT, Principal, get_current_principal, require_roles
from seatbook.db.session import get_db
from seatbook.schemas.monthly_booking import (
    LegacyMonthlyBookingCreate,
    MonthlyBookingCreate,
    MonthlyBookingCreateResponse,
    MonthlyBookingResponse,
)
from seatbook.services import cancellation_service, monthly_booking_service
from seatbook.services.settings_service import find_commission_snapshot

router = APIRouter(prefix="/monthly-bookings", tags=["Monthly bookings"])

student = require_roles(ROLE_STUDENT)


@router.post("", response_model=MonthlyBookingCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_monthly_booking(
    payload: MonthlyBookingCreate,
    principal: Principal = Depends(student),
    db: AsyncSession = Depends(get_db),
):
    """Hold a seat in one time slot for a month, paid up front at the slot price plus commission."""
    result = await monthly_booking_service.create_monthly_booking(
        db,
        principal.user_id,
        payload.seat_id,
        payload.time_slot_id,
        payload.library_id,
        start=payload.start_date,
        commission=await find_commission_snapshot(db),
    )
    return MonthlyBookingCreateResponse.model_validate(result)


@router.post(
    "/legacy",
    response_model=MonthlyBookingCreateResponse,
    status_code=status.HTTP_201_CREATED,
    deprecated=True,
)
async def create_legacy_monthly_booking(
    payload: LegacyMonthlyBookingCreate,
    principal: Principal = Depends(student),
    db: AsyncSession = Depends(get_db),
):
    """Seat-wide monthly booking at the library's flat fee. Use POST /monthly-bookings instead."""
    result = await monthly_booking_service.create_legacy_monthly_booking(
        db,
        principal.user_id,
        payload.seat_id,
        payload.library_id,
        commission=await find_commission_snapshot(db),
    )
    return MonthlyBookingCreateResponse.model_validate(result)


@router.get("", response_model=list[MonthlyBookingResponse])
async def list_my_monthly_bookings(
    status_filter: Optional[str] = None,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    return await monthly_booking_service.get_user_monthly_bookings(
        db, principal.user_id, status=status_filter
    )


@router.post("/{booking_id}/cancel", response_model=MonthlyBookingResponse)
async def cancel_monthly_booking(
    booking_id: int,
    principal: Principal = Depends(student),
    db: AsyncSession = Depends(get_db),
):
    """Cancel within a day of the start date for a full refund."""
    return await cancellation_service.cancel_monthly_booking(db, booking_id, principal.user_id)
