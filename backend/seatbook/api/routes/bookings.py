"""
Single-day booking endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from seatbook.core.security import (
    ROLE_ADMIN,
    ROLE_LIBRARIAN,
    ROLE_STUDENT,
    Principal,
    get_current_principal,
    require_roles,
)
from seatbook.db.session import get_db
from seatbook.schemas.booking import BookingCreate, BookingCreateResponse, BookingResponse
from seatbook.services import booking_service, cancellation_service
from seatbook.services.settings_service import find_commission_snapshot

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("", response_model=BookingCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    principal: Principal = Depends(require_roles(ROLE_STUDENT)),
    db: AsyncSession = Depends(get_db),
):
    """
    Book a seat in a time slot for one date or a range of dates.

    All dates are checked first; if any is taken the response is a 409
    listing every conflicting date and nothing is charged. Otherwise the
    wallet is debited once for the whole range.
    """
    result = await booking_service.create_booking(
        db,
        principal.user_id,
        payload.seat_id,
        payload.time_slot_id,
        payload.start_date,
        payload.end_date,
        commission=await find_commission_snapshot(db),
    )
    return BookingCreateResponse.model_validate(result)


@router.get("", response_model=list[BookingResponse])
async def list_my_bookings(
    status_filter: Optional[str] = None,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Get all bookings for the authenticated user."""
    return await booking_service.get_user_bookings(db, principal.user_id, status=status_filter)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: int,
    principal: Principal = Depends(require_roles(ROLE_STUDENT)),
    db: AsyncSession = Depends(get_db),
):
    """Cancel up to an hour before the slot starts; paid bookings are refunded in full."""
    return await cancellation_service.cancel_booking(db, booking_id, principal.user_id)


@router.post("/{booking_id}/reject", response_model=BookingResponse)
async def reject_booking(
    booking_id: int,
    principal: Principal = Depends(require_roles(ROLE_LIBRARIAN, ROLE_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    return await cancellation_service.reject_booking(db, booking_id, principal)
