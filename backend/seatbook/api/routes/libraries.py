"""
Librarian views of a library: its bookings, ledger, earnings and
withdraw requests. Librarians see only the libraries they manage.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from seatbook.core.security import ROLE_ADMIN, ROLE_LIBRARIAN, Principal, require_roles
from seatbook.db.session import get_db
from seatbook.schemas.booking import BookingResponse
from seatbook.schemas.earnings import EarningsResponse, WithdrawCreate, WithdrawResponse
from seatbook.schemas.monthly_booking import MonthlyBookingResponse
from seatbook.schemas.wallet import LedgerEntryResponse
from seatbook.services import booking_service, earnings_service, monthly_booking_service, wallet_service
from seatbook.services.library_service import ensure_can_manage

router = APIRouter(prefix="/libraries", tags=["Libraries"])

staff = require_roles(ROLE_LIBRARIAN, ROLE_ADMIN)


@router.get("/{library_id}/bookings", response_model=list[BookingResponse])
async def library_bookings(
    library_id: int,
    booking_date: Optional[date] = None,
    status_filter: Optional[str] = None,
    principal: Principal = Depends(staff),
    db: AsyncSession = Depends(get_db),
):
    await ensure_can_manage(db, library_id, principal)
    return await booking_service.get_library_bookings(
        db, library_id, booking_date=booking_date, status=status_filter
    )


@router.get("/{library_id}/monthly-bookings", response_model=list[MonthlyBookingResponse])
async def library_monthly_bookings(
    library_id: int,
    status_filter: Optional[str] = None,
    principal: Principal = Depends(staff),
    db: AsyncSession = Depends(get_db),
):
    await ensure_can_manage(db, library_id, principal)
    return await monthly_booking_service.get_library_monthly_bookings(db, library_id, status=status_filter)


@router.get("/{library_id}/transactions", response_model=list[LedgerEntryResponse])
async def library_transactions(
    library_id: int,
    principal: Principal = Depends(staff),
    db: AsyncSession = Depends(get_db),
):
    await ensure_can_manage(db, library_id, principal)
    return await wallet_service.list_library_transactions(db, library_id)


@router.get("/{library_id}/earnings", response_model=EarningsResponse)
async def library_earnings(
    library_id: int,
    principal: Principal = Depends(staff),
    db: AsyncSession = Depends(get_db),
):
    await ensure_can_manage(db, library_id, principal)
    return await earnings_service.get_library_earnings(db, library_id)


@router.get("/{library_id}/withdraw-requests", response_model=list[WithdrawResponse])
async def library_withdraw_requests(
    library_id: int,
    principal: Principal = Depends(staff),
    db: AsyncSession = Depends(get_db),
):
    await ensure_can_manage(db, library_id, principal)
    return await earnings_service.list_withdraw_requests(db, library_id=library_id)


@router.post(
    "/{library_id}/withdraw-requests",
    response_model=WithdrawResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_withdraw_request(
    library_id: int,
    payload: WithdrawCreate,
    principal: Principal = Depends(staff),
    db: AsyncSession = Depends(get_db),
):
    return await earnings_service.create_withdraw_request(db, library_id, payload.amount, principal)
