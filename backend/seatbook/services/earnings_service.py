"""
Library earnings and withdraw requests.

A library earns the slot price (`amount`) of every paid booking that went
ahead: anything not pending, cancelled or rejected. The platform's
commission is never part of it. Monthly bookings count once their start
date has arrived.

    withdrawable = total revenue - resolved withdrawals - pending withdrawals
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from seatbook.core.exceptions import InvalidInputError, InvalidStateError, NotFoundError
from seatbook.core.logging import get_logger
from seatbook.core.security import Principal
from seatbook.db.session import unit_of_work
from seatbook.models.booking import Booking, BookingStatus, PaymentStatus
from seatbook.models.library import Library
from seatbook.models.monthly_booking import MonthlyBooking
from seatbook.models.withdraw import WithdrawRequest, WithdrawStatus
from seatbook.services.library_service import ensure_can_manage
from seatbook.utils.time import local_today, utcnow

logger = get_logger(__name__)


async def _sum(db: AsyncSession, query) -> int:
    result = await db.execute(query)
    return int(result.scalar_one() or 0)


async def get_library_earnings(
    db: AsyncSession,
    library_id: int,
    now: Optional[datetime] = None,
) -> dict:
    now = now or utcnow()
    today = local_today(now)

    booking_earnings = await _sum(
        db,
        select(func.coalesce(func.sum(Booking.amount), 0)).where(
            Booking.library_id == library_id,
            Booking.payment_status == PaymentStatus.PAID,
            Booking.status.not_in(BookingStatus.NON_EARNING),
        ),
    )
    monthly_earnings = await _sum(
        db,
        select(func.coalesce(func.sum(MonthlyBooking.amount), 0)).where(
            MonthlyBooking.library_id == library_id,
            MonthlyBooking.payment_status == PaymentStatus.PAID,
            MonthlyBooking.status.not_in(BookingStatus.NON_EARNING),
            MonthlyBooking.start_date <= today,
        ),
    )

    withdrawn = await _withdraw_total(db, library_id, WithdrawStatus.RESOLVED)
    pending = await _withdraw_total(db, library_id, WithdrawStatus.PENDING)
    total = booking_earnings + monthly_earnings

    return {
        "library_id": library_id,
        "total_revenue": total,
        "booking_earnings": booking_earnings,
        "monthly_booking_earnings": monthly_earnings,
        "withdrawn_amount": withdrawn,
        "pending_withdraw_amount": pending,
        "withdrawable_amount": total - withdrawn - pending,
    }


async def _withdraw_total(db: AsyncSession, library_id: int, status: str) -> int:
    return await _sum(
        db,
        select(func.coalesce(func.sum(WithdrawRequest.requested_amount), 0)).where(
            WithdrawRequest.library_id == library_id,
            WithdrawRequest.status == status,
        ),
    )


async def create_withdraw_request(
    db: AsyncSession,
    library_id: int,
    amount: int,
    actor: Principal,
    now: Optional[datetime] = None,
) -> WithdrawRequest:
    if amount is None or amount <= 0:
        raise InvalidInputError("Requested amount must be positive")
    now = now or utcnow()

    async with unit_of_work(db):
        await ensure_can_manage(db, library_id, actor)
        # Serialize requests per library so two cannot spend the same balance
        await db.execute(select(Library.id).where(Library.id == library_id).with_for_update())

        earnings = await get_library_earnings(db, library_id, now=now)
        if amount > earnings["withdrawable_amount"]:
            raise InvalidStateError(
                "Requested amount exceeds the withdrawable balance",
                details={
                    "requested": amount,
                    "withdrawable": earnings["withdrawable_amount"],
                },
            )

        request = WithdrawRequest(
            library_id=library_id,
            requested_amount=amount,
            status=WithdrawStatus.PENDING,
            requested_at=now,
        )
        db.add(request)
        await db.flush()

    logger.info(
        "withdraw_requested",
        withdraw_request_id=request.id,
        library_id=library_id,
        amount=amount,
    )
    return request


async def _lock_pending_request(db: AsyncSession, request_id: int) -> WithdrawRequest:
    result = await db.execute(
        select(WithdrawRequest)
        .where(WithdrawRequest.id == request_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    request = result.scalar_one_or_none()
    if not request:
        raise NotFoundError("Withdraw request not found")
    if request.status != WithdrawStatus.PENDING:
        raise InvalidStateError("Withdraw request already processed")
    return request


async def resolve_withdraw_request(
    db: AsyncSession,
    request_id: int,
    now: Optional[datetime] = None,
) -> WithdrawRequest:
    """Admin confirms the payout was made."""
    async with unit_of_work(db):
        request = await _lock_pending_request(db, request_id)
        request.status = WithdrawStatus.RESOLVED
        request.resolved_at = now or utcnow()
        await db.flush()

    logger.info("withdraw_resolved", withdraw_request_id=request.id, amount=request.requested_amount)
    return request


async def reject_withdraw_request(
    db: AsyncSession,
    request_id: int,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> WithdrawRequest:
    async with unit_of_work(db):
        request = await _lock_pending_request(db, request_id)
        request.status = WithdrawStatus.REJECTED
        request.rejected_reason = reason or "No reason provided"
        request.rejected_at = now or utcnow()
        await db.flush()

    logger.info("withdraw_rejected", withdraw_request_id=request.id, reason=request.rejected_reason)
    return request


async def list_withdraw_requests(
    db: AsyncSession,
    library_id: Optional[int] = None,
) -> list[WithdrawRequest]:
    query = select(WithdrawRequest)
    if library_id is not None:
        query = query.where(WithdrawRequest.library_id == library_id)
    result = await db.execute(query.order_by(WithdrawRequest.requested_at.desc(), WithdrawRequest.id.desc()))
    return list(result.scalars().all())
