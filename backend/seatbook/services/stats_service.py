"""
Dashboard statistics for students, librarians and admins.

Read-only aggregates over rows the engines already write: booking
statuses, attendance minutes, wallet balances and the ledger. Each call
runs a handful of GROUP BY queries; nothing is cached.
"""

from collections import Counter
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from seatbook.core.security import Principal
from seatbook.models.attendance import Attendance, MonthlyAttendance
from seatbook.models.booking import Booking, BookingStatus, PaymentStatus
from seatbook.models.library import Library
from seatbook.models.monthly_booking import MonthlyBooking
from seatbook.models.user import User
from seatbook.models.wallet import LedgerEntry, LedgerStatus, Wallet
from seatbook.services.earnings_service import get_library_earnings
from seatbook.services.library_service import ensure_can_manage
from seatbook.utils.time import local_today, start_of_day, utcnow


async def _count_by(db: AsyncSession, column, *criteria) -> dict[str, int]:
    result = await db.execute(select(column, func.count()).where(*criteria).group_by(column))
    return {key: count for key, count in result.all()}


async def _scalar(db: AsyncSession, query) -> int:
    result = await db.execute(query)
    return int(result.scalar_one() or 0)


async def _attendance_summary(db: AsyncSession, daily_criteria: tuple, monthly_criteria: tuple) -> dict:
    daily = await db.execute(
        select(
            func.count(Attendance.id),
            func.count(Attendance.check_out_time),
            func.coalesce(func.sum(Attendance.duration_minutes), 0),
        ).where(*daily_criteria)
    )
    sessions, completed, daily_minutes = daily.one()

    monthly = await db.execute(
        select(
            func.count(MonthlyAttendance.id),
            func.coalesce(func.sum(MonthlyAttendance.total_duration_minutes), 0),
        ).where(*monthly_criteria)
    )
    monthly_days, monthly_minutes = monthly.one()

    by_method = Counter(await _count_by(db, Attendance.method, *daily_criteria))
    by_method.update(await _count_by(db, MonthlyAttendance.method, *monthly_criteria))

    return {
        "sessions": sessions,
        "completed_sessions": completed,
        "daily_minutes": int(daily_minutes),
        "monthly_days": monthly_days,
        "monthly_minutes": int(monthly_minutes),
        "total_minutes": int(daily_minutes) + int(monthly_minutes),
        "average_session_minutes": int(daily_minutes) // completed if completed else 0,
        "by_method": dict(by_method),
    }


async def get_admin_stats(db: AsyncSession) -> dict:
    """Platform-wide counts, wallet totals and the ledger broken down by kind."""
    wallets = await db.execute(select(func.count(Wallet.id), func.coalesce(func.sum(Wallet.balance), 0)))
    wallet_count, wallet_balance = wallets.one()

    ledger = await db.execute(
        select(LedgerEntry.kind, func.sum(LedgerEntry.amount))
        .where(LedgerEntry.status == LedgerStatus.COMPLETED)
        .group_by(LedgerEntry.kind)
    )

    commission_earned = await _scalar(
        db,
        select(func.coalesce(func.sum(Booking.commission), 0)).where(
            Booking.payment_status == PaymentStatus.PAID,
            Booking.status.not_in(BookingStatus.NON_EARNING),
        ),
    ) + await _scalar(
        db,
        select(func.coalesce(func.sum(MonthlyBooking.commission), 0)).where(
            MonthlyBooking.payment_status == PaymentStatus.PAID,
            MonthlyBooking.status.not_in(BookingStatus.NON_EARNING),
        ),
    )

    return {
        "users": await _count_by(db, User.role),
        "libraries": await _scalar(db, select(func.count(Library.id))),
        "bookings": await _count_by(db, Booking.status),
        "monthly_bookings": await _count_by(db, MonthlyBooking.status),
        "attendance": await _attendance_summary(db, (), ()),
        "wallets": {"count": wallet_count, "total_balance": int(wallet_balance)},
        "ledger": {kind: int(total) for kind, total in ledger.all()},
        "commission_earned": commission_earned,
    }


async def get_library_stats(
    db: AsyncSession,
    library_id: int,
    actor: Principal,
    now: Optional[datetime] = None,
) -> dict:
    """One library's activity today and overall, plus its earnings."""
    now = now or utcnow()
    today = local_today(now)
    library = await ensure_can_manage(db, library_id, actor)

    return {
        "library_id": library.id,
        "library_name": library.name,
        "bookings": await _count_by(db, Booking.status, Booking.library_id == library_id),
        "monthly_bookings": await _count_by(
            db, MonthlyBooking.status, MonthlyBooking.library_id == library_id
        ),
        "today_bookings": await _scalar(
            db,
            select(func.count(Booking.id)).where(
                Booking.library_id == library_id,
                Booking.booking_date == today,
                Booking.status.in_(BookingStatus.ACTIVE + (BookingStatus.COMPLETED,)),
            ),
        ),
        "today_check_ins": await _scalar(
            db,
            select(func.count(Attendance.id)).where(
                Attendance.library_id == library_id,
                Attendance.check_in_time >= start_of_day(today),
            ),
        ),
        "attendance": await _attendance_summary(
            db,
            (Attendance.library_id == library_id,),
            (MonthlyAttendance.library_id == library_id,),
        ),
        "earnings": await get_library_earnings(db, library_id, now=now),
    }


async def get_student_stats(db: AsyncSession, user_id: int, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    today = local_today(now)

    daily_libraries = await db.execute(
        select(Attendance.library_id).where(Attendance.student_id == user_id).distinct()
    )
    monthly_libraries = await db.execute(
        select(MonthlyAttendance.library_id).where(MonthlyAttendance.student_id == user_id).distinct()
    )
    visited = set(daily_libraries.scalars().all()) | set(monthly_libraries.scalars().all())

    open_daily = await _scalar(
        db,
        select(func.count(Attendance.id)).where(
            Attendance.student_id == user_id,
            Attendance.check_out_time.is_(None),
        ),
    )
    today_rows = await db.execute(
        select(MonthlyAttendance).where(
            MonthlyAttendance.student_id == user_id,
            MonthlyAttendance.date == today,
        )
    )
    open_monthly = any(row.has_open_session() for row in today_rows.scalars().all())

    balance = await db.execute(select(Wallet.balance).where(Wallet.user_id == user_id))

    return {
        "bookings": await _count_by(db, Booking.status, Booking.user_id == user_id),
        "monthly_bookings": await _count_by(db, MonthlyBooking.status, MonthlyBooking.user_id == user_id),
        "upcoming_bookings": await _scalar(
            db,
            select(func.count(Booking.id)).where(
                Booking.user_id == user_id,
                Booking.booking_date >= today,
                Booking.status.in_(BookingStatus.BLOCKING),
            ),
        ),
        "attendance": await _attendance_summary(
            db,
            (Attendance.student_id == user_id,),
            (MonthlyAttendance.student_id == user_id,),
        ),
        "libraries_visited": len(visited),
        "wallet_balance": balance.scalar_one_or_none() or 0,
        "checked_in_now": bool(open_daily) or open_monthly,
    }
