"""
Availability checks for single-day and monthly bookings.

Both engines call `lock_seat` first, inside their unit of work, so the
check here and the insert that follows are serialized per seat. On
PostgreSQL that is a row lock; the partial unique index on active
single-day bookings backs it up at the database level.
"""

from datetime import date
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from seatbook.core.exceptions import NotFoundError
from seatbook.core.logging import get_logger
from seatbook.models.booking import Booking, BookingStatus
from seatbook.models.library import Seat, TimeSlot
from seatbook.models.monthly_booking import MonthlyBooking

logger = get_logger(__name__)


async def lock_seat(db: AsyncSession, seat_id: int) -> Seat:
    """SELECT ... FOR UPDATE on the seat row."""
    result = await db.execute(select(Seat).where(Seat.id == seat_id).with_for_update())
    seat = result.scalar_one_or_none()
    if not seat:
        raise NotFoundError(f"Seat {seat_id} not found")
    return seat


async def _held_dates(
    db: AsyncSession,
    seat_id: int,
    time_slot_id: int,
    start: date,
    end: date,
    statuses: tuple,
    library_id: Optional[int] = None,
) -> list[str]:
    query = select(Booking.booking_date).where(
        Booking.seat_id == seat_id,
        Booking.time_slot_id == time_slot_id,
        Booking.booking_date >= start,
        Booking.booking_date <= end,
        Booking.status.in_(statuses),
    )
    if library_id is not None:
        query = query.where(Booking.library_id == library_id)
    result = await db.execute(query.distinct().order_by(Booking.booking_date))
    return [day.isoformat() for day in result.scalars().all()]


async def find_conflicting_dates(
    db: AsyncSession,
    seat_id: int,
    time_slot_id: int,
    library_id: int,
    start: date,
    end: date,
) -> list[str]:
    """
    Dates in [start, end] already held by a pending or confirmed booking
    for this seat and slot. Empty list means every date is free.
    """
    conflicts = await _held_dates(
        db, seat_id, time_slot_id, start, end, BookingStatus.BLOCKING, library_id=library_id
    )
    if conflicts:
        logger.info(
            "availability_conflict",
            seat_id=seat_id,
            time_slot_id=time_slot_id,
            conflicts=conflicts,
        )
    return conflicts


async def find_taken_dates(
    db: AsyncSession,
    seat_id: int,
    time_slot_id: int,
    start: date,
    end: date,
) -> list[str]:
    """Dates the active-booking unique index refuses, checked-in included."""
    return await _held_dates(db, seat_id, time_slot_id, start, end, BookingStatus.ACTIVE)


async def has_monthly_conflict(
    db: AsyncSession,
    seat_id: int,
    start: date,
    end: date,
    time_slot_id: Optional[int] = None,
) -> bool:
    """
    True when a pending or confirmed monthly booking on the seat overlaps
    [start, end].

    With `time_slot_id` the check is slot-aware: only bookings for that
    slot conflict, plus legacy seat-wide bookings (NULL slot) which hold
    every slot. Without it the check is seat-wide.
    """
    query = select(MonthlyBooking.id).where(
        MonthlyBooking.seat_id == seat_id,
        MonthlyBooking.status.in_(BookingStatus.BLOCKING),
        MonthlyBooking.start_date <= end,
        MonthlyBooking.end_date >= start,
    )
    if time_slot_id is not None:
        query = query.where(
            or_(
                MonthlyBooking.time_slot_id == time_slot_id,
                MonthlyBooking.time_slot_id.is_(None),
            )
        )
    result = await db.execute(query.limit(1))
    conflict = result.scalar_one_or_none() is not None
    if conflict:
        logger.info(
            "monthly_availability_conflict",
            seat_id=seat_id,
            time_slot_id=time_slot_id,
            start=start.isoformat(),
            end=end.isoformat(),
        )
    return conflict


async def get_time_slot(db: AsyncSession, time_slot_id: int) -> TimeSlot:
    result = await db.execute(select(TimeSlot).where(TimeSlot.id == time_slot_id))
    slot = result.scalar_one_or_none()
    if not slot:
        raise NotFoundError(f"Time slot {time_slot_id} not found")
    return slot
