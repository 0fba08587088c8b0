"""
Attendance state machine.

Single-day bookings:  NONE -> CHECKED_IN -> CHECKED_OUT (terminal)
Monthly bookings:     per calendar day, NONE -> CHECKED_IN -> CHECKED_OUT -> CHECKED_IN ...

Every action runs in its own unit of work with the booking row locked,
so the "at most one open session" check and the write that follows are
serialized per booking. The unique constraints on attendances.booking_id
and monthly_attendances(booking_id, date) catch whatever slips past.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, time
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from seatbook.core.exceptions import (
    AlreadyActiveError,
    AlreadyCompletedError,
    InvalidInputError,
    InvalidStateError,
    NoActiveSessionError,
    NoBookingError,
    OutOfWindowError,
)
from seatbook.core.logging import get_logger
from seatbook.core.metrics import record_attendance
from seatbook.core.security import Principal
from seatbook.db.session import unit_of_work
from seatbook.models.attendance import Attendance, AttendanceMethod, MonthlyAttendance
from seatbook.models.booking import Booking, BookingStatus, PaymentStatus
from seatbook.models.library import TimeSlot
from seatbook.models.monthly_booking import MonthlyBooking
from seatbook.services.library_service import ensure_can_manage
from seatbook.services.monthly_booking_service import find_active_monthly_booking
from seatbook.services.notification_service import publish_user_event
from seatbook.utils.time import local_instant, local_today, start_of_day, utcnow

logger = get_logger(__name__)

DAILY = "daily"
MONTHLY = "monthly"

CHECK_IN = "checkin"
CHECK_OUT = "checkout"
ACTIONS = (CHECK_IN, CHECK_OUT)


@dataclass
class AttendanceResult:
    kind: str
    action: str
    booking_id: int
    record: Union[Attendance, MonthlyAttendance]
    session: dict

    @property
    def duration_minutes(self) -> Optional[int]:
        return self.session.get("duration_minutes")


@asynccontextmanager
async def _attendance_action(db: AsyncSession, kind: str, action: str):
    try:
        async with unit_of_work(db):
            yield
    except Exception:
        record_attendance(kind, action, success=False)
        raise
    record_attendance(kind, action, success=True)


def _daily_session(attendance: Attendance) -> dict:
    return {
        "check_in_time": attendance.check_in_time.isoformat(),
        "check_out_time": attendance.check_out_time.isoformat() if attendance.check_out_time else None,
        "duration_minutes": attendance.duration_minutes,
    }


def _slot_window(booking: Booking, slot: TimeSlot) -> tuple[datetime, datetime]:
    return (
        local_instant(booking.booking_date, slot.start_time),
        local_instant(booking.booking_date, slot.end_time),
    )


async def _lock_daily_booking(
    db: AsyncSession, user_id: int, library_id: int, booking_id: int
) -> Booking:
    result = await db.execute(
        select(Booking)
        .where(
            Booking.id == booking_id,
            Booking.user_id == user_id,
            Booking.library_id == library_id,
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if not booking:
        raise NoBookingError("No booking found for this library")
    return booking


async def _lock_monthly(
    db: AsyncSession, user_id: int, library_id: int, booking_id: int
) -> MonthlyBooking:
    result = await db.execute(
        select(MonthlyBooking)
        .where(
            MonthlyBooking.id == booking_id,
            MonthlyBooking.user_id == user_id,
            MonthlyBooking.library_id == library_id,
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if not booking:
        raise NoBookingError("No monthly booking found for this library")
    return booking


async def _get_attendance(db: AsyncSession, booking_id: int) -> Optional[Attendance]:
    result = await db.execute(
        select(Attendance)
        .where(Attendance.booking_id == booking_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _get_day(db: AsyncSession, booking_id: int, day) -> Optional[MonthlyAttendance]:
    result = await db.execute(
        select(MonthlyAttendance)
        .where(MonthlyAttendance.booking_id == booking_id, MonthlyAttendance.date == day)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


# Single-day bookings


async def check_in(
    db: AsyncSession,
    user_id: int,
    library_id: int,
    booking_id: int,
    now: Optional[datetime] = None,
    method: str = AttendanceMethod.QR,
) -> AttendanceResult:
    """
    Open the single attendance episode of a confirmed booking.
    The slot window on the booking date is inclusive at both ends.
    """
    now = now or utcnow()
    async with _attendance_action(db, DAILY, CHECK_IN):
        booking = await _lock_daily_booking(db, user_id, library_id, booking_id)

        existing = await _get_attendance(db, booking.id)
        if existing is not None:
            if existing.is_open:
                raise AlreadyActiveError()
            raise AlreadyCompletedError()

        if booking.status != BookingStatus.CONFIRMED:
            raise InvalidStateError(f"Cannot check in to a booking that is {booking.status}")

        slot = await db.get(TimeSlot, booking.time_slot_id)
        start, end = _slot_window(booking, slot)
        if not (start <= now <= end):
            raise OutOfWindowError(
                "Check-in is only allowed during your booked time slot", start=start, end=end
            )

        attendance = Attendance(
            student_id=booking.user_id,
            library_id=booking.library_id,
            booking_id=booking.id,
            time_slot_id=booking.time_slot_id,
            check_in_time=now,
            method=method,
        )
        db.add(attendance)
        try:
            await db.flush()
        except IntegrityError as exc:
            raise AlreadyActiveError() from exc

        booking.status = BookingStatus.CHECKED_IN
        await db.flush()

    logger.info(
        "checked_in",
        kind=DAILY,
        booking_id=booking.id,
        user_id=user_id,
        library_id=library_id,
        method=method,
    )
    await publish_user_event(user_id, "checked_in", {"booking_id": booking.id, "kind": DAILY})
    return AttendanceResult(DAILY, CHECK_IN, booking.id, attendance, _daily_session(attendance))


async def check_out(
    db: AsyncSession,
    user_id: int,
    library_id: int,
    booking_id: int,
    now: Optional[datetime] = None,
    method: str = AttendanceMethod.QR,
) -> AttendanceResult:
    """Close the open attendance episode and complete the booking."""
    now = now or utcnow()
    async with _attendance_action(db, DAILY, CHECK_OUT):
        booking = await _lock_daily_booking(db, user_id, library_id, booking_id)

        attendance = await _get_attendance(db, booking.id)
        if attendance is None or not attendance.is_open:
            raise NoActiveSessionError()

        attendance.close(now)
        booking.status = BookingStatus.COMPLETED
        await db.flush()

    logger.info(
        "checked_out",
        kind=DAILY,
        booking_id=booking.id,
        user_id=user_id,
        duration_minutes=attendance.duration_minutes,
        method=method,
    )
    await publish_user_event(
        user_id,
        "checked_out",
        {"booking_id": booking.id, "kind": DAILY, "duration_minutes": attendance.duration_minutes},
    )
    return AttendanceResult(DAILY, CHECK_OUT, booking.id, attendance, _daily_session(attendance))


# Monthly bookings


async def monthly_check_in(
    db: AsyncSession,
    user_id: int,
    library_id: int,
    booking_id: int,
    now: Optional[datetime] = None,
    method: str = AttendanceMethod.QR,
) -> AttendanceResult:
    """Start a new session on today's attendance row of a monthly booking."""
    now = now or utcnow()
    async with _attendance_action(db, MONTHLY, CHECK_IN):
        booking = await _lock_monthly(db, user_id, library_id, booking_id)
        if booking.status != BookingStatus.CONFIRMED or booking.payment_status != PaymentStatus.PAID:
            raise InvalidStateError(f"Cannot check in to a monthly booking that is {booking.status}")

        today = local_today(now)
        if not (booking.start_date <= today <= booking.end_date):
            raise OutOfWindowError(
                "Check-in is only allowed within your monthly booking period",
                start=start_of_day(booking.start_date),
                end=local_instant(booking.end_date, time.max),
            )

        day = await _get_day(db, booking.id, today)
        if day is None:
            day = MonthlyAttendance(
                student_id=booking.user_id,
                library_id=booking.library_id,
                booking_id=booking.id,
                date=today,
                sessions=[],
                method=method,
            )
            db.add(day)
            try:
                await db.flush()
            except IntegrityError as exc:
                raise AlreadyActiveError() from exc

        if day.has_open_session():
            raise AlreadyActiveError()
        day.start_session(now)
        await db.flush()

    session = day.sessions[-1]
    logger.info(
        "checked_in",
        kind=MONTHLY,
        monthly_booking_id=booking.id,
        user_id=user_id,
        date=today.isoformat(),
        session_number=len(day.sessions),
        method=method,
    )
    await publish_user_event(user_id, "checked_in", {"monthly_booking_id": booking.id, "kind": MONTHLY})
    return AttendanceResult(MONTHLY, CHECK_IN, booking.id, day, session)


async def monthly_check_out(
    db: AsyncSession,
    user_id: int,
    library_id: int,
    booking_id: int,
    now: Optional[datetime] = None,
    method: str = AttendanceMethod.QR,
) -> AttendanceResult:
    """Close today's open session; the day total is recomputed from closed sessions."""
    now = now or utcnow()
    async with _attendance_action(db, MONTHLY, CHECK_OUT):
        booking = await _lock_monthly(db, user_id, library_id, booking_id)

        today = local_today(now)
        day = await _get_day(db, booking.id, today)
        if day is None or not day.has_open_session():
            raise NoActiveSessionError()

        session = day.close_session(now)
        await db.flush()

    logger.info(
        "checked_out",
        kind=MONTHLY,
        monthly_booking_id=booking.id,
        user_id=user_id,
        date=today.isoformat(),
        duration_minutes=session["duration_minutes"],
        total_duration_minutes=day.total_duration_minutes,
        method=method,
    )
    await publish_user_event(
        user_id,
        "checked_out",
        {
            "monthly_booking_id": booking.id,
            "kind": MONTHLY,
            "duration_minutes": session["duration_minutes"],
            "total_duration_minutes": day.total_duration_minutes,
        },
    )
    return AttendanceResult(MONTHLY, CHECK_OUT, booking.id, day, session)


# Dispatcher


async def _todays_bookings(
    db: AsyncSession, user_id: int, library_id: int, now: datetime, statuses
) -> list[tuple[Booking, TimeSlot]]:
    result = await db.execute(
        select(Booking, TimeSlot)
        .join(TimeSlot, TimeSlot.id == Booking.time_slot_id)
        .where(
            Booking.user_id == user_id,
            Booking.library_id == library_id,
            Booking.booking_date == local_today(now),
            Booking.status.in_(statuses),
        )
        .order_by(TimeSlot.start_time, Booking.id)
    )
    return [(booking, slot) for booking, slot in result.all()]


def _pick_current(rows: list[tuple[Booking, TimeSlot]], now: datetime) -> Optional[Booking]:
    """Prefer the booking whose slot window contains now, else the earliest."""
    if not rows:
        return None
    for booking, slot in rows:
        start, end = _slot_window(booking, slot)
        if start <= now <= end:
            return booking
    return rows[0][0]


async def handle_check_in_out(
    db: AsyncSession,
    user_id: int,
    library_id: int,
    action: str,
    now: Optional[datetime] = None,
    method: str = AttendanceMethod.QR,
) -> AttendanceResult:
    """
    Scan-at-the-door entry point: routes to the monthly state machine when
    the user holds a monthly booking covering today, otherwise to today's
    single-day booking.
    """
    if action not in ACTIONS:
        raise InvalidInputError(f"action must be one of: {', '.join(ACTIONS)}")
    now = now or utcnow()

    monthly = await find_active_monthly_booking(db, user_id, library_id, local_today(now))
    if monthly is not None:
        operation = monthly_check_in if action == CHECK_IN else monthly_check_out
        return await operation(db, user_id, library_id, monthly.id, now=now, method=method)

    if action == CHECK_IN:
        statuses = (BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN)
    else:
        statuses = (BookingStatus.CHECKED_IN,)
    booking = _pick_current(await _todays_bookings(db, user_id, library_id, now, statuses), now)
    if booking is None:
        raise NoBookingError("No active booking found for today in this library")

    operation = check_in if action == CHECK_IN else check_out
    return await operation(db, user_id, library_id, booking.id, now=now, method=method)


async def manual_check_in_out(
    db: AsyncSession,
    actor: Principal,
    student_id: int,
    library_id: int,
    action: str,
    now: Optional[datetime] = None,
) -> AttendanceResult:
    """Librarian records a check-in or check-out on a student's behalf."""
    await ensure_can_manage(db, library_id, actor)
    logger.info(
        "manual_attendance",
        librarian_id=actor.user_id,
        student_id=student_id,
        library_id=library_id,
        action=action,
    )
    return await handle_check_in_out(
        db, student_id, library_id, action, now=now, method=AttendanceMethod.MANUAL
    )


async def get_check_in_status(
    db: AsyncSession,
    user_id: int,
    library_id: int,
    now: Optional[datetime] = None,
) -> dict:
    """What the door scanner should offer this user right now."""
    now = now or utcnow()
    today = local_today(now)

    monthly = await find_active_monthly_booking(db, user_id, library_id, today)
    if monthly is not None:
        result = await db.execute(
            select(MonthlyAttendance).where(
                MonthlyAttendance.booking_id == monthly.id, MonthlyAttendance.date == today
            )
        )
        day = result.scalar_one_or_none()
        checked_in = day is not None and day.has_open_session()
        return {
            "type": MONTHLY,
            "booking_id": monthly.id,
            "is_checked_in": checked_in,
            "can_check_in": not checked_in,
            "can_check_out": checked_in,
            "total_duration_minutes": day.total_duration_minutes if day else 0,
        }

    rows = await _todays_bookings(
        db, user_id, library_id, now, (BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN)
    )
    booking = _pick_current(rows, now)
    if booking is None:
        return {
            "type": "none",
            "booking_id": None,
            "is_checked_in": False,
            "can_check_in": False,
            "can_check_out": False,
        }

    slot = next(slot for candidate, slot in rows if candidate.id == booking.id)
    result = await db.execute(select(Attendance).where(Attendance.booking_id == booking.id))
    attendance = result.scalar_one_or_none()
    start, end = _slot_window(booking, slot)
    checked_in = attendance is not None and attendance.is_open
    return {
        "type": DAILY,
        "booking_id": booking.id,
        "is_checked_in": checked_in,
        "can_check_in": (
            attendance is None
            and booking.status == BookingStatus.CONFIRMED
            and start <= now <= end
        ),
        "can_check_out": checked_in,
        "window_start": start.isoformat(),
        "window_end": end.isoformat(),
    }


# History


async def get_my_attendances(db: AsyncSession, user_id: int) -> list[Attendance]:
    result = await db.execute(
        select(Attendance)
        .where(Attendance.student_id == user_id)
        .order_by(Attendance.check_in_time.desc())
    )
    return list(result.scalars().all())


async def get_library_attendances(db: AsyncSession, library_id: int) -> list[Attendance]:
    result = await db.execute(
        select(Attendance)
        .where(Attendance.library_id == library_id)
        .order_by(Attendance.check_in_time.desc())
    )
    return list(result.scalars().all())


async def get_my_monthly_attendances(db: AsyncSession, user_id: int) -> list[MonthlyAttendance]:
    result = await db.execute(
        select(MonthlyAttendance)
        .where(MonthlyAttendance.student_id == user_id)
        .order_by(MonthlyAttendance.date.desc())
    )
    return list(result.scalars().all())


async def get_library_monthly_attendances(db: AsyncSession, library_id: int) -> list[MonthlyAttendance]:
    result = await db.execute(
        select(MonthlyAttendance)
        .where(MonthlyAttendance.library_id == library_id)
        .order_by(MonthlyAttendance.date.desc(), MonthlyAttendance.student_id)
    )
    return list(result.scalars().all())
