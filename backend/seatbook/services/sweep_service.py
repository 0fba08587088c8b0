"""
Status reconciliation sweep.

Relabels bookings nobody will act on any more:

  single-day, confirmed or checked-in, slot ended more than
  SWEEP_GRACE_MINUTES ago:
    - no attendance            -> missed
    - attendance still open    -> no-checkout
  single-day, still active but its attendance is closed  -> completed
  monthly, pending or confirmed, more than SWEEP_MONTHLY_GRACE_DAYS after
  the end of the last booked day:
    - no attendance day in the window -> missed
    - otherwise                       -> completed

Every transition is a conditional UPDATE on the expected prior status,
so a concurrent check-in or cancellation wins and the sweep skips that
row. Wallets and the ledger are never touched. Running it twice in a row
changes nothing the second time.
"""

from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from seatbook.core.config import get_settings
from seatbook.core.logging import get_logger
from seatbook.core.metrics import record_sweep_transition, sweep_runs
from seatbook.db.session import unit_of_work
from seatbook.models.attendance import Attendance, MonthlyAttendance
from seatbook.models.booking import Booking, BookingStatus
from seatbook.models.library import TimeSlot
from seatbook.models.monthly_booking import MonthlyBooking
from seatbook.utils.time import local_instant, local_today, start_of_day, utcnow

logger = get_logger(__name__)
settings = get_settings()

SWEEPABLE = (BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN)


@dataclass
class SweepReport:
    missed: int = 0
    no_checkout: int = 0
    completed: int = 0
    monthly_missed: int = 0
    monthly_completed: int = 0

    @property
    def total(self) -> int:
        return sum(asdict(self).values())

    def as_dict(self) -> dict:
        return {**asdict(self), "total": self.total}


async def _transition(db: AsyncSession, model, ids: list[int], prior, status: str) -> int:
    if not ids:
        return 0
    result = await db.execute(
        update(model)
        .where(model.id.in_(ids), model.status.in_(prior))
        .values(status=status)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def _sweep_single_day(db: AsyncSession, now: datetime, report: SweepReport) -> None:
    grace = timedelta(minutes=settings.SWEEP_GRACE_MINUTES)
    result = await db.execute(
        select(
            Booking.id,
            Booking.booking_date,
            TimeSlot.end_time,
            Attendance.id,
            Attendance.check_out_time,
        )
        .join(TimeSlot, TimeSlot.id == Booking.time_slot_id)
        .outerjoin(Attendance, Attendance.booking_id == Booking.id)
        .where(
            Booking.booking_date <= local_today(now),
            Booking.status.in_(SWEEPABLE),
        )
    )

    targets = defaultdict(list)
    for booking_id, booking_date, end_time, attendance_id, check_out_time in result.all():
        if attendance_id is not None and check_out_time is not None:
            targets[BookingStatus.COMPLETED].append(booking_id)
            continue
        if now <= local_instant(booking_date, end_time) + grace:
            continue
        if attendance_id is None:
            targets[BookingStatus.MISSED].append(booking_id)
        else:
            targets[BookingStatus.NO_CHECKOUT].append(booking_id)

    report.missed = await _transition(
        db, Booking, targets[BookingStatus.MISSED], SWEEPABLE, BookingStatus.MISSED
    )
    report.no_checkout = await _transition(
        db, Booking, targets[BookingStatus.NO_CHECKOUT], SWEEPABLE, BookingStatus.NO_CHECKOUT
    )
    report.completed = await _transition(
        db, Booking, targets[BookingStatus.COMPLETED], SWEEPABLE, BookingStatus.COMPLETED
    )


async def _sweep_monthly(db: AsyncSession, now: datetime, report: SweepReport) -> None:
    grace = timedelta(days=settings.SWEEP_MONTHLY_GRACE_DAYS)
    attended = (
        exists()
        .where(
            MonthlyAttendance.booking_id == MonthlyBooking.id,
            MonthlyAttendance.date >= MonthlyBooking.start_date,
            MonthlyAttendance.date <= MonthlyBooking.end_date,
        )
        .correlate(MonthlyBooking)
    )
    result = await db.execute(
        select(MonthlyBooking.id, MonthlyBooking.end_date, attended.label("attended")).where(
            MonthlyBooking.end_date <= local_today(now),
            MonthlyBooking.status.in_(BookingStatus.BLOCKING),
        )
    )

    missed, completed = [], []
    for booking_id, end_date, was_attended in result.all():
        # The booked period runs through the whole of end_date
        if now <= start_of_day(end_date + timedelta(days=1)) + grace:
            continue
        (completed if was_attended else missed).append(booking_id)

    report.monthly_missed = await _transition(
        db, MonthlyBooking, missed, BookingStatus.BLOCKING, BookingStatus.MISSED
    )
    report.monthly_completed = await _transition(
        db, MonthlyBooking, completed, BookingStatus.BLOCKING, BookingStatus.COMPLETED
    )


async def run_sweep(db: AsyncSession, now: Optional[datetime] = None) -> SweepReport:
    """One idempotent pass over every stale booking."""
    now = now or utcnow()
    report = SweepReport()
    try:
        async with unit_of_work(db):
            await _sweep_single_day(db, now, report)
            await _sweep_monthly(db, now, report)
    except Exception as e:
        sweep_runs.labels(result="error").inc()
        logger.error("sweep_failed", error=str(e))
        raise

    for transition, count in asdict(report).items():
        record_sweep_transition(transition, count)
    sweep_runs.labels(result="success").inc()
    logger.info("sweep_completed", now=now.isoformat(), **report.as_dict())
    return report
