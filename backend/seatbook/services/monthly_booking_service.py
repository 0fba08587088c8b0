"""
Booking transaction engine for monthly bookings.

A monthly booking holds one seat for MONTHLY_WINDOW_DAYS consecutive
days (start..start+window-1 inclusive) and is paid with a single flat
charge. Same unit-of-work shape as the single-day engine: lock the
seat, check the window for overlap, debit, insert, link, commit.

Two variants:
  - `create_monthly_booking`: slot-aware, priced at the slot price plus
    the booking commission. Only bookings on the same slot (or legacy
    seat-wide bookings) conflict.
  - `create_legacy_monthly_booking`: deprecated seat-wide booking priced
    at the library's flat monthly fee plus commission. It occupies the
    seat in every slot.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from seatbook.core.config import get_settings
from seatbook.core.exceptions import ConflictError, InvalidInputError, InvalidStateError
from seatbook.core.logging import get_logger
from seatbook.core.metrics import booking_latency, record_booking_attempt
from seatbook.db.session import unit_of_work
from seatbook.models.booking import BookingStatus, PaymentStatus
from seatbook.models.library import Library, Seat
from seatbook.models.monthly_booking import MonthlyBooking
from seatbook.models.wallet import LedgerEntry
from seatbook.services import wallet_service
from seatbook.services.availability_service import get_time_slot, has_monthly_conflict, lock_seat
from seatbook.services.booking_service import attempt_status
from seatbook.services.library_service import get_library
from seatbook.services.notification_service import publish_user_event
from seatbook.services.settings_service import CommissionSnapshot, require_snapshot
from seatbook.utils.time import local_today, utcnow

logger = get_logger(__name__)
settings = get_settings()

KIND = "monthly"
LEGACY_KIND = "legacy_monthly"


@dataclass
class MonthlyBookingResult:
    booking: MonthlyBooking
    transaction: LedgerEntry
    summary: dict = field(default_factory=dict)


def booking_window(start: date) -> tuple[date, date]:
    return start, start + timedelta(days=settings.MONTHLY_WINDOW_DAYS - 1)


async def create_monthly_booking(
    db: AsyncSession,
    user_id: int,
    seat_id: Optional[int],
    time_slot_id: Optional[int],
    library_id: Optional[int],
    start: Optional[date] = None,
    commission: Optional[CommissionSnapshot] = None,
    now: Optional[datetime] = None,
) -> MonthlyBookingResult:
    """Book a seat in one time slot for a monthly window starting at `start` (default today)."""
    if seat_id is None or time_slot_id is None or library_id is None:
        raise InvalidInputError("seat_id, time_slot_id and library_id are required")
    now = now or utcnow()

    async def purchase() -> MonthlyBookingResult:
        seat = await lock_seat(db, seat_id)
        slot = await get_time_slot(db, time_slot_id)
        if not slot.is_active:
            raise InvalidStateError("Time slot is not active")
        snapshot = require_snapshot(commission)

        if slot.library_id != library_id:
            raise InvalidInputError("Time slot does not belong to this library")
        if seat.library_id != library_id or not slot.serves(seat.id):
            raise InvalidInputError("Seat is not offered in this time slot")

        return await _purchase(
            db,
            user_id,
            seat,
            await get_library(db, library_id),
            time_slot_id=slot.id,
            start=start or local_today(now),
            today=local_today(now),
            amount=slot.price,
            commission=snapshot.booking_commission,
            kind=KIND,
        )

    return await _run(db, user_id, KIND, purchase)


async def create_legacy_monthly_booking(
    db: AsyncSession,
    user_id: int,
    seat_id: Optional[int],
    library_id: Optional[int],
    commission: Optional[CommissionSnapshot] = None,
    now: Optional[datetime] = None,
) -> MonthlyBookingResult:
    """
    Deprecated: seat-wide monthly booking at the library's flat fee.
    Starts today; conflicts with any monthly booking on the seat.
    """
    if seat_id is None or library_id is None:
        raise InvalidInputError("seat_id and library_id are required")
    now = now or utcnow()
    logger.warning("legacy_monthly_booking_used", user_id=user_id, library_id=library_id)

    async def purchase() -> MonthlyBookingResult:
        seat = await lock_seat(db, seat_id)
        library = await get_library(db, library_id)
        snapshot = require_snapshot(commission)
        if seat.library_id != library.id:
            raise InvalidInputError("Seat does not belong to this library")
        if not library.monthly_fee:
            raise InvalidStateError("Library does not offer a monthly plan")

        today = local_today(now)
        return await _purchase(
            db,
            user_id,
            seat,
            library,
            time_slot_id=None,
            start=today,
            today=today,
            amount=library.monthly_fee,
            commission=snapshot.booking_commission,
            kind=LEGACY_KIND,
        )

    return await _run(db, user_id, LEGACY_KIND, purchase)


async def _run(db: AsyncSession, user_id: int, kind: str, purchase) -> MonthlyBookingResult:
    try:
        with booking_latency.labels(kind=kind).time():
            async with unit_of_work(db):
                result = await purchase()
    except Exception as exc:
        record_booking_attempt(kind, attempt_status(exc))
        raise

    record_booking_attempt(kind, "success")
    await publish_user_event(
        user_id,
        "monthly_booking_confirmed",
        {
            "monthly_booking_id": result.booking.id,
            "start_date": result.booking.start_date.isoformat(),
            "end_date": result.booking.end_date.isoformat(),
            "total_amount": result.booking.total_amount,
        },
    )
    return result


async def _purchase(
    db: AsyncSession,
    user_id: int,
    seat: Seat,
    library: Library,
    time_slot_id: Optional[int],
    start: date,
    today: date,
    amount: int,
    commission: int,
    kind: str,
) -> MonthlyBookingResult:
    if library.is_blocked:
        raise InvalidStateError("Library is not accepting bookings")
    if not seat.is_active:
        raise InvalidStateError("Seat is not active")
    if start < today:
        raise InvalidInputError("Monthly booking cannot start in the past")

    start, end = booking_window(start)
    if await has_monthly_conflict(db, seat.id, start, end, time_slot_id=time_slot_id):
        logger.warning(
            "monthly_booking_conflict",
            user_id=user_id,
            seat_id=seat.id,
            time_slot_id=time_slot_id,
            start_date=start.isoformat(),
            end_date=end.isoformat(),
        )
        raise ConflictError(
            "Seat is already booked for an overlapping monthly window",
            conflicts=[{"start_date": start.isoformat(), "end_date": end.isoformat()}],
        )

    total_amount = amount + commission
    if total_amount <= 0:
        raise InvalidStateError("Monthly plan has no price configured")

    _, entry = await wallet_service.debit(
        db,
        user_id,
        total_amount,
        f"Monthly booking of seat {seat.seat_number} from {start.isoformat()} to {end.isoformat()}",
        library_id=library.id,
    )

    booking = MonthlyBooking(
        user_id=user_id,
        seat_id=seat.id,
        time_slot_id=time_slot_id,
        library_id=library.id,
        start_date=start,
        end_date=end,
        amount=amount,
        commission=commission,
        total_amount=total_amount,
        status=BookingStatus.CONFIRMED,
        payment_status=PaymentStatus.PAID,
    )
    db.add(booking)
    await db.flush()

    entry.link_monthly_booking(booking)
    wallet_service.complete_entry(entry)
    await db.flush()

    logger.info(
        "monthly_booking_created",
        kind=kind,
        user_id=user_id,
        seat_id=seat.id,
        time_slot_id=time_slot_id,
        monthly_booking_id=booking.id,
        start_date=start.isoformat(),
        end_date=end.isoformat(),
        total_amount=total_amount,
        ledger_entry_id=entry.id,
    )
    return MonthlyBookingResult(
        booking=booking,
        transaction=entry,
        summary={
            "window_days": settings.MONTHLY_WINDOW_DAYS,
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "slot_price": amount,
            "commission": commission,
            "total_amount": total_amount,
        },
    )


async def find_active_monthly_booking(
    db: AsyncSession,
    user_id: int,
    library_id: int,
    today: date,
) -> Optional[MonthlyBooking]:
    """The user's confirmed, paid monthly booking in this library covering `today`."""
    result = await db.execute(
        select(MonthlyBooking)
        .where(
            MonthlyBooking.user_id == user_id,
            MonthlyBooking.library_id == library_id,
            MonthlyBooking.status == BookingStatus.CONFIRMED,
            MonthlyBooking.payment_status == PaymentStatus.PAID,
            MonthlyBooking.start_date <= today,
            MonthlyBooking.end_date >= today,
        )
        .order_by(MonthlyBooking.start_date.desc(), MonthlyBooking.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_user_monthly_bookings(
    db: AsyncSession,
    user_id: int,
    status: Optional[str] = None,
) -> list[MonthlyBooking]:
    query = select(MonthlyBooking).where(MonthlyBooking.user_id == user_id)
    if status:
        query = query.where(MonthlyBooking.status == status)
    result = await db.execute(
        query.order_by(MonthlyBooking.start_date.desc(), MonthlyBooking.id.desc())
    )
    return list(result.scalars().all())


async def get_library_monthly_bookings(
    db: AsyncSession,
    library_id: int,
    status: Optional[str] = None,
) -> list[MonthlyBooking]:
    query = select(MonthlyBooking).where(MonthlyBooking.library_id == library_id)
    if status:
        query = query.where(MonthlyBooking.status == status)
    result = await db.execute(
        query.order_by(MonthlyBooking.start_date.desc(), MonthlyBooking.id.desc())
    )
    return list(result.scalars().all())
