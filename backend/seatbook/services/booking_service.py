"""
Booking transaction engine for single-day bookings.

CONCURRENCY STRATEGY: Seat lock + conditional debit + unique index
==================================================================

Problem:
  Two students book the same seat, slot and date at the same moment.
  Both run the availability check, both see the date free, both debit
  their wallets and both insert a booking. Result: a double-booked seat
  and two charges for one seat.

Solution (one unit of work per request):

  1. SELECT ... FOR UPDATE on the seat row. The second request waits
     here until the first commits or rolls back, so its availability
     check sees the first request's bookings.
  2. Availability check across every requested date. Any conflict
     aborts before money moves and reports the conflicting dates.
  3. Conditional wallet debit (see wallet_service).
  4. Insert one booking per date, link them to the debit entry, commit.

  The partial unique index on (seat_id, time_slot_id, booking_date) over
  active statuses is the final safety net: on databases without row
  locks, the losing insert raises IntegrityError, the whole unit of work
  rolls back (including the debit) and the caller gets a ConflictError.

Alternatives considered:
  - Optimistic version column on the seat: every booking for any date
    of the seat would bump it, so unrelated dates would retry each other.
  - SERIALIZABLE isolation: correct, but pushes retry handling onto every
    caller for the rare contention case.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from seatbook.core.exceptions import (
    ConflictError,
    DomainError,
    InsufficientFundsError,
    InvalidInputError,
    InvalidStateError,
)
from seatbook.core.logging import get_logger
from seatbook.core.metrics import booking_latency, record_booking_attempt
from seatbook.db.session import unit_of_work
from seatbook.models.booking import Booking, BookingStatus, PaymentStatus
from seatbook.models.wallet import LedgerEntry
from seatbook.services import wallet_service
from seatbook.services.availability_service import (
    find_conflicting_dates,
    find_taken_dates,
    get_time_slot,
    lock_seat,
)
from seatbook.services.library_service import get_library
from seatbook.services.notification_service import publish_user_event
from seatbook.services.settings_service import CommissionSnapshot, require_snapshot
from seatbook.utils.time import date_range, days_inclusive

logger = get_logger(__name__)

KIND = "single"
ACTIVE_SLOT_INDEX = "uq_bookings_active_seat_slot_date"
# SQLite reports the unique index by its columns rather than its name
ACTIVE_SLOT_COLUMNS = "bookings.seat_id, bookings.time_slot_id, bookings.booking_date"


@dataclass
class BookingResult:
    bookings: list[Booking]
    transaction: LedgerEntry
    summary: dict = field(default_factory=dict)


def is_active_slot_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return ACTIVE_SLOT_INDEX in message or ACTIVE_SLOT_COLUMNS in message


def attempt_status(exc: BaseException) -> str:
    """Metric label for a failed booking attempt."""
    if isinstance(exc, ConflictError):
        return "conflict"
    if isinstance(exc, InsufficientFundsError):
        return "insufficient_funds"
    if isinstance(exc, DomainError):
        return "rejected"
    return "error"


async def create_booking(
    db: AsyncSession,
    user_id: int,
    seat_id: Optional[int],
    time_slot_id: Optional[int],
    start_date: Optional[date],
    end_date: Optional[date] = None,
    commission: Optional[CommissionSnapshot] = None,
) -> BookingResult:
    """
    Book a seat in a time slot for every date in [start_date, end_date].

    All-or-nothing: either every date is booked and paid by a single
    debit entry, or nothing is written.
    """
    if seat_id is None or time_slot_id is None or start_date is None:
        raise InvalidInputError("seat_id, time_slot_id and start_date are required")
    end_date = end_date or start_date

    try:
        with booking_latency.labels(kind=KIND).time():
            async with unit_of_work(db):
                result = await _book_dates(
                    db, user_id, seat_id, time_slot_id, start_date, end_date, commission
                )
    except IntegrityError as exc:
        if not is_active_slot_violation(exc):
            record_booking_attempt(KIND, "error")
            raise
        # Lost the race on the active-booking unique index
        record_booking_attempt(KIND, "conflict")
        taken = await find_taken_dates(db, seat_id, time_slot_id, start_date, end_date)
        logger.warning(
            "booking_conflict",
            user_id=user_id,
            seat_id=seat_id,
            time_slot_id=time_slot_id,
            conflicts=taken,
            reason="unique_index",
        )
        raise ConflictError(
            "Seat was booked by someone else for the requested dates",
            conflicts=taken or [day.isoformat() for day in date_range(start_date, end_date)],
        ) from exc
    except Exception as exc:
        record_booking_attempt(KIND, attempt_status(exc))
        raise

    record_booking_attempt(KIND, "success")
    await publish_user_event(
        user_id,
        "booking_confirmed",
        {
            "booking_ids": [booking.id for booking in result.bookings],
            "ledger_entry_id": result.transaction.id,
            "total_amount": result.summary["total_amount"],
        },
    )
    return result


async def _book_dates(
    db: AsyncSession,
    user_id: int,
    seat_id: int,
    time_slot_id: int,
    start_date: date,
    end_date: date,
    commission: Optional[CommissionSnapshot],
) -> BookingResult:
    # Step 1: lock the seat, load the slot and the pricing snapshot
    seat = await lock_seat(db, seat_id)
    slot = await get_time_slot(db, time_slot_id)
    if not slot.is_active:
        raise InvalidStateError("Time slot is not active")
    snapshot = require_snapshot(commission)

    if seat.library_id != slot.library_id or not slot.serves(seat.id):
        raise InvalidInputError("Seat is not offered in this time slot")
    if not seat.is_active:
        raise InvalidStateError("Seat is not active")
    library = await get_library(db, slot.library_id)
    if library.is_blocked:
        raise InvalidStateError("Library is not accepting bookings")

    if start_date > end_date:
        raise InvalidInputError("start_date must not be after end_date")

    # Step 2: every date must be free; report all conflicts at once
    conflicts = await find_conflicting_dates(
        db, seat.id, slot.id, library.id, start_date, end_date
    )
    if conflicts:
        logger.warning(
            "booking_conflict",
            user_id=user_id,
            seat_id=seat.id,
            time_slot_id=slot.id,
            conflicts=conflicts,
        )
        raise ConflictError(
            f"Seat already booked on: {', '.join(conflicts)}",
            conflicts=conflicts,
        )

    # Step 3: price per day, no proration
    days = days_inclusive(start_date, end_date)
    slot_price = slot.price * days
    commission_total = snapshot.booking_commission * days
    total_amount = slot_price + commission_total
    if total_amount <= 0:
        raise InvalidStateError("Time slot has no price configured")

    # Step 4: money moves; the entry stays pending until the bookings exist
    _, entry = await wallet_service.debit(
        db,
        user_id,
        total_amount,
        f"Seat {seat.seat_number} booked for {days} day(s) from {start_date.isoformat()}",
        library_id=library.id,
    )

    # Step 5: one booking row per date, all paid by the same entry
    bookings = [
        Booking(
            user_id=user_id,
            seat_id=seat.id,
            time_slot_id=slot.id,
            library_id=library.id,
            booking_date=day,
            status=BookingStatus.CONFIRMED,
            payment_status=PaymentStatus.PAID,
            amount=slot.price,
            commission=snapshot.booking_commission,
            total_amount=slot.price + snapshot.booking_commission,
            ledger_entry_id=entry.id,
        )
        for day in date_range(start_date, end_date)
    ]
    db.add_all(bookings)
    await db.flush()

    # Step 6: link back and complete the payment
    entry.link_bookings(bookings)
    wallet_service.complete_entry(entry)
    await db.flush()

    logger.info(
        "booking_created",
        user_id=user_id,
        seat_id=seat.id,
        time_slot_id=slot.id,
        booking_ids=[booking.id for booking in bookings],
        days=days,
        total_amount=total_amount,
        ledger_entry_id=entry.id,
    )
    return BookingResult(
        bookings=bookings,
        transaction=entry,
        summary={
            "total_days": days,
            "slot_price": slot_price,
            "commission": commission_total,
            "total_amount": total_amount,
        },
    )


async def get_user_bookings(
    db: AsyncSession,
    user_id: int,
    status: Optional[str] = None,
) -> list[Booking]:
    """Get all bookings for a user, newest date first."""
    query = select(Booking).where(Booking.user_id == user_id)
    if status:
        query = query.where(Booking.status == status)
    result = await db.execute(
        query.order_by(Booking.booking_date.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())


async def get_library_bookings(
    db: AsyncSession,
    library_id: int,
    booking_date: Optional[date] = None,
    status: Optional[str] = None,
) -> list[Booking]:
    query = select(Booking).where(Booking.library_id == library_id)
    if booking_date:
        query = query.where(Booking.booking_date == booking_date)
    if status:
        query = query.where(Booking.status == status)
    result = await db.execute(
        query.order_by(Booking.booking_date.desc(), Booking.time_slot_id, Booking.seat_id)
    )
    return list(result.scalars().all())
