"""
Cancellation, rejection and refund engine.

A refund reverses exactly what was charged: the booking's `total_amount`
is credited back with one completed refund entry linked to the booking,
and `payment_status` moves to `refunded`. The status change, the wallet
credit and the ledger write share one unit of work.

Bookings are loaded with FOR UPDATE so two concurrent cancels of the
same booking serialize; the second sees `cancelled` and fails with
InvalidState instead of refunding twice.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from seatbook.core.config import get_settings
from seatbook.core.exceptions import InvalidStateError, NotFoundError
from seatbook.core.logging import get_logger
from seatbook.core.metrics import record_cancellation
from seatbook.core.security import Principal
from seatbook.db.session import unit_of_work
from seatbook.models.booking import Booking, BookingStatus, PaymentStatus
from seatbook.models.monthly_booking import MonthlyBooking
from seatbook.models.wallet import LedgerKind
from seatbook.services import wallet_service
from seatbook.services.availability_service import get_time_slot
from seatbook.services.library_service import ensure_can_manage
from seatbook.services.notification_service import publish_user_event
from seatbook.utils.time import local_instant, start_of_day, utcnow

logger = get_logger(__name__)
settings = get_settings()

# Monthly bookings in these states can no longer be cancelled
MONTHLY_FINAL = (BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.REJECTED)


async def _lock_booking(db: AsyncSession, booking_id: int) -> Booking:
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


async def _lock_monthly_booking(db: AsyncSession, booking_id: int) -> MonthlyBooking:
    result = await db.execute(
        select(MonthlyBooking)
        .where(MonthlyBooking.id == booking_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if not booking:
        raise NotFoundError("Monthly booking not found")
    return booking


async def _settle_payment(db: AsyncSession, booking, description: str, monthly: bool = False) -> int:
    """Refund a paid booking in full; mark an unpaid one failed. Returns coins refunded."""
    if booking.payment_status != PaymentStatus.PAID:
        if booking.payment_status == PaymentStatus.PENDING:
            booking.payment_status = PaymentStatus.FAILED
        return 0

    await wallet_service.credit(
        db,
        booking.user_id,
        booking.total_amount,
        description,
        kind=LedgerKind.REFUND,
        library_id=booking.library_id,
        bookings=None if monthly else [booking],
        monthly_booking=booking if monthly else None,
    )
    booking.payment_status = PaymentStatus.REFUNDED
    return booking.total_amount


async def cancel_booking(
    db: AsyncSession,
    booking_id: int,
    user_id: int,
    now: Optional[datetime] = None,
) -> Booking:
    """
    Student cancels their own single-day booking.

    Allowed from pending or confirmed, and only while the slot start on
    the booking date is more than CANCELLATION_GRACE_MINUTES away.
    """
    now = now or utcnow()
    try:
        async with unit_of_work(db):
            booking = await _lock_booking(db, booking_id)
            if booking.user_id != user_id:
                raise NotFoundError("Booking not found")
            if booking.status not in BookingStatus.CANCELLABLE:
                raise InvalidStateError(f"Cannot cancel a booking that is {booking.status}")

            slot = await get_time_slot(db, booking.time_slot_id)
            scheduled = local_instant(booking.booking_date, slot.start_time)
            deadline = scheduled - timedelta(minutes=settings.CANCELLATION_GRACE_MINUTES)
            if now >= deadline:
                raise InvalidStateError(
                    "Cancellation window has passed. Bookings can be cancelled up to "
                    f"{settings.CANCELLATION_GRACE_MINUTES} minutes before the slot starts",
                    details={"deadline": deadline.isoformat()},
                )

            refunded = await _settle_payment(
                db, booking, f"Refund for cancelled booking {booking.id} on {booking.booking_date.isoformat()}"
            )
            booking.status = BookingStatus.CANCELLED
            booking.cancelled_at = now
            await db.flush()
    except Exception:
        record_cancellation("cancel", success=False)
        raise

    record_cancellation("cancel", success=True)
    logger.info(
        "booking_cancelled",
        booking_id=booking.id,
        user_id=user_id,
        refunded=refunded,
    )
    if refunded:
        logger.info("booking_refunded", booking_id=booking.id, amount=refunded)
    await publish_user_event(
        user_id, "booking_cancelled", {"booking_id": booking.id, "refunded": refunded}
    )
    return booking


async def cancel_monthly_booking(
    db: AsyncSession,
    booking_id: int,
    user_id: int,
    now: Optional[datetime] = None,
) -> MonthlyBooking:
    """
    Student cancels their own monthly booking.

    Refused once cancelled, completed or rejected, and once
    MONTHLY_CANCELLATION_GRACE_DAYS have passed since the start date began.
    """
    now = now or utcnow()
    try:
        async with unit_of_work(db):
            booking = await _lock_monthly_booking(db, booking_id)
            if booking.user_id != user_id:
                raise NotFoundError("Monthly booking not found")
            if booking.status in MONTHLY_FINAL:
                raise InvalidStateError(f"Cannot cancel a monthly booking that is {booking.status}")

            deadline = start_of_day(booking.start_date) + timedelta(
                days=settings.MONTHLY_CANCELLATION_GRACE_DAYS
            )
            if now >= deadline:
                raise InvalidStateError(
                    "Cancellation window has passed. Monthly bookings can be cancelled within "
                    f"{settings.MONTHLY_CANCELLATION_GRACE_DAYS} day(s) of the start date",
                    details={"deadline": deadline.isoformat()},
                )

            refunded = await _settle_payment(
                db,
                booking,
                f"Refund for cancelled monthly booking {booking.id}",
                monthly=True,
            )
            booking.status = BookingStatus.CANCELLED
            booking.cancelled_at = now
            await db.flush()
    except Exception:
        record_cancellation("cancel_monthly", success=False)
        raise

    record_cancellation("cancel_monthly", success=True)
    logger.info(
        "monthly_booking_cancelled",
        monthly_booking_id=booking.id,
        user_id=user_id,
        refunded=refunded,
    )
    if refunded:
        logger.info("booking_refunded", monthly_booking_id=booking.id, amount=refunded)
    await publish_user_event(
        user_id, "monthly_booking_cancelled", {"monthly_booking_id": booking.id, "refunded": refunded}
    )
    return booking


async def reject_booking(
    db: AsyncSession,
    booking_id: int,
    actor: Principal,
    now: Optional[datetime] = None,
) -> Booking:
    """Librarian of the booking's library, or an admin, rejects a pending or confirmed booking."""
    now = now or utcnow()
    try:
        async with unit_of_work(db):
            booking = await _lock_booking(db, booking_id)
            await ensure_can_manage(db, booking.library_id, actor)
            if booking.status not in BookingStatus.CANCELLABLE:
                raise InvalidStateError(f"Cannot reject a booking that is {booking.status}")

            refunded = await _settle_payment(
                db, booking, f"Refund for rejected booking {booking.id} on {booking.booking_date.isoformat()}"
            )
            booking.status = BookingStatus.REJECTED
            booking.rejected_at = now
            booking.rejected_by = actor.user_id
            await db.flush()
    except Exception:
        record_cancellation("reject", success=False)
        raise

    record_cancellation("reject", success=True)
    logger.info(
        "booking_rejected",
        booking_id=booking.id,
        rejected_by=actor.user_id,
        refunded=refunded,
    )
    if refunded:
        logger.info("booking_refunded", booking_id=booking.id, amount=refunded)
    await publish_user_event(
        booking.user_id, "booking_rejected", {"booking_id": booking.id, "refunded": refunded}
    )
    return booking
