"""
Tests for cancellation, rejection and refunds.
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from seatbook.core.exceptions import ForbiddenError, InvalidStateError, NotFoundError
from seatbook.core.security import Principal
from seatbook.models import Booking, LedgerEntry, LedgerKind, MonthlyBooking
from seatbook.services import booking_service, cancellation_service, monthly_booking_service, wallet_service

from helpers import BOOKING_COMMISSION, DAY, SLOT_PRICE, at, balance_of, fund, status_of

PER_DAY = SLOT_PRICE + BOOKING_COMMISSION


async def _book(db, user_id, library, commission, days=1):
    result = await booking_service.create_booking(
        db,
        user_id,
        library.seat_id,
        library.slot_id,
        DAY,
        DAY + timedelta(days=days - 1),
        commission=commission,
    )
    return result.bookings


@pytest.mark.asyncio
async def test_cancel_refunds_total_amount(client: AsyncClient, db_session, users, headers, library, commission):
    await fund(db_session, users.student, 500)
    [booking] = await _book(db_session, users.student, library, commission)
    assert await balance_of(db_session, users.student) == 500 - PER_DAY

    response = await client.post(f"/api/v1/bookings/{booking.id}/cancel", headers=headers.student)
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "cancelled"
    assert data["payment_status"] == "refunded"
    assert data["cancelled_at"] is not None
    assert await balance_of(db_session, users.student) == 500

    result = await db_session.execute(
        select(LedgerEntry).where(LedgerEntry.kind == LedgerKind.REFUND)
    )
    refund = result.scalar_one()
    assert refund.amount == PER_DAY
    assert refund.status == "completed"
    assert refund.booking_ids == [booking.id]


@pytest.mark.asyncio
async def test_cancel_one_day_of_a_range_refunds_that_day(db_session, users, library, commission):
    await fund(db_session, users.student, 1000)
    bookings = await _book(db_session, users.student, library, commission, days=3)

    await cancellation_service.cancel_booking(
        db_session, bookings[1].id, users.student, now=at(DAY, 7)
    )

    assert await balance_of(db_session, users.student) == 1000 - 2 * PER_DAY
    assert await status_of(db_session, Booking, bookings[0].id) == "confirmed"
    assert await status_of(db_session, Booking, bookings[1].id) == "cancelled"


@pytest.mark.asyncio
async def test_cancel_twice_is_invalid_state(db_session, users, library, commission):
    await fund(db_session, users.student, 500)
    [booking] = await _book(db_session, users.student, library, commission)

    await cancellation_service.cancel_booking(db_session, booking.id, users.student, now=at(DAY, 7))
    with pytest.raises(InvalidStateError):
        await cancellation_service.cancel_booking(db_session, booking.id, users.student, now=at(DAY, 7))

    # Refunded exactly once
    assert await balance_of(db_session, users.student) == 500


@pytest.mark.asyncio
async def test_cancel_inside_the_last_hour_is_refused(db_session, users, library, commission):
    """Slot starts at 09:00; the deadline is 08:00 and is exclusive."""
    await fund(db_session, users.student, 500)
    [booking] = await _book(db_session, users.student, library, commission)

    with pytest.raises(InvalidStateError) as exc_info:
        await cancellation_service.cancel_booking(db_session, booking.id, users.student, now=at(DAY, 8))

    assert exc_info.value.details["deadline"] == at(DAY, 8).isoformat()
    assert await status_of(db_session, Booking, booking.id) == "confirmed"
    assert await balance_of(db_session, users.student) == 500 - PER_DAY


@pytest.mark.asyncio
async def test_cancel_just_before_deadline_is_allowed(db_session, users, library, commission):
    await fund(db_session, users.student, 500)
    [booking] = await _book(db_session, users.student, library, commission)

    cancelled = await cancellation_service.cancel_booking(
        db_session, booking.id, users.student, now=at(DAY, 7, 59)
    )
    assert cancelled.status == "cancelled"


@pytest.mark.asyncio
async def test_cancel_someone_elses_booking_is_not_found(db_session, users, make_booking):
    booking_id = await make_booking(users.other_student)

    with pytest.raises(NotFoundError):
        await cancellation_service.cancel_booking(db_session, booking_id, users.student, now=at(DAY, 7))


@pytest.mark.asyncio
async def test_cancel_unpaid_booking_marks_payment_failed(db_session, users, make_booking):
    booking_id = await make_booking(users.student, status="pending", payment_status="pending")

    booking = await cancellation_service.cancel_booking(
        db_session, booking_id, users.student, now=at(DAY, 7)
    )
    assert booking.status == "cancelled"
    assert booking.payment_status == "failed"


@pytest.mark.asyncio
async def test_checked_in_booking_cannot_be_cancelled(db_session, users, make_booking):
    booking_id = await make_booking(users.student, status="checked-in")

    with pytest.raises(InvalidStateError):
        await cancellation_service.cancel_booking(db_session, booking_id, users.student, now=at(DAY - timedelta(days=1), 7))


@pytest.mark.asyncio
async def test_librarian_rejects_and_refunds(client: AsyncClient, db_session, users, headers, library, commission):
    await fund(db_session, users.student, 500)
    [booking] = await _book(db_session, users.student, library, commission)

    response = await client.post(f"/api/v1/bookings/{booking.id}/reject", headers=headers.librarian)
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "rejected"
    assert data["payment_status"] == "refunded"
    assert data["rejected_by"] == users.librarian
    assert await balance_of(db_session, users.student) == 500


@pytest.mark.asyncio
async def test_other_librarian_cannot_reject(client: AsyncClient, db_session, users, headers, make_booking, other_library):
    booking_id = await make_booking(users.student)

    response = await client.post(f"/api/v1/bookings/{booking_id}/reject", headers=headers.other_librarian)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_student_cannot_reject(client: AsyncClient, headers, users, make_booking):
    booking_id = await make_booking(users.student)

    response = await client.post(f"/api/v1/bookings/{booking_id}/reject", headers=headers.student)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_can_reject_any_booking(db_session, users, make_booking):
    booking_id = await make_booking(users.student)
    await fund(db_session, users.student, 1)

    booking = await cancellation_service.reject_booking(
        db_session, booking_id, Principal(users.admin, "admin"), now=at(DAY, 10)
    )
    assert booking.status == "rejected"
    assert await balance_of(db_session, users.student) == 1 + PER_DAY


@pytest.mark.asyncio
async def test_reject_requires_management_rights(db_session, users, make_booking):
    booking_id = await make_booking(users.student)

    with pytest.raises(ForbiddenError):
        await cancellation_service.reject_booking(
            db_session, booking_id, Principal(users.other_librarian, "librarian")
        )


@pytest.mark.asyncio
async def test_cancel_monthly_within_first_day(db_session, users, library, commission):
    await fund(db_session, users.student, 500)
    result = await monthly_booking_service.create_monthly_booking(
        db_session,
        users.student,
        library.seat_id,
        library.slot_id,
        library.id,
        start=DAY,
        commission=commission,
        now=at(DAY, 6),
    )

    booking = await cancellation_service.cancel_monthly_booking(
        db_session, result.booking.id, users.student, now=at(DAY, 23, 59)
    )
    assert booking.status == "cancelled"
    assert booking.payment_status == "refunded"
    assert await balance_of(db_session, users.student) == 500

    refund = await db_session.execute(
        select(LedgerEntry).where(LedgerEntry.kind == LedgerKind.REFUND)
    )
    assert refund.scalar_one().monthly_booking_id == result.booking.id


@pytest.mark.asyncio
async def test_cancel_monthly_after_first_day_is_refused(db_session, users, make_monthly_booking):
    booking_id = await make_monthly_booking(users.student, DAY, DAY + timedelta(days=29))

    with pytest.raises(InvalidStateError):
        await cancellation_service.cancel_monthly_booking(
            db_session, booking_id, users.student, now=at(DAY + timedelta(days=1), 0)
        )
    assert await status_of(db_session, MonthlyBooking, booking_id) == "confirmed"


@pytest.mark.asyncio
async def test_cancel_completed_monthly_is_refused(db_session, users, make_monthly_booking):
    booking_id = await make_monthly_booking(
        users.student, DAY, DAY + timedelta(days=29), status="completed"
    )

    with pytest.raises(InvalidStateError):
        await cancellation_service.cancel_monthly_booking(
            db_session, booking_id, users.student, now=at(DAY - timedelta(days=5), 0)
        )


@pytest.mark.asyncio
async def test_refund_keeps_ledger_in_step_with_balance(db_session, users, library, commission):
    await fund(db_session, users.student, 700)
    bookings = await _book(db_session, users.student, library, commission, days=2)
    await cancellation_service.cancel_booking(db_session, bookings[0].id, users.student, now=at(DAY, 7))

    wallet = await wallet_service.get_wallet(db_session, users.student)
    assert await wallet_service.ledger_balance(db_session, wallet.id) == await balance_of(
        db_session, users.student
    )
