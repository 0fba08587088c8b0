"""
Tests for the availability checks both booking engines rely on.
"""

from datetime import timedelta

import pytest
from sqlalchemy.exc import InvalidRequestError

from seatbook.core.exceptions import NotFoundError
from seatbook.services.availability_service import (
    find_conflicting_dates,
    has_monthly_conflict,
    lock_seat,
)

from helpers import DAY


@pytest.mark.asyncio
async def test_free_range_has_no_conflicts(db_session, library):
    conflicts = await find_conflicting_dates(
        db_session, library.seat_id, library.slot_id, library.id, DAY, DAY + timedelta(days=6)
    )
    assert conflicts == []


@pytest.mark.asyncio
async def test_only_pending_and_confirmed_block(db_session, users, library, make_booking):
    await make_booking(users.student, day=DAY, status="pending", payment_status="pending")
    await make_booking(users.student, day=DAY + timedelta(days=1))
    await make_booking(users.student, day=DAY + timedelta(days=2), status="cancelled", payment_status="refunded")
    await make_booking(users.student, day=DAY + timedelta(days=3), status="missed")

    conflicts = await find_conflicting_dates(
        db_session, library.seat_id, library.slot_id, library.id, DAY, DAY + timedelta(days=3)
    )
    assert conflicts == [DAY.isoformat(), (DAY + timedelta(days=1)).isoformat()]


@pytest.mark.asyncio
async def test_conflicts_are_scoped_to_seat_and_slot(db_session, users, library, make_booking):
    await make_booking(users.student)

    assert await find_conflicting_dates(
        db_session, library.seat2_id, library.slot_id, library.id, DAY, DAY
    ) == []
    assert await find_conflicting_dates(
        db_session, library.seat_id, library.afternoon_slot_id, library.id, DAY, DAY
    ) == []


@pytest.mark.asyncio
async def test_monthly_overlap_edges(db_session, users, library, make_monthly_booking):
    end = DAY + timedelta(days=29)
    await make_monthly_booking(users.student, DAY, end)

    # Touching the last day overlaps, the day after does not
    assert await has_monthly_conflict(db_session, library.seat_id, end, end + timedelta(days=29), library.slot_id)
    assert not await has_monthly_conflict(
        db_session, library.seat_id, end + timedelta(days=1), end + timedelta(days=30), library.slot_id
    )
    # Seat-wide check sees every slot
    assert await has_monthly_conflict(db_session, library.seat_id, DAY, DAY)
    assert not await has_monthly_conflict(db_session, library.seat_id, DAY, DAY, library.afternoon_slot_id)


@pytest.mark.asyncio
async def test_lock_unknown_seat(db_session):
    with pytest.raises(NotFoundError):
        await lock_seat(db_session, 12345)


@pytest.mark.asyncio
async def test_seat_back_references_never_load_implicitly(db_session, library):
    seat = await lock_seat(db_session, library.seat_id)

    with pytest.raises(InvalidRequestError):
        seat.library
