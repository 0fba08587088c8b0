"""
Tests for library earnings, withdraw requests and library-scoped listings.
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient

from seatbook.core.exceptions import ForbiddenError, InvalidInputError, InvalidStateError, NotFoundError
from seatbook.core.security import Principal
from seatbook.services import earnings_service

from helpers import DAY, SLOT_PRICE, at


@pytest.mark.asyncio
async def test_earnings_count_slot_price_only(db_session, users, library, make_booking, make_monthly_booking):
    await make_booking(users.student)
    await make_booking(users.student, day=DAY + timedelta(days=1), status="completed")
    await make_booking(users.student, day=DAY + timedelta(days=2), status="missed")
    await make_booking(users.student, day=DAY + timedelta(days=3), status="cancelled", payment_status="refunded")
    await make_booking(users.student, day=DAY + timedelta(days=4), status="pending", payment_status="pending")
    await make_monthly_booking(users.other_student, DAY, DAY + timedelta(days=29), amount=300, total_amount=310)
    await make_monthly_booking(
        users.other_student,
        DAY + timedelta(days=40),
        DAY + timedelta(days=69),
        time_slot_id=library.afternoon_slot_id,
        amount=200,
        total_amount=210,
    )

    earnings = await earnings_service.get_library_earnings(db_session, library.id, now=at(DAY, 12))

    assert earnings["booking_earnings"] == 3 * SLOT_PRICE
    # The second monthly booking has not started yet
    assert earnings["monthly_booking_earnings"] == 300
    assert earnings["total_revenue"] == 3 * SLOT_PRICE + 300
    assert earnings["withdrawable_amount"] == 3 * SLOT_PRICE + 300


@pytest.mark.asyncio
async def test_withdraw_lifecycle(db_session, users, library, make_booking):
    await make_booking(users.student)
    await make_booking(users.student, day=DAY + timedelta(days=1))
    librarian = Principal(users.librarian, "librarian")

    request = await earnings_service.create_withdraw_request(db_session, library.id, 150, librarian, now=at(DAY, 12))
    assert request.status == "pending"

    earnings = await earnings_service.get_library_earnings(db_session, library.id, now=at(DAY, 12))
    assert earnings["pending_withdraw_amount"] == 150
    assert earnings["withdrawable_amount"] == 50

    with pytest.raises(InvalidStateError) as exc_info:
        await earnings_service.create_withdraw_request(db_session, library.id, 51, librarian, now=at(DAY, 12))
    assert exc_info.value.details == {"requested": 51, "withdrawable": 50}

    resolved = await earnings_service.resolve_withdraw_request(db_session, request.id, now=at(DAY, 13))
    assert resolved.status == "resolved"
    earnings = await earnings_service.get_library_earnings(db_session, library.id, now=at(DAY, 13))
    assert earnings["withdrawn_amount"] == 150
    assert earnings["pending_withdraw_amount"] == 0
    assert earnings["withdrawable_amount"] == 50

    with pytest.raises(InvalidStateError):
        await earnings_service.reject_withdraw_request(db_session, request.id)


@pytest.mark.asyncio
async def test_rejected_withdraw_frees_the_amount(db_session, users, library, make_booking):
    await make_booking(users.student)
    librarian = Principal(users.librarian, "librarian")

    request = await earnings_service.create_withdraw_request(db_session, library.id, 100, librarian, now=at(DAY, 12))
    rejected = await earnings_service.reject_withdraw_request(db_session, request.id)

    assert rejected.status == "rejected"
    assert rejected.rejected_reason == "No reason provided"
    earnings = await earnings_service.get_library_earnings(db_session, library.id, now=at(DAY, 12))
    assert earnings["withdrawable_amount"] == SLOT_PRICE


@pytest.mark.asyncio
async def test_withdraw_validation(db_session, users, library):
    with pytest.raises(InvalidInputError):
        await earnings_service.create_withdraw_request(
            db_session, library.id, 0, Principal(users.librarian, "librarian")
        )
    with pytest.raises(ForbiddenError):
        await earnings_service.create_withdraw_request(
            db_session, library.id, 10, Principal(users.other_librarian, "librarian")
        )
    with pytest.raises(NotFoundError):
        await earnings_service.resolve_withdraw_request(db_session, 9999)


@pytest.mark.asyncio
async def test_library_endpoints_over_http(client: AsyncClient, headers, users, library, make_booking):
    await make_booking(users.student, day=DAY - timedelta(days=3650))

    response = await client.get(f"/api/v1/libraries/{library.id}/earnings", headers=headers.librarian)
    assert response.status_code == 200
    assert response.json()["total_revenue"] == SLOT_PRICE

    response = await client.get(f"/api/v1/libraries/{library.id}/bookings", headers=headers.librarian)
    assert len(response.json()) == 1

    response = await client.get(f"/api/v1/libraries/{library.id}/earnings", headers=headers.other_librarian)
    assert response.status_code == 403

    response = await client.post(
        f"/api/v1/libraries/{library.id}/withdraw-requests", json={"amount": 60}, headers=headers.librarian
    )
    assert response.status_code == 201
    request_id = response.json()["id"]

    response = await client.get("/api/v1/admin/withdraw-requests", headers=headers.admin)
    assert [r["id"] for r in response.json()] == [request_id]

    response = await client.post(
        f"/api/v1/admin/withdraw-requests/{request_id}/reject",
        json={"reason": "Bank details missing"},
        headers=headers.admin,
    )
    assert response.status_code == 200
    assert response.json()["rejected_reason"] == "Bank details missing"

    response = await client.post(
        f"/api/v1/admin/withdraw-requests/{request_id}/resolve", headers=headers.admin
    )
    assert response.status_code == 400
