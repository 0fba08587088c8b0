"""
Tests for the per-role dashboard summaries.
"""

from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import AsyncClient

from seatbook.core.exceptions import ForbiddenError
from seatbook.core.security import Principal
from seatbook.models import Attendance, MonthlyAttendance
from seatbook.services import stats_service

from helpers import BOOKING_COMMISSION, DAY, SLOT_PRICE, at, fund


def closed_session(day, minutes):
    check_in = at(day, 9)
    return {
        "check_in_time": check_in.isoformat(),
        "check_out_time": (check_in + timedelta(minutes=minutes)).isoformat(),
        "duration_minutes": minutes,
    }


@pytest_asyncio.fixture
async def student_history(db_session, users, library, other_library, make_booking, make_monthly_booking):
    """
    A student with a finished visit two days ago, one open check-in
    today, an upcoming booking, a cancelled one and a monthly booking
    in the branch library with a 90 minute day on it.
    """

    async def _build():
        await fund(db_session, users.student, 500)
        done = await make_booking(users.student, day=DAY - timedelta(days=2), status="completed")
        here = await make_booking(users.student, status="checked-in")
        await make_booking(users.student, day=DAY + timedelta(days=1))
        await make_booking(
            users.student, day=DAY + timedelta(days=2), status="cancelled", payment_status="refunded"
        )
        monthly = await make_monthly_booking(
            users.student,
            DAY + timedelta(days=10),
            DAY + timedelta(days=39),
            library_id=other_library.id,
            seat_id=other_library.seat_id,
            time_slot_id=other_library.slot_id,
        )
        await make_booking(users.other_student, day=DAY + timedelta(days=5))

        db_session.add_all(
            [
                Attendance(
                    student_id=users.student,
                    library_id=library.id,
                    booking_id=done,
                    time_slot_id=library.slot_id,
                    check_in_time=at(DAY - timedelta(days=2), 9),
                    check_out_time=at(DAY - timedelta(days=2), 10),
                    duration_minutes=60,
                ),
                Attendance(
                    student_id=users.student,
                    library_id=library.id,
                    booking_id=here,
                    time_slot_id=library.slot_id,
                    check_in_time=at(DAY, 9, 5),
                    method="manual",
                ),
                MonthlyAttendance(
                    student_id=users.student,
                    library_id=other_library.id,
                    booking_id=monthly,
                    date=DAY + timedelta(days=10),
                    sessions=[closed_session(DAY + timedelta(days=10), 90)],
                ),
            ]
        )
        await db_session.commit()

    return _build


@pytest.mark.asyncio
async def test_student_stats_summarise_bookings_and_attendance(db_session, users, student_history):
    await student_history()

    stats = await stats_service.get_student_stats(db_session, users.student, now=at(DAY, 9, 30))

    assert stats["bookings"] == {"completed": 1, "checked-in": 1, "confirmed": 1, "cancelled": 1}
    assert stats["monthly_bookings"] == {"confirmed": 1}
    assert stats["upcoming_bookings"] == 1
    assert stats["attendance"] == {
        "sessions": 2,
        "completed_sessions": 1,
        "daily_minutes": 60,
        "monthly_days": 1,
        "monthly_minutes": 90,
        "total_minutes": 150,
        "average_session_minutes": 60,
        "by_method": {"QR": 2, "manual": 1},
    }
    assert stats["libraries_visited"] == 2
    assert stats["wallet_balance"] == 500
    assert stats["checked_in_now"] is True


@pytest.mark.asyncio
async def test_student_stats_for_a_new_account_are_empty(db_session, users):
    stats = await stats_service.get_student_stats(db_session, users.student, now=at(DAY, 9))

    assert stats["bookings"] == {}
    assert stats["upcoming_bookings"] == 0
    assert stats["attendance"]["sessions"] == 0
    assert stats["attendance"]["average_session_minutes"] == 0
    assert stats["attendance"]["by_method"] == {}
    assert stats["libraries_visited"] == 0
    # No wallet row until the first top-up
    assert stats["wallet_balance"] == 0
    assert stats["checked_in_now"] is False


@pytest.mark.asyncio
async def test_open_monthly_session_counts_as_checked_in(
    db_session, users, library, make_monthly_booking
):
    booking_id = await make_monthly_booking(users.student, DAY, DAY + timedelta(days=29))
    day = MonthlyAttendance(
        student_id=users.student,
        library_id=library.id,
        booking_id=booking_id,
        date=DAY,
        sessions=[closed_session(DAY, 30)],
    )
    day.start_session(at(DAY, 12))
    db_session.add(day)
    await db_session.commit()

    stats = await stats_service.get_student_stats(db_session, users.student, now=at(DAY, 12, 30))

    assert stats["checked_in_now"] is True
    assert stats["attendance"]["monthly_minutes"] == 30


@pytest.mark.asyncio
async def test_library_stats_cover_today_and_earnings(db_session, users, library, other_library, make_booking):
    checked_in = await make_booking(users.other_student, seat_id=library.seat2_id, status="checked-in")
    await make_booking(users.student)
    await make_booking(users.student, day=DAY - timedelta(days=1), status="completed")
    await make_booking(
        users.student,
        library_id=other_library.id,
        seat_id=other_library.seat_id,
        time_slot_id=other_library.slot_id,
    )
    db_session.add(
        Attendance(
            student_id=users.other_student,
            library_id=library.id,
            booking_id=checked_in,
            time_slot_id=library.slot_id,
            check_in_time=at(DAY, 9, 2),
        )
    )
    await db_session.commit()

    librarian = Principal(users.librarian, "librarian")
    stats = await stats_service.get_library_stats(db_session, library.id, librarian, now=at(DAY, 10))

    assert stats["library_name"] == "Central Library"
    assert stats["bookings"] == {"checked-in": 1, "confirmed": 1, "completed": 1}
    assert stats["today_bookings"] == 2
    assert stats["today_check_ins"] == 1
    assert stats["attendance"]["sessions"] == 1
    assert stats["attendance"]["completed_sessions"] == 0
    assert stats["earnings"]["booking_earnings"] == 3 * SLOT_PRICE


@pytest.mark.asyncio
async def test_library_stats_refuse_a_foreign_librarian(db_session, users, library):
    with pytest.raises(ForbiddenError):
        await stats_service.get_library_stats(
            db_session, library.id, Principal(users.other_librarian, "librarian"), now=at(DAY, 10)
        )


@pytest.mark.asyncio
async def test_admin_stats_span_the_platform(db_session, users, library, make_booking, make_monthly_booking):
    await fund(db_session, users.student, 500)
    await fund(db_session, users.other_student, 200)
    await make_booking(users.student)
    await make_booking(users.student, day=DAY + timedelta(days=1), status="cancelled", payment_status="refunded")
    await make_monthly_booking(users.other_student, DAY + timedelta(days=10), DAY + timedelta(days=39))

    stats = await stats_service.get_admin_stats(db_session)

    assert stats["users"] == {"student": 2, "librarian": 2, "admin": 1}
    assert stats["libraries"] == 1
    assert stats["bookings"] == {"confirmed": 1, "cancelled": 1}
    assert stats["monthly_bookings"] == {"confirmed": 1}
    assert stats["wallets"] == {"count": 2, "total_balance": 700}
    assert stats["ledger"] == {"credit": 700}
    # The cancelled booking earns nothing
    assert stats["commission_earned"] == 2 * BOOKING_COMMISSION


@pytest.mark.asyncio
async def test_dashboard_routes_by_role(client: AsyncClient, users, library, headers, student_history):
    await student_history()

    response = await client.get("/api/v1/dashboard/student", headers=headers.student)
    assert response.status_code == 200
    assert response.json()["libraries_visited"] == 2

    response = await client.get(f"/api/v1/dashboard/libraries/{library.id}", headers=headers.librarian)
    assert response.status_code == 200
    assert response.json()["library_id"] == library.id

    response = await client.get(f"/api/v1/dashboard/libraries/{library.id}", headers=headers.admin)
    assert response.status_code == 200

    response = await client.get("/api/v1/dashboard/admin", headers=headers.admin)
    assert response.status_code == 200
    assert response.json()["users"]["student"] == 2


@pytest.mark.asyncio
async def test_dashboard_routes_refuse_other_roles(client: AsyncClient, library, headers):
    response = await client.get("/api/v1/dashboard/admin", headers=headers.student)
    assert response.status_code == 403

    response = await client.get("/api/v1/dashboard/student", headers=headers.librarian)
    assert response.status_code == 403

    response = await client.get(f"/api/v1/dashboard/libraries/{library.id}", headers=headers.other_librarian)
    assert response.status_code == 403
