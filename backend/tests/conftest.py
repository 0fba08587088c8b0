"""
Pytest fixtures for test database, client, and authentication.

Runs against a throwaway SQLite file through aiosqlite; tables are created
and dropped around every test for isolation. Row locks are no-ops on
SQLite, the partial unique index on active bookings is not.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./seatbook_test.db")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("SWEEP_ENABLED", "false")
os.environ.setdefault("TIMEZONE", "UTC")

from datetime import date, time
from types import SimpleNamespace
from typing import AsyncGenerator

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from seatbook.main import app
from seatbook.db.base import Base
from seatbook.db.session import get_db
from seatbook.core.security import create_access_token, hash_password
from seatbook.models import (
    Booking,
    CommissionSettings,
    Library,
    MonthlyBooking,
    Seat,
    TimeSlot,
    User,
)
from seatbook.services.settings_service import CommissionSnapshot

from helpers import AFTERNOON_PRICE, BOOKING_COMMISSION, DAY, SLOT_PRICE

TEST_DATABASE_URL = os.environ["DATABASE_URL"]

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def users(db_session: AsyncSession) -> SimpleNamespace:
    """One account per role, plus a second student and a second librarian. Holds ids only."""
    accounts = {
        "student": ("student@example.com", "student", "student"),
        "other_student": ("other@example.com", "otherstudent", "student"),
        "librarian": ("librarian@example.com", "librarian", "librarian"),
        "other_librarian": ("otherlib@example.com", "otherlibrarian", "librarian"),
        "admin": ("admin@example.com", "admin", "admin"),
    }
    created = {}
    for key, (email, username, role) in accounts.items():
        user = User(
            email=email,
            username=username,
            hashed_password=hash_password("testpassword123"),
            role=role,
        )
        db_session.add(user)
        created[key] = user
    await db_session.commit()
    return SimpleNamespace(**{key: user.id for key, user in created.items()})


@pytest_asyncio.fixture
async def headers(users: SimpleNamespace) -> SimpleNamespace:
    """Bearer headers for every account in `users`."""

    def bearer(user_id: int, role: str) -> dict:
        token = create_access_token(data={"sub": str(user_id), "role": role})
        return {"Authorization": f"Bearer {token}"}

    return SimpleNamespace(
        student=bearer(users.student, "student"),
        other_student=bearer(users.other_student, "student"),
        librarian=bearer(users.librarian, "librarian"),
        other_librarian=bearer(users.other_librarian, "librarian"),
        admin=bearer(users.admin, "admin"),
    )


@pytest_asyncio.fixture
async def library(db_session: AsyncSession, users: SimpleNamespace) -> SimpleNamespace:
    """
    A library run by `users.librarian` with two seats. The morning slot
    serves both seats, the afternoon slot only the first one.
    """
    lib = Library(name="Central Library", librarian_id=users.librarian, location="Main St", monthly_fee=500)
    db_session.add(lib)
    await db_session.flush()

    seat = Seat(library_id=lib.id, seat_number="A1", seat_name="Window A1")
    seat2 = Seat(library_id=lib.id, seat_number="A2", seat_name="Aisle A2")
    db_session.add_all([seat, seat2])
    await db_session.flush()

    morning = TimeSlot(
        library_id=lib.id,
        start_time=time(9, 0),
        end_time=time(11, 0),
        price=SLOT_PRICE,
        seats=[seat, seat2],
    )
    afternoon = TimeSlot(
        library_id=lib.id,
        start_time=time(14, 0),
        end_time=time(16, 0),
        price=AFTERNOON_PRICE,
        seats=[seat],
    )
    db_session.add_all([morning, afternoon])
    await db_session.commit()

    return SimpleNamespace(
        id=lib.id,
        seat_id=seat.id,
        seat2_id=seat2.id,
        slot_id=morning.id,
        afternoon_slot_id=afternoon.id,
    )


@pytest_asyncio.fixture
async def other_library(db_session: AsyncSession, users: SimpleNamespace) -> SimpleNamespace:
    lib = Library(name="Branch Library", librarian_id=users.other_librarian)
    db_session.add(lib)
    await db_session.flush()
    seat = Seat(library_id=lib.id, seat_number="B1", seat_name="B1")
    db_session.add(seat)
    await db_session.flush()
    slot = TimeSlot(
        library_id=lib.id, start_time=time(9, 0), end_time=time(11, 0), price=SLOT_PRICE, seats=[seat]
    )
    db_session.add(slot)
    await db_session.commit()
    return SimpleNamespace(id=lib.id, seat_id=seat.id, slot_id=slot.id)


@pytest_asyncio.fixture
async def commission(db_session: AsyncSession) -> CommissionSnapshot:
    """Platform settings row; returns the snapshot the engines expect."""
    row = CommissionSettings(coin_price=1, wallet_commission=0, booking_commission=BOOKING_COMMISSION)
    db_session.add(row)
    await db_session.commit()
    return CommissionSnapshot.from_model(row)


@pytest_asyncio.fixture
async def make_booking(db_session: AsyncSession, library: SimpleNamespace):
    """Insert a single-day booking row directly, bypassing the engine."""

    async def _make(user_id: int, day: date = DAY, status: str = "confirmed", **overrides) -> int:
        values = dict(
            user_id=user_id,
            seat_id=library.seat_id,
            time_slot_id=library.slot_id,
            library_id=library.id,
            booking_date=day,
            status=status,
            payment_status="paid",
            amount=SLOT_PRICE,
            commission=BOOKING_COMMISSION,
            total_amount=SLOT_PRICE + BOOKING_COMMISSION,
        )
        values.update(overrides)
        booking = Booking(**values)
        db_session.add(booking)
        await db_session.commit()
        return booking.id

    return _make


@pytest_asyncio.fixture
async def make_monthly_booking(db_session: AsyncSession, library: SimpleNamespace):
    """Insert a monthly booking row directly, bypassing the engine."""

    async def _make(user_id: int, start: date, end: date, status: str = "confirmed", **overrides) -> int:
        values = dict(
            user_id=user_id,
            seat_id=library.seat_id,
            time_slot_id=library.slot_id,
            library_id=library.id,
            start_date=start,
            end_date=end,
            amount=SLOT_PRICE,
            commission=BOOKING_COMMISSION,
            total_amount=SLOT_PRICE + BOOKING_COMMISSION,
            status=status,
            payment_status="paid",
        )
        values.update(overrides)
        booking = MonthlyBooking(**values)
        db_session.add(booking)
        await db_session.commit()
        return booking.id

    return _make
