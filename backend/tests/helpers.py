"""
Shared constants and small async helpers for the test modules.
"""

from datetime import date, datetime, time, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from seatbook.models import Wallet
from seatbook.services import wallet_service

# A fixed Wednesday well in the future; slots run 09:00-11:00 and 14:00-16:00 UTC
DAY = date(2030, 1, 16)
BOOKING_COMMISSION = 10
SLOT_PRICE = 100
AFTERNOON_PRICE = 80


def at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute), tzinfo=timezone.utc)


async def balance_of(db: AsyncSession, user_id: int) -> int:
    """Read straight from the table; the identity map may hold a stale wallet."""
    result = await db.execute(select(Wallet.balance).where(Wallet.user_id == user_id))
    return result.scalar_one()


async def status_of(db: AsyncSession, model, row_id: int) -> str:
    result = await db.execute(select(model.status).where(model.id == row_id))
    return result.scalar_one()


async def fund(db: AsyncSession, user_id: int, amount: int) -> None:
    await wallet_service.top_up(db, user_id, amount)
