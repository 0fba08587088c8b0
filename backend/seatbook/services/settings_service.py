"""
Commission settings.

The booking engines never read the settings table themselves: callers load
a `CommissionSnapshot` once per request and pass it in, so a booking is
priced against one consistent set of numbers.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from seatbook.core.exceptions import InvalidInputError, InvalidStateError
from seatbook.core.logging import get_logger
from seatbook.db.session import unit_of_work
from seatbook.models.settings import CommissionSettings

logger = get_logger(__name__)


@dataclass(frozen=True)
class CommissionSnapshot:
    coin_price: int
    wallet_commission: int
    booking_commission: int

    @classmethod
    def from_model(cls, row: CommissionSettings) -> "CommissionSnapshot":
        return cls(
            coin_price=row.coin_price,
            wallet_commission=row.wallet_commission,
            booking_commission=row.booking_commission,
        )


def require_snapshot(snapshot: Optional[CommissionSnapshot]) -> CommissionSnapshot:
    if snapshot is None:
        raise InvalidStateError("System commission settings not configured")
    return snapshot


async def _load_settings(db: AsyncSession) -> Optional[CommissionSettings]:
    result = await db.execute(select(CommissionSettings).order_by(CommissionSettings.id).limit(1))
    return result.scalar_one_or_none()


async def get_commission_settings(db: AsyncSession) -> Optional[CommissionSettings]:
    return await _load_settings(db)


async def find_commission_snapshot(db: AsyncSession) -> Optional[CommissionSnapshot]:
    """None when unconfigured; the booking engines reject a missing snapshot themselves."""
    row = await _load_settings(db)
    return CommissionSnapshot.from_model(row) if row else None


async def get_commission_snapshot(db: AsyncSession) -> CommissionSnapshot:
    """Raises InvalidStateError when the platform has not been configured."""
    row = await _load_settings(db)
    if row is None:
        raise InvalidStateError("System commission settings not configured")
    return CommissionSnapshot.from_model(row)


async def upsert_commission_settings(
    db: AsyncSession,
    coin_price: Optional[int] = None,
    wallet_commission: Optional[int] = None,
    booking_commission: Optional[int] = None,
) -> tuple[CommissionSettings, bool]:
    """
    Update the provided fields, or create the settings row.
    Returns the row and whether it was created.
    """
    for name, value in (
        ("coin_price", coin_price),
        ("wallet_commission", wallet_commission),
        ("booking_commission", booking_commission),
    ):
        if value is not None and value < 0:
            raise InvalidInputError(f"{name} must not be negative")
    if coin_price == 0:
        raise InvalidInputError("coin_price must be positive")

    async with unit_of_work(db):
        row = await _load_settings(db)
        created = row is None
        if created:
            row = CommissionSettings(coin_price=1, wallet_commission=0, booking_commission=0)
            db.add(row)
        if coin_price is not None:
            row.coin_price = coin_price
        if wallet_commission is not None:
            row.wallet_commission = wallet_commission
        if booking_commission is not None:
            row.booking_commission = booking_commission
        await db.flush()

    logger.info(
        "commission_settings_saved",
        created=created,
        coin_price=row.coin_price,
        wallet_commission=row.wallet_commission,
        booking_commission=row.booking_commission,
    )
    return row, created
