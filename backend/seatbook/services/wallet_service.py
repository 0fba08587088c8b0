"""
Wallet and ledger operations.

CONCURRENCY STRATEGY: Conditional UPDATE on the balance
=======================================================

Problem:
  Two bookings for the same user run at once. Both read balance=100,
  both see 100 >= 80, both write 20. The wallet paid for one booking
  and got charged for two, or worse, goes negative.

Solution:
  The debit is a single statement:

    UPDATE wallets SET balance = balance - :amount
    WHERE id = :wallet_id AND balance >= :amount

  If rows_affected == 0 the balance moved under us and no longer covers
  the amount, so the debit fails with InsufficientFunds. The CHECK
  constraint (balance >= 0) is the final safety net.

Every mutation writes exactly one ledger entry in the same unit of work,
so `balance == signed sum of completed entries` holds at every commit.
These helpers never commit; the calling engine owns the transaction.
"""

from typing import Iterable, Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from seatbook.core.exceptions import (
    ConflictError,
    InsufficientFundsError,
    InvalidInputError,
    NotFoundError,
)
from seatbook.core.logging import get_logger
from seatbook.core.metrics import record_wallet_operation
from seatbook.db.session import unit_of_work
from seatbook.models.booking import Booking
from seatbook.models.monthly_booking import MonthlyBooking
from seatbook.models.wallet import LedgerEntry, LedgerKind, LedgerStatus, Wallet

logger = get_logger(__name__)

DEFAULT_TOP_UP_DESCRIPTION = "Money added to wallet"


async def get_wallet(db: AsyncSession, user_id: int) -> Wallet:
    result = await db.execute(select(Wallet).where(Wallet.user_id == user_id))
    wallet = result.scalar_one_or_none()
    if not wallet:
        raise NotFoundError("Wallet not found")
    return wallet


async def get_or_create_wallet(db: AsyncSession, user_id: int) -> Wallet:
    """Wallets are created lazily on a user's first monetary operation."""
    result = await db.execute(select(Wallet).where(Wallet.user_id == user_id))
    wallet = result.scalar_one_or_none()
    if wallet:
        return wallet

    wallet = Wallet(user_id=user_id, balance=0, currency="coin")
    db.add(wallet)
    try:
        await db.flush()
    except IntegrityError:
        # Another request created it between our read and our insert
        raise ConflictError("Wallet is being created by another request, please retry")

    logger.info("wallet_created", user_id=user_id, wallet_id=wallet.id)
    return wallet


def _require_positive(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise InvalidInputError("Amount must be a positive whole number of coins")


async def _apply_delta(db: AsyncSession, wallet: Wallet, delta: int) -> int:
    """Apply a signed delta with the non-negative guard; returns affected rows."""
    statement = (
        update(Wallet)
        .where(Wallet.id == wallet.id)
        .values(balance=Wallet.balance + delta)
        .execution_options(synchronize_session=False)
    )
    if delta < 0:
        statement = statement.where(Wallet.balance >= -delta)
    result = await db.execute(statement)
    await db.refresh(wallet)
    return result.rowcount


async def debit(
    db: AsyncSession,
    user_id: int,
    amount: int,
    description: str,
    library_id: Optional[int] = None,
) -> tuple[Wallet, LedgerEntry]:
    """
    Take `amount` coins from the user's wallet.

    The returned ledger entry is still `pending`: the engine links the
    bookings it pays for and then calls `complete_entry`.
    """
    _require_positive(amount)
    wallet = await get_or_create_wallet(db, user_id)

    if wallet.balance < amount:
        logger.warning(
            "wallet_debit_refused",
            user_id=user_id,
            required=amount,
            available=wallet.balance,
        )
        raise InsufficientFundsError(required=amount, available=wallet.balance)

    if await _apply_delta(db, wallet, -amount) == 0:
        # Balance changed between the read and the conditional update
        logger.warning(
            "wallet_debit_lost_race",
            user_id=user_id,
            required=amount,
            available=wallet.balance,
        )
        raise InsufficientFundsError(required=amount, available=wallet.balance)

    entry = LedgerEntry(
        wallet_id=wallet.id,
        user_id=user_id,
        library_id=library_id,
        kind=LedgerKind.DEBIT,
        amount=amount,
        description=description,
        status=LedgerStatus.PENDING,
        bookings=[],
    )
    db.add(entry)
    await db.flush()

    record_wallet_operation(LedgerKind.DEBIT, amount)
    logger.info(
        "wallet_debited",
        user_id=user_id,
        wallet_id=wallet.id,
        amount=amount,
        balance=wallet.balance,
        ledger_entry_id=entry.id,
    )
    return wallet, entry


async def credit(
    db: AsyncSession,
    user_id: int,
    amount: int,
    description: str,
    kind: str = LedgerKind.CREDIT,
    library_id: Optional[int] = None,
    bookings: Optional[Iterable[Booking]] = None,
    monthly_booking: Optional[MonthlyBooking] = None,
) -> LedgerEntry:
    """Add coins to the user's wallet and write one completed ledger entry."""
    _require_positive(amount)
    if kind not in (LedgerKind.CREDIT, LedgerKind.REFUND):
        raise InvalidInputError(f"Cannot credit a wallet with a '{kind}' entry")

    wallet = await get_or_create_wallet(db, user_id)
    await _apply_delta(db, wallet, amount)

    entry = LedgerEntry(
        wallet_id=wallet.id,
        user_id=user_id,
        library_id=library_id,
        kind=kind,
        amount=amount,
        description=description,
        status=LedgerStatus.COMPLETED,
        bookings=[],
    )
    if bookings:
        entry.link_bookings(bookings)
    if monthly_booking is not None:
        entry.link_monthly_booking(monthly_booking)
    db.add(entry)
    await db.flush()

    record_wallet_operation(kind, amount)
    logger.info(
        "wallet_credited",
        user_id=user_id,
        wallet_id=wallet.id,
        kind=kind,
        amount=amount,
        balance=wallet.balance,
        ledger_entry_id=entry.id,
    )
    return entry


def complete_entry(entry: LedgerEntry) -> None:
    entry.status = LedgerStatus.COMPLETED


async def top_up(
    db: AsyncSession,
    user_id: int,
    amount: int,
    description: Optional[str] = None,
) -> tuple[Wallet, LedgerEntry]:
    """
    Credit a wallet after the payment gateway confirmed the payment.
    Signature verification happens upstream; this only moves the coins.
    """
    async with unit_of_work(db):
        entry = await credit(
            db,
            user_id,
            amount,
            description or DEFAULT_TOP_UP_DESCRIPTION,
            kind=LedgerKind.CREDIT,
        )
        wallet = await get_wallet(db, user_id)
    return wallet, entry


async def ledger_balance(db: AsyncSession, wallet_id: int) -> int:
    """Signed sum of the wallet's completed ledger entries."""
    signed = case(
        (LedgerEntry.kind == LedgerKind.DEBIT, -LedgerEntry.amount),
        else_=LedgerEntry.amount,
    )
    result = await db.execute(
        select(func.coalesce(func.sum(signed), 0)).where(
            LedgerEntry.wallet_id == wallet_id,
            LedgerEntry.status == LedgerStatus.COMPLETED,
        )
    )
    return int(result.scalar_one())


async def list_transactions(db: AsyncSession, user_id: int) -> list[LedgerEntry]:
    result = await db.execute(
        select(LedgerEntry)
        .where(LedgerEntry.user_id == user_id)
        .order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
    )
    return list(result.scalars().all())


async def list_library_transactions(db: AsyncSession, library_id: int) -> list[LedgerEntry]:
    result = await db.execute(
        select(LedgerEntry)
        .where(LedgerEntry.library_id == library_id)
        .order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
    )
    return list(result.scalars().all())
