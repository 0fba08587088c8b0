"""
Wallet and its append-only ledger.

Key design decisions:
- `balance` is denormalized for the hot path; it always equals the signed
  sum of the wallet's completed ledger entries (credit and refund add,
  debit subtracts)
- CHECK constraint keeps balance non-negative at the DB level; debits use
  a conditional UPDATE so concurrent debits cannot both pass a stale check
- A ledger entry links either to one or more single-day bookings (a
  multi-day purchase shares one entry) or to exactly one monthly booking,
  never both
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
)
from sqlalchemy.orm import relationship

from seatbook.db.base import Base, TimestampMixin
from seatbook.models.booking import sql_in_list


class LedgerKind:
    CREDIT = "credit"
    DEBIT = "debit"
    REFUND = "refund"

    ALL = (CREDIT, DEBIT, REFUND)


class LedgerStatus:
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


ledger_entry_bookings = Table(
    "ledger_entry_bookings",
    Base.metadata,
    Column("ledger_entry_id", Integer, ForeignKey("ledger_entries.id", ondelete="CASCADE"), primary_key=True),
    Column("booking_id", Integer, ForeignKey("bookings.id", ondelete="CASCADE"), primary_key=True),
)


class Wallet(Base, TimestampMixin):
    __tablename__ = "wallets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    balance = Column(Integer, nullable=False, default=0)
    currency = Column(String(10), nullable=False, default="coin")

    user = relationship("User", back_populates="wallet", lazy="raise")

    __table_args__ = (
        CheckConstraint("balance >= 0", name="check_wallet_balance_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Wallet(id={self.id}, user={self.user_id}, balance={self.balance})>"


class LedgerEntry(Base, TimestampMixin):
    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, index=True)
    wallet_id = Column(Integer, ForeignKey("wallets.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    library_id = Column(Integer, ForeignKey("libraries.id"), nullable=True, index=True)
    kind = Column(String(10), nullable=False)
    amount = Column(Integer, nullable=False)
    description = Column(String(500), nullable=False, default="")
    status = Column(String(20), nullable=False, default=LedgerStatus.PENDING)
    monthly_booking_id = Column(Integer, ForeignKey("monthly_bookings.id"), nullable=True, index=True)

    bookings = relationship("Booking", secondary=ledger_entry_bookings, lazy="selectin")

    __table_args__ = (
        CheckConstraint("amount > 0", name="check_ledger_amount_positive"),
        CheckConstraint(sql_in_list("kind", LedgerKind.ALL), name="check_ledger_kind"),
        CheckConstraint("status IN ('pending', 'completed', 'failed')", name="check_ledger_status"),
        Index("ix_ledger_entries_user_created", "user_id", "created_at"),
    )

    @property
    def booking_ids(self) -> list[int]:
        return [booking.id for booking in self.bookings]

    def link_bookings(self, bookings) -> None:
        """Attach single-day bookings; an entry cannot also carry a monthly booking."""
        if self.monthly_booking_id is not None:
            raise ValueError("ledger entry is already linked to a monthly booking")
        self.bookings.extend(bookings)

    def link_monthly_booking(self, monthly_booking) -> None:
        """Attach the one monthly booking this entry pays for or refunds."""
        if self.bookings:
            raise ValueError("ledger entry is already linked to single-day bookings")
        if self.monthly_booking_id not in (None, monthly_booking.id):
            raise ValueError("ledger entry is already linked to another monthly booking")
        self.monthly_booking_id = monthly_booking.id

    def __repr__(self) -> str:
        return f"<LedgerEntry(id={self.id}, kind={self.kind}, amount={self.amount}, status={self.status})>"
