"""
Single-day booking: one seat, one time slot, one calendar date.

Key design decisions:
- A multi-day purchase creates one row per date, all paid by the same
  ledger entry (`ledger_entry_id`)
- Partial unique index on (seat_id, time_slot_id, booking_date) over the
  active statuses: at most one live booking per seat/slot/date even if two
  requests pass the availability check at the same moment
- `amount` is the slot price for the day, `commission` the platform's cut,
  `total_amount` what the wallet was charged (and what a refund returns)
- Rows are never deleted; cancellation, rejection and the sweep only
  change `status`
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)

from seatbook.db.base import Base, TimestampMixin
from seatbook.db.types import UTCDateTime


class BookingStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked-in"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    MISSED = "missed"
    NO_CHECKOUT = "no-checkout"

    ALL = (PENDING, CONFIRMED, CHECKED_IN, COMPLETED, CANCELLED, REJECTED, MISSED, NO_CHECKOUT)
    # Statuses that occupy the seat
    ACTIVE = (PENDING, CONFIRMED, CHECKED_IN)
    # Statuses an availability check treats as taken
    BLOCKING = (PENDING, CONFIRMED)
    CANCELLABLE = (PENDING, CONFIRMED)
    # Statuses that never count towards a library's earnings
    NON_EARNING = (PENDING, CANCELLED, REJECTED)


class PaymentStatus:
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"

    ALL = (PENDING, PAID, FAILED, REFUNDED)


def sql_in_list(column: str, values) -> str:
    return f"{column} IN ({', '.join(repr(v) for v in values)})"


ACTIVE_BOOKING_PREDICATE = text(sql_in_list("status", BookingStatus.ACTIVE))


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    seat_id = Column(Integer, ForeignKey("seats.id"), nullable=False)
    time_slot_id = Column(Integer, ForeignKey("time_slots.id"), nullable=False)
    library_id = Column(Integer, ForeignKey("libraries.id"), nullable=False)
    booking_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING)
    amount = Column(Integer, nullable=False)
    commission = Column(Integer, nullable=False, default=0)
    total_amount = Column(Integer, nullable=False)
    ledger_entry_id = Column(Integer, ForeignKey("ledger_entries.id"), nullable=True)
    cancelled_at = Column(UTCDateTime, nullable=True)
    rejected_at = Column(UTCDateTime, nullable=True)
    rejected_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    __table_args__ = (
        CheckConstraint(sql_in_list("status", BookingStatus.ALL), name="check_booking_status"),
        CheckConstraint(sql_in_list("payment_status", PaymentStatus.ALL), name="check_booking_payment_status"),
        CheckConstraint("amount >= 0", name="check_booking_amount_non_negative"),
        CheckConstraint("total_amount = amount + commission", name="check_booking_total_amount"),
        Index(
            "uq_bookings_active_seat_slot_date",
            "seat_id",
            "time_slot_id",
            "booking_date",
            unique=True,
            postgresql_where=ACTIVE_BOOKING_PREDICATE,
            sqlite_where=ACTIVE_BOOKING_PREDICATE,
        ),
        Index("ix_bookings_user_status", "user_id", "status"),
        Index("ix_bookings_library_date", "library_id", "booking_date"),
        Index("ix_bookings_slot_date", "time_slot_id", "booking_date"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, seat={self.seat_id}, date={self.booking_date}, status={self.status})>"
