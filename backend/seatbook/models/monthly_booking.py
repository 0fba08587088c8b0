"""
Monthly booking: one seat for a window of consecutive days
(start_date..end_date, both inclusive).

`time_slot_id` is set by the slot-aware variant and NULL for the legacy
seat-wide variant, which occupies the seat for every slot. The payment is
the debit ledger entry whose `monthly_booking_id` points here.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
)

from seatbook.db.base import Base, TimestampMixin, utcnow
from seatbook.db.types import UTCDateTime
from seatbook.models.booking import BookingStatus, PaymentStatus, sql_in_list


class MonthlyBooking(Base, TimestampMixin):
    __tablename__ = "monthly_bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    seat_id = Column(Integer, ForeignKey("seats.id"), nullable=False)
    time_slot_id = Column(Integer, ForeignKey("time_slots.id"), nullable=True)
    library_id = Column(Integer, ForeignKey("libraries.id"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    amount = Column(Integer, nullable=False)
    commission = Column(Integer, nullable=False, default=0)
    total_amount = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PAID)
    booked_at = Column(UTCDateTime, nullable=False, default=utcnow)
    cancelled_at = Column(UTCDateTime, nullable=True)

    __table_args__ = (
        CheckConstraint(sql_in_list("status", BookingStatus.ALL), name="check_monthly_booking_status"),
        CheckConstraint(
            sql_in_list("payment_status", PaymentStatus.ALL), name="check_monthly_booking_payment_status"
        ),
        CheckConstraint("start_date <= end_date", name="check_monthly_booking_window"),
        CheckConstraint("total_amount = amount + commission", name="check_monthly_booking_total_amount"),
        Index("ix_monthly_bookings_user_status", "user_id", "status"),
        Index("ix_monthly_bookings_seat_window", "seat_id", "start_date", "end_date"),
        Index("ix_monthly_bookings_library_window", "library_id", "start_date", "end_date"),
    )

    @property
    def is_legacy(self) -> bool:
        return self.time_slot_id is None

    def __repr__(self) -> str:
        return (
            f"<MonthlyBooking(id={self.id}, seat={self.seat_id}, "
            f"{self.start_date}..{self.end_date}, status={self.status})>"
        )
