"""
Reference data the booking core reads but does not own: libraries, their
seats and the time slots they sell.

A time slot serves one or more seats of its library (many-to-many via
time_slot_seats); its price is charged per calendar day booked.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    String,
    Table,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from seatbook.db.base import Base, TimestampMixin

time_slot_seats = Table(
    "time_slot_seats",
    Base.metadata,
    Column("time_slot_id", Integer, ForeignKey("time_slots.id", ondelete="CASCADE"), primary_key=True),
    Column("seat_id", Integer, ForeignKey("seats.id", ondelete="CASCADE"), primary_key=True),
)


class Library(Base, TimestampMixin):
    __tablename__ = "libraries"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    librarian_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    location = Column(String(255), nullable=True)
    # Flat fee for the legacy seat-wide monthly booking; 0 disables it
    monthly_fee = Column(Integer, nullable=False, default=0)
    is_blocked = Column(Boolean, nullable=False, default=False)

    librarian = relationship("User", back_populates="libraries", lazy="raise")
    seats = relationship("Seat", back_populates="library", lazy="raise")
    time_slots = relationship("TimeSlot", back_populates="library", lazy="raise")

    __table_args__ = (
        CheckConstraint("monthly_fee >= 0", name="check_library_monthly_fee_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Library(id={self.id}, name={self.name})>"


class Seat(Base, TimestampMixin):
    __tablename__ = "seats"

    id = Column(Integer, primary_key=True, index=True)
    library_id = Column(Integer, ForeignKey("libraries.id"), nullable=False, index=True)
    seat_number = Column(String(50), nullable=False)
    seat_name = Column(String(100), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    library = relationship("Library", back_populates="seats", lazy="raise")

    __table_args__ = (
        UniqueConstraint("library_id", "seat_number", name="uq_seat_library_number"),
    )

    def __repr__(self) -> str:
        return f"<Seat(id={self.id}, library={self.library_id}, number={self.seat_number})>"


class TimeSlot(Base, TimestampMixin):
    __tablename__ = "time_slots"

    id = Column(Integer, primary_key=True, index=True)
    library_id = Column(Integer, ForeignKey("libraries.id"), nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    price = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    library = relationship("Library", back_populates="time_slots", lazy="raise")
    seats = relationship("Seat", secondary=time_slot_seats, lazy="selectin")

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="check_time_slot_order"),
        CheckConstraint("price >= 0", name="check_time_slot_price_non_negative"),
    )

    def serves(self, seat_id: int) -> bool:
        return any(seat.id == seat_id for seat in self.seats)

    def __repr__(self) -> str:
        return f"<TimeSlot(id={self.id}, {self.start_time}-{self.end_time}, price={self.price})>"
