"""
Attendance records.

Single-day bookings get one `Attendance` row per check-in episode; the
unique booking_id means a booking can be checked into once, and at most
one row per booking can be open (no check-out) at any instant.

Monthly bookings get one `MonthlyAttendance` row per (booking, calendar
date) holding an ordered list of sessions. Sessions have no identity of
their own, so they live inside the day row as a JSON list; every
assignment to `sessions` recomputes `total_duration_minutes`.
"""

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import validates

from seatbook.db.base import Base, TimestampMixin
from seatbook.db.types import JSONList, UTCDateTime
from seatbook.utils.time import whole_minutes_between


class AttendanceMethod:
    QR = "QR"
    MANUAL = "manual"


class Attendance(Base, TimestampMixin):
    __tablename__ = "attendances"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    library_id = Column(Integer, ForeignKey("libraries.id"), nullable=False)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False)
    time_slot_id = Column(Integer, ForeignKey("time_slots.id"), nullable=False)
    check_in_time = Column(UTCDateTime, nullable=False)
    check_out_time = Column(UTCDateTime, nullable=True)
    duration_minutes = Column(Integer, nullable=True)
    method = Column(String(10), nullable=False, default=AttendanceMethod.QR)

    __table_args__ = (
        UniqueConstraint("booking_id", name="uq_attendance_booking"),
        CheckConstraint("method IN ('QR', 'manual')", name="check_attendance_method"),
        Index("ix_attendances_student_checkin", "student_id", "check_in_time"),
        Index("ix_attendances_library_checkin", "library_id", "check_in_time"),
    )

    @property
    def is_open(self) -> bool:
        return self.check_out_time is None

    def close(self, now: datetime) -> None:
        self.check_out_time = now
        self.duration_minutes = whole_minutes_between(self.check_in_time, now)


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class MonthlyAttendance(Base, TimestampMixin):
    __tablename__ = "monthly_attendances"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    library_id = Column(Integer, ForeignKey("libraries.id"), nullable=False)
    booking_id = Column(Integer, ForeignKey("monthly_bookings.id"), nullable=False)
    date = Column(Date, nullable=False)
    sessions = Column(JSONList, nullable=False, default=list)
    total_duration_minutes = Column(Integer, nullable=False, default=0)
    method = Column(String(10), nullable=False, default=AttendanceMethod.QR)

    __table_args__ = (
        UniqueConstraint("booking_id", "date", name="uq_monthly_attendance_booking_date"),
        CheckConstraint("method IN ('QR', 'manual')", name="check_monthly_attendance_method"),
        Index("ix_monthly_attendances_student_date", "student_id", "date"),
        Index("ix_monthly_attendances_library_date", "library_id", "date"),
    )

    @validates("sessions")
    def _recompute_total(self, key, sessions):
        sessions = list(sessions or [])
        self.total_duration_minutes = sum(
            s["duration_minutes"] for s in sessions if s.get("check_out_time") and s.get("duration_minutes") is not None
        )
        return sessions

    def open_session_index(self) -> int | None:
        for index, session in enumerate(self.sessions or []):
            if not session.get("check_out_time"):
                return index
        return None

    def has_open_session(self) -> bool:
        return self.open_session_index() is not None

    def start_session(self, now: datetime) -> None:
        if self.has_open_session():
            raise ValueError("day already has an open session")
        self.sessions = [
            *(self.sessions or []),
            {"check_in_time": now.isoformat(), "check_out_time": None, "duration_minutes": None},
        ]

    def close_session(self, now: datetime) -> dict:
        index = self.open_session_index()
        if index is None:
            raise ValueError("day has no open session")
        sessions = [dict(s) for s in self.sessions]
        check_in = _parse(sessions[index]["check_in_time"])
        sessions[index]["check_out_time"] = now.isoformat()
        sessions[index]["duration_minutes"] = whole_minutes_between(check_in, now)
        self.sessions = sessions
        return sessions[index]
