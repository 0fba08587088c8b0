"""
Pydantic schemas for check-in / check-out and attendance history.
"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel

Action = Literal["checkin", "checkout"]


class CheckInOutRequest(BaseModel):
    action: Action


class ManualCheckInOutRequest(BaseModel):
    student_id: int
    library_id: int
    action: Action


class SessionResponse(BaseModel):
    check_in_time: datetime
    check_out_time: Optional[datetime] = None
    duration_minutes: Optional[int] = None


class AttendanceActionResponse(BaseModel):
    kind: Literal["daily", "monthly"]
    action: Action
    booking_id: int
    session: SessionResponse
    total_duration_minutes: Optional[int] = None


class CheckInStatusResponse(BaseModel):
    type: Literal["daily", "monthly", "none"]
    booking_id: Optional[int] = None
    is_checked_in: bool
    can_check_in: bool
    can_check_out: bool
    total_duration_minutes: Optional[int] = None
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None


class AttendanceResponse(BaseModel):
    id: int
    student_id: int
    library_id: int
    booking_id: int
    time_slot_id: int
    check_in_time: datetime
    check_out_time: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    method: str

    model_config = {"from_attributes": True}


class MonthlyAttendanceResponse(BaseModel):
    id: int
    student_id: int
    library_id: int
    booking_id: int
    date: date
    sessions: list[SessionResponse]
    total_duration_minutes: int
    method: str

    model_config = {"from_attributes": True}


class AttendanceHistoryResponse(BaseModel):
    attendances: list[AttendanceResponse]
    monthly_attendances: list[MonthlyAttendanceResponse]
