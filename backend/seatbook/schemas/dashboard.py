"""
Pydantic schemas for the per-role dashboards.
"""

from pydantic import BaseModel

from seatbook.schemas.earnings import EarningsResponse


class AttendanceSummary(BaseModel):
    sessions: int
    completed_sessions: int
    daily_minutes: int
    monthly_days: int
    monthly_minutes: int
    total_minutes: int
    average_session_minutes: int
    by_method: dict[str, int]


class WalletTotals(BaseModel):
    count: int
    total_balance: int


class AdminDashboard(BaseModel):
    users: dict[str, int]
    libraries: int
    bookings: dict[str, int]
    monthly_bookings: dict[str, int]
    attendance: AttendanceSummary
    wallets: WalletTotals
    ledger: dict[str, int]
    commission_earned: int


class LibraryDashboard(BaseModel):
    library_id: int
    library_name: str
    bookings: dict[str, int]
    monthly_bookings: dict[str, int]
    today_bookings: int
    today_check_ins: int
    attendance: AttendanceSummary
    earnings: EarningsResponse


class StudentDashboard(BaseModel):
    bookings: dict[str, int]
    monthly_bookings: dict[str, int]
    upcoming_bookings: int
    attendance: AttendanceSummary
    libraries_visited: int
    wallet_balance: int
    checked_in_now: bool
