from seatbook.schemas.user import UserCreate, UserResponse, UserLogin, Token
from seatbook.schemas.wallet import TopUpRequest, WalletResponse, LedgerEntryResponse, TopUpResponse
from seatbook.schemas.booking import BookingCreate, BookingResponse, BookingCreateResponse
from seatbook.schemas.monthly_booking import (
    MonthlyBookingCreate,
    LegacyMonthlyBookingCreate,
    MonthlyBookingResponse,
    MonthlyBookingCreateResponse,
)
from seatbook.schemas.attendance import (
    CheckInOutRequest,
    ManualCheckInOutRequest,
    AttendanceActionResponse,
    CheckInStatusResponse,
    AttendanceHistoryResponse,
)
from seatbook.schemas.earnings import EarningsResponse, WithdrawCreate, WithdrawReject, WithdrawResponse
from seatbook.schemas.admin import CommissionSettingsUpdate, CommissionSettingsResponse, SweepReportResponse
from seatbook.schemas.dashboard import AdminDashboard, LibraryDashboard, StudentDashboard

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "Token",
    "TopUpRequest", "WalletResponse", "LedgerEntryResponse", "TopUpResponse",
    "BookingCreate", "BookingResponse", "BookingCreateResponse",
    "MonthlyBookingCreate", "LegacyMonthlyBookingCreate", "MonthlyBookingResponse",
    "MonthlyBookingCreateResponse",
    "CheckInOutRequest", "ManualCheckInOutRequest", "AttendanceActionResponse",
    "CheckInStatusResponse", "AttendanceHistoryResponse",
    "EarningsResponse", "WithdrawCreate", "WithdrawReject", "WithdrawResponse",
    "CommissionSettingsUpdate", "CommissionSettingsResponse", "SweepReportResponse",
    "AdminDashboard", "LibraryDashboard", "StudentDashboard",
]
