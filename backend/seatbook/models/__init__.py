from seatbook.models.user import User
from seatbook.models.library import Library, Seat, TimeSlot, time_slot_seats
from seatbook.models.settings import CommissionSettings
from seatbook.models.wallet import Wallet, LedgerEntry, LedgerKind, LedgerStatus, ledger_entry_bookings
from seatbook.models.booking import Booking, BookingStatus, PaymentStatus
from seatbook.models.monthly_booking import MonthlyBooking
from seatbook.models.attendance import Attendance, MonthlyAttendance, AttendanceMethod
from seatbook.models.withdraw import WithdrawRequest, WithdrawStatus

__all__ = [
    "User",
    "Library", "Seat", "TimeSlot", "time_slot_seats",
    "CommissionSettings",
    "Wallet", "LedgerEntry", "LedgerKind", "LedgerStatus", "ledger_entry_bookings",
    "Booking", "BookingStatus", "PaymentStatus",
    "MonthlyBooking",
    "Attendance", "MonthlyAttendance", "AttendanceMethod",
    "WithdrawRequest", "WithdrawStatus",
]
