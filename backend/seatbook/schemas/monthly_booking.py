"""
Pydantic schemas for monthly bookings.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel

from seatbook.schemas.wallet import LedgerEntryResponse


class MonthlyBookingCreate(BaseModel):
    seat_id: int
    time_slot_id: int
    library_id: int
    start_date: Optional[date] = None


class LegacyMonthlyBookingCreate(BaseModel):
    seat_id: int
    library_id: int


class MonthlyBookingResponse(BaseModel):
    id: int
    user_id: int
    seat_id: int
    time_slot_id: Optional[int] = None
    library_id: int
    start_date: date
    end_date: date
    amount: int
    commission: int
    total_amount: int
    status: str
    payment_status: str
    booked_at: datetime
    cancelled_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class MonthlyBookingSummary(BaseModel):
    window_days: int
    start_date: date
    end_date: date
    slot_price: int
    commission: int
    total_amount: int


class MonthlyBookingCreateResponse(BaseModel):
    booking: MonthlyBookingResponse
    transaction: LedgerEntryResponse
    summary: MonthlyBookingSummary

    model_config = {"from_attributes": True}
