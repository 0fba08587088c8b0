"""
Pydantic schemas for single-day booking request/response validation.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, model_validator

from seatbook.schemas.wallet import LedgerEntryResponse


class BookingCreate(BaseModel):
    seat_id: int
    time_slot_id: int
    start_date: date
    end_date: Optional[date] = None

    @model_validator(mode="after")
    def check_range(self) -> "BookingCreate":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class BookingResponse(BaseModel):
    id: int
    user_id: int
    seat_id: int
    time_slot_id: int
    library_id: int
    booking_date: date
    status: str
    payment_status: str
    amount: int
    commission: int
    total_amount: int
    ledger_entry_id: Optional[int] = None
    cancelled_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejected_by: Optional[int] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingSummary(BaseModel):
    total_days: int
    slot_price: int
    commission: int
    total_amount: int


class BookingCreateResponse(BaseModel):
    bookings: list[BookingResponse]
    transaction: LedgerEntryResponse
    summary: BookingSummary

    model_config = {"from_attributes": True}
