"""
Pydantic schemas for library earnings and withdraw requests.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class EarningsResponse(BaseModel):
    library_id: int
    total_revenue: int
    booking_earnings: int
    monthly_booking_earnings: int
    withdrawn_amount: int
    pending_withdraw_amount: int
    withdrawable_amount: int


class WithdrawCreate(BaseModel):
    amount: int = Field(..., gt=0)


class WithdrawReject(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class WithdrawResponse(BaseModel):
    id: int
    library_id: int
    requested_amount: int
    status: str
    rejected_reason: Optional[str] = None
    requested_at: datetime
    resolved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
