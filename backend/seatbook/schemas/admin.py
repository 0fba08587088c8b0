"""
Pydantic schemas for platform administration: commission settings and
manual sweep runs.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CommissionSettingsUpdate(BaseModel):
    coin_price: Optional[int] = Field(default=None, gt=0)
    wallet_commission: Optional[int] = Field(default=None, ge=0)
    booking_commission: Optional[int] = Field(default=None, ge=0)


class CommissionSettingsResponse(BaseModel):
    id: int
    coin_price: int
    wallet_commission: int
    booking_commission: int
    updated_at: datetime

    model_config = {"from_attributes": True}


class SweepReportResponse(BaseModel):
    missed: int
    no_checkout: int
    completed: int
    monthly_missed: int
    monthly_completed: int
    total: int
