"""
Pydantic schemas for wallet and ledger responses.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class TopUpRequest(BaseModel):
    amount: int = Field(..., gt=0, description="Coins to credit, already paid through the gateway")
    description: Optional[str] = Field(default=None, max_length=500)


class WalletResponse(BaseModel):
    id: int
    user_id: int
    balance: int
    currency: str
    updated_at: datetime

    model_config = {"from_attributes": True}


class LedgerEntryResponse(BaseModel):
    id: int
    wallet_id: int
    user_id: int
    library_id: Optional[int] = None
    kind: str
    amount: int
    description: str
    status: str
    booking_ids: list[int] = []
    monthly_booking_id: Optional[int] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class TopUpResponse(BaseModel):
    wallet: WalletResponse
    transaction: LedgerEntryResponse
