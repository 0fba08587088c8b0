"""
Wallet endpoints: balance, ledger history and gateway-confirmed top-ups.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from seatbook.core.security import ROLE_STUDENT, Principal, require_roles
from seatbook.db.session import get_db
from seatbook.schemas.wallet import LedgerEntryResponse, TopUpRequest, TopUpResponse, WalletResponse
from seatbook.services import wallet_service

router = APIRouter(prefix="/wallet", tags=["Wallet"])

student = require_roles(ROLE_STUDENT)


@router.get("", response_model=WalletResponse)
async def get_wallet(
    principal: Principal = Depends(student),
    db: AsyncSession = Depends(get_db),
):
    return await wallet_service.get_wallet(db, principal.user_id)


@router.get("/transactions", response_model=list[LedgerEntryResponse])
async def list_transactions(
    principal: Principal = Depends(student),
    db: AsyncSession = Depends(get_db),
):
    """Ledger entries for the authenticated user, newest first."""
    return await wallet_service.list_transactions(db, principal.user_id)


@router.post("/top-up", response_model=TopUpResponse)
async def top_up(
    payload: TopUpRequest,
    principal: Principal = Depends(student),
    db: AsyncSession = Depends(get_db),
):
    """
    Credit the wallet once the payment gateway has confirmed the payment.
    Signature verification happens in the gateway integration, not here.
    """
    wallet, entry = await wallet_service.top_up(db, principal.user_id, payload.amount, payload.description)
    return TopUpResponse(
        wallet=WalletResponse.model_validate(wallet),
        transaction=LedgerEntryResponse.model_validate(entry),
    )
