"""
Platform administration: commission settings, withdraw approvals and
on-demand runs of the reconciliation sweep.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from seatbook.core.exceptions import NotFoundError
from seatbook.core.security import ROLE_ADMIN, Principal, require_roles
from seatbook.db.session import get_db
from seatbook.schemas.admin import (
    CommissionSettingsResponse,
    CommissionSettingsUpdate,
    SweepReportResponse,
)
from seatbook.schemas.earnings import WithdrawReject, WithdrawResponse
from seatbook.services import earnings_service, settings_service, sweep_service

router = APIRouter(prefix="/admin", tags=["Admin"])

admin = require_roles(ROLE_ADMIN)


@router.get("/settings", response_model=CommissionSettingsResponse)
async def get_settings(
    principal: Principal = Depends(admin),
    db: AsyncSession = Depends(get_db),
):
    row = await settings_service.get_commission_settings(db)
    if row is None:
        raise NotFoundError("System commission settings not configured")
    return row


@router.put("/settings", response_model=CommissionSettingsResponse)
async def update_settings(
    payload: CommissionSettingsUpdate,
    principal: Principal = Depends(admin),
    db: AsyncSession = Depends(get_db),
):
    row, _ = await settings_service.upsert_commission_settings(
        db,
        coin_price=payload.coin_price,
        wallet_commission=payload.wallet_commission,
        booking_commission=payload.booking_commission,
    )
    return row


@router.get("/withdraw-requests", response_model=list[WithdrawResponse])
async def list_withdraw_requests(
    principal: Principal = Depends(admin),
    db: AsyncSession = Depends(get_db),
):
    return await earnings_service.list_withdraw_requests(db)


@router.post("/withdraw-requests/{request_id}/resolve", response_model=WithdrawResponse)
async def resolve_withdraw_request(
    request_id: int,
    principal: Principal = Depends(admin),
    db: AsyncSession = Depends(get_db),
):
    return await earnings_service.resolve_withdraw_request(db, request_id)


@router.post("/withdraw-requests/{request_id}/reject", response_model=WithdrawResponse)
async def reject_withdraw_request(
    request_id: int,
    payload: WithdrawReject,
    principal: Principal = Depends(admin),
    db: AsyncSession = Depends(get_db),
):
    return await earnings_service.reject_withdraw_request(db, request_id, reason=payload.reason)


@router.post("/sweep", response_model=SweepReportResponse)
async def run_sweep(
    principal: Principal = Depends(admin),
    db: AsyncSession = Depends(get_db),
):
    """Run the status reconciliation sweep now. Safe to repeat."""
    report = await sweep_service.run_sweep(db)
    return report.as_dict()
