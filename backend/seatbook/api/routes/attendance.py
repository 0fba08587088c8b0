"""
Check-in / check-out endpoints and attendance history.

The door scanner posts to /attendance/{library_id}/check-in-out and lets
the server decide between the student's monthly and single-day booking;
the explicit per-booking routes serve the booking details screen.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from seatbook.core.security import (
    ROLE_ADMIN,
    ROLE_LIBRARIAN,
    ROLE_STUDENT,
    Principal,
    get_current_principal,
    require_roles,
)
from seatbook.db.session import get_db
from seatbook.schemas.attendance import (
    AttendanceActionResponse,
    AttendanceHistoryResponse,
    CheckInOutRequest,
    CheckInStatusResponse,
    ManualCheckInOutRequest,
)
from seatbook.services import attendance_service
from seatbook.services.attendance_service import MONTHLY, AttendanceResult
from seatbook.services.library_service import ensure_can_manage

router = APIRouter(prefix="/attendance", tags=["Attendance"])

student = require_roles(ROLE_STUDENT)
staff = require_roles(ROLE_LIBRARIAN, ROLE_ADMIN)


def _to_response(result: AttendanceResult) -> AttendanceActionResponse:
    return AttendanceActionResponse(
        kind=result.kind,
        action=result.action,
        booking_id=result.booking_id,
        session=result.session,
        total_duration_minutes=result.record.total_duration_minutes if result.kind == MONTHLY else None,
    )


@router.post("/{library_id}/check-in-out", response_model=AttendanceActionResponse)
async def check_in_out(
    library_id: int,
    payload: CheckInOutRequest,
    principal: Principal = Depends(student),
    db: AsyncSession = Depends(get_db),
):
    result = await attendance_service.handle_check_in_out(
        db, principal.user_id, library_id, payload.action
    )
    return _to_response(result)


@router.get("/{library_id}/status", response_model=CheckInStatusResponse)
async def check_in_status(
    library_id: int,
    principal: Principal = Depends(student),
    db: AsyncSession = Depends(get_db),
):
    return await attendance_service.get_check_in_status(db, principal.user_id, library_id)


@router.post("/{library_id}/bookings/{booking_id}/check-in", response_model=AttendanceActionResponse)
async def check_in(
    library_id: int,
    booking_id: int,
    principal: Principal = Depends(student),
    db: AsyncSession = Depends(get_db),
):
    return _to_response(
        await attendance_service.check_in(db, principal.user_id, library_id, booking_id)
    )


@router.post("/{library_id}/bookings/{booking_id}/check-out", response_model=AttendanceActionResponse)
async def check_out(
    library_id: int,
    booking_id: int,
    principal: Principal = Depends(student),
    db: AsyncSession = Depends(get_db),
):
    return _to_response(
        await attendance_service.check_out(db, principal.user_id, library_id, booking_id)
    )


@router.post("/{library_id}/monthly/{booking_id}/check-in", response_model=AttendanceActionResponse)
async def monthly_check_in(
    library_id: int,
    booking_id: int,
    principal: Principal = Depends(student),
    db: AsyncSession = Depends(get_db),
):
    return _to_response(
        await attendance_service.monthly_check_in(db, principal.user_id, library_id, booking_id)
    )


@router.post("/{library_id}/monthly/{booking_id}/check-out", response_model=AttendanceActionResponse)
async def monthly_check_out(
    library_id: int,
    booking_id: int,
    principal: Principal = Depends(student),
    db: AsyncSession = Depends(get_db),
):
    return _to_response(
        await attendance_service.monthly_check_out(db, principal.user_id, library_id, booking_id)
    )


@router.post("/manual", response_model=AttendanceActionResponse)
async def manual_check_in_out(
    payload: ManualCheckInOutRequest,
    principal: Principal = Depends(staff),
    db: AsyncSession = Depends(get_db),
):
    """Librarian checks a student in or out at the desk."""
    result = await attendance_service.manual_check_in_out(
        db, principal, payload.student_id, payload.library_id, payload.action
    )
    return _to_response(result)


@router.get("/me", response_model=AttendanceHistoryResponse)
async def my_attendance(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    return AttendanceHistoryResponse(
        attendances=await attendance_service.get_my_attendances(db, principal.user_id),
        monthly_attendances=await attendance_service.get_my_monthly_attendances(db, principal.user_id),
    )


@router.get("/library/{library_id}", response_model=AttendanceHistoryResponse)
async def library_attendance(
    library_id: int,
    principal: Principal = Depends(staff),
    db: AsyncSession = Depends(get_db),
):
    await ensure_can_manage(db, library_id, principal)
    return AttendanceHistoryResponse(
        attendances=await attendance_service.get_library_attendances(db, library_id),
        monthly_attendances=await attendance_service.get_library_monthly_attendances(db, library_id),
    )
