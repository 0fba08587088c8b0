"""
Dashboard summaries, one per role.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from seatbook.core.security import ROLE_ADMIN, ROLE_LIBRARIAN, ROLE_STUDENT, Principal, require_roles
from seatbook.db.session import get_db
from seatbook.schemas.dashboard import AdminDashboard, LibraryDashboard, StudentDashboard
from seatbook.services import stats_service

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/admin", response_model=AdminDashboard)
async def admin_dashboard(
    principal: Principal = Depends(require_roles(ROLE_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    return await stats_service.get_admin_stats(db)


@router.get("/libraries/{library_id}", response_model=LibraryDashboard)
async def library_dashboard(
    library_id: int,
    principal: Principal = Depends(require_roles(ROLE_LIBRARIAN, ROLE_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    return await stats_service.get_library_stats(db, library_id, principal)


@router.get("/student", response_model=StudentDashboard)
async def student_dashboard(
    principal: Principal = Depends(require_roles(ROLE_STUDENT)),
    db: AsyncSession = Depends(get_db),
):
    return await stats_service.get_student_stats(db, principal.user_id)
