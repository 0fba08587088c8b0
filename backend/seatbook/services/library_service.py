"""
Read-only lookups of library reference data, and the ownership rule
librarians are held to: a librarian acts only on their own libraries,
an admin on any.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from seatbook.core.exceptions import ForbiddenError, NotFoundError
from seatbook.core.security import ROLE_ADMIN, ROLE_LIBRARIAN, Principal
from seatbook.models.library import Library, Seat


async def get_library(db: AsyncSession, library_id: int) -> Library:
    result = await db.execute(select(Library).where(Library.id == library_id))
    library = result.scalar_one_or_none()
    if not library:
        raise NotFoundError(f"Library {library_id} not found")
    return library


async def get_seat(db: AsyncSession, seat_id: int) -> Seat:
    result = await db.execute(select(Seat).where(Seat.id == seat_id))
    seat = result.scalar_one_or_none()
    if not seat:
        raise NotFoundError(f"Seat {seat_id} not found")
    return seat


async def ensure_can_manage(db: AsyncSession, library_id: int, actor: Principal) -> Library:
    library = await get_library(db, library_id)
    if actor.role == ROLE_ADMIN:
        return library
    if actor.role == ROLE_LIBRARIAN and library.librarian_id == actor.user_id:
        return library
    raise ForbiddenError("You do not manage this library")
