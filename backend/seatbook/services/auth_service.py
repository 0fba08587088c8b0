"""
Registration and login. Tokens carry the user id and role; everything
downstream trusts the principal decoded from them.
"""

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from seatbook.core.exceptions import ConflictError, ForbiddenError
from seatbook.core.logging import get_logger
from seatbook.core.security import create_access_token, hash_password, verify_password
from seatbook.db.session import unit_of_work
from seatbook.models.user import User
from seatbook.schemas.user import UserCreate, UserLogin

logger = get_logger(__name__)


async def register_user(db: AsyncSession, user_data: UserCreate) -> User:
    """
    Register a student or librarian account.
    Admins are provisioned out of band, never through this path.
    """
    async with unit_of_work(db):
        result = await db.execute(
            select(User).where(
                or_(User.email == user_data.email, User.username == user_data.username)
            )
        )
        existing = result.scalars().first()
        if existing:
            reason = "email_exists" if existing.email == user_data.email else "username_exists"
            logger.warning("registration_failed", reason=reason)
            raise ConflictError(
                "Email already registered" if reason == "email_exists" else "Username already taken"
            )

        user = User(
            email=user_data.email,
            username=user_data.username,
            hashed_password=hash_password(user_data.password),
            role=user_data.role,
        )
        db.add(user)
        await db.flush()

    logger.info("user_registered", user_id=user.id, role=user.role)
    return user


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> str:
    """
    Authenticate user and return JWT access token.
    Raises 401 if credentials are invalid.
    """
    result = await db.execute(select(User).where(User.email == login_data.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.warning("login_failed", email=login_data.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise ForbiddenError("Account is deactivated")

    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    logger.info("user_logged_in", user_id=user.id, role=user.role)
    return token
