"""
Authentication boundary: password hashing, JWT issuance and the
`Principal` every core operation receives.

Services trust the principal handed to them; role checks happen here,
in route dependencies.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from seatbook.core.config import get_settings
from seatbook.core.logging import bind_actor

settings = get_settings()

_bearer = HTTPBearer(auto_error=False)

ROLE_STUDENT = "student"
ROLE_LIBRARIAN = "librarian"
ROLE_ADMIN = "admin"
ROLES = (ROLE_STUDENT, ROLE_LIBRARIAN, ROLE_ADMIN)


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode["exp"] = expire
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> Principal:
    if credentials is None:
        raise _unauthorized("Not authenticated")

    try:
        payload = jwt.decode(
            credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
        user_id = int(payload["sub"])
        role = payload.get("role", ROLE_STUDENT)
    except (jwt.PyJWTError, KeyError, ValueError):
        raise _unauthorized("Invalid or expired token")

    if role not in ROLES:
        raise _unauthorized("Invalid token role")

    bind_actor(user_id, role)
    return Principal(user_id=user_id, role=role)


async def get_current_user_id(principal: Principal = Depends(get_current_principal)) -> int:
    return principal.user_id


def require_roles(*roles: str):
    """Dependency factory: reject principals whose role is not listed."""

    async def _check(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {', '.join(roles)}",
            )
        return principal

    return _check
