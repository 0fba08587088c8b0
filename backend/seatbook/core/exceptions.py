"""
Domain errors raised by the booking, wallet and attendance services.

Services never raise HTTPException directly; each error carries the HTTP
status it maps to and a `details` dict with the data a caller needs to act
(conflicting dates, required vs. available balance, the allowed window).
`register_exception_handlers` renders them as JSON.
"""

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from seatbook.core.config import get_settings
from seatbook.core.logging import get_logger

logger = get_logger(__name__)


class DomainError(Exception):
    """Base class for every business-rule failure."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "An error occurred processing your request"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message or self.default_message
        self.code = code or self.__class__.__name__.removesuffix("Error")
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class InvalidInputError(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class InvalidStateError(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Operation not allowed in the current state"


class ConflictError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Seat is not available for the requested period"

    def __init__(self, message: Optional[str] = None, conflicts: Optional[list] = None, **kwargs) -> None:
        details = kwargs.pop("details", None) or {}
        if conflicts is not None:
            details["conflicts"] = conflicts
        super().__init__(message, details=details, **kwargs)

    @property
    def conflicts(self) -> list:
        return self.details.get("conflicts", [])


class InsufficientFundsError(DomainError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED

    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            f"Insufficient wallet balance. Required: {required}, Available: {available}",
            details={"required": required, "available": available},
        )
        self.required = required
        self.available = available


class OutOfWindowError(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Outside the allowed time window"

    def __init__(self, message: Optional[str] = None, start: Any = None, end: Any = None) -> None:
        super().__init__(
            message,
            details={"allowed_window": {"start": _iso(start), "end": _iso(end)}},
        )


class AlreadyActiveError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "You already have an active session. Please check out first."


class AlreadyCompletedError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Already checked out for this booking. Cannot check in again."


class NoActiveSessionError(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "No active session found. Please check in first."


class NoBookingError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "No active booking found"


class ForbiddenError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You are not allowed to perform this action"


class InternalError(DomainError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def _iso(value: Any) -> Any:
    return value.isoformat() if hasattr(value, "isoformat") else value


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
        logger.info(
            "domain_error",
            code=exc.code,
            status_code=exc.status_code,
            message=exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_error", error=str(exc), error_type=type(exc).__name__)
        body = InternalError("Internal server error").to_dict()
        if get_settings().ENVIRONMENT != "production":
            body["details"] = {"error": str(exc), "type": type(exc).__name__}
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)
