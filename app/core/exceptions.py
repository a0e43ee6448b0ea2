"""Custom application exceptions."""

from enum import Enum
from typing import Any
from uuid import UUID

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: Any = "An unexpected error occurred",
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ValidationError(AppException):
    """Validation error exception."""

    def __init__(self, detail: str = "Validation failed") -> None:
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


class AuthenticationError(AppException):
    """Authentication failed exception."""

    def __init__(self, detail: str = "Authentication failed") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(AppException):
    """Authorization denied exception."""

    def __init__(self, detail: str = "You don't have permission to access this resource") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class RateLimitExceeded(AppException):
    """Rate limit exceeded exception."""

    def __init__(self, retry_after: int = 60) -> None:
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please try again later.",
            headers={"Retry-After": str(retry_after)},
        )


# ==================== BOOKING LIFECYCLE FAILURES ====================


class FailureReason(str, Enum):
    """Structured reasons a booking operation can fail with."""

    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    WRONG_ROLE = "WRONG_ROLE"
    INVALID_STATUS = "INVALID_STATUS"
    TERMINAL = "TERMINAL"
    INVALID_ATTACHMENT = "INVALID_ATTACHMENT"
    CONFLICT = "CONFLICT"
    UNAVAILABLE = "UNAVAILABLE"
    INVALID_BOOKING = "INVALID_BOOKING"
    ROOM_UNAVAILABLE = "ROOM_UNAVAILABLE"


REASON_STATUS_CODES: dict[FailureReason, int] = {
    FailureReason.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    FailureReason.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    FailureReason.WRONG_ROLE: status.HTTP_403_FORBIDDEN,
    FailureReason.INVALID_STATUS: status.HTTP_409_CONFLICT,
    FailureReason.TERMINAL: status.HTTP_409_CONFLICT,
    FailureReason.INVALID_ATTACHMENT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    FailureReason.CONFLICT: status.HTTP_409_CONFLICT,
    FailureReason.UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    FailureReason.INVALID_BOOKING: status.HTTP_422_UNPROCESSABLE_ENTITY,
    FailureReason.ROOM_UNAVAILABLE: status.HTTP_409_CONFLICT,
}


class BookingError(AppException):
    """Base class for booking lifecycle failures.

    The detail is a machine-readable dict; turning it into user-facing text
    is left to the caller.
    """

    reason: FailureReason

    def __init__(self, booking_id: UUID | None = None, **context: Any) -> None:
        self.booking_id = booking_id
        self.context = context
        detail: dict[str, Any] = {"reason": self.reason.value}
        if booking_id is not None:
            detail["booking_id"] = str(booking_id)
        detail.update(context)
        super().__init__(status_code=REASON_STATUS_CODES[self.reason], detail=detail)

    @classmethod
    def for_reason(
        cls, reason: FailureReason, booking_id: UUID | None = None, **context: Any
    ) -> "BookingError":
        """Build the concrete error class registered for a reason."""
        return _ERRORS_BY_REASON[reason](booking_id, **context)


class BookingNotFound(BookingError):
    reason = FailureReason.NOT_FOUND


class Unauthorized(BookingError):
    """Actor is not the booking's guest or tenant owner."""

    reason = FailureReason.UNAUTHORIZED


class WrongRole(BookingError):
    reason = FailureReason.WRONG_ROLE


class InvalidStatus(BookingError):
    reason = FailureReason.INVALID_STATUS


class TerminalStatus(BookingError):
    reason = FailureReason.TERMINAL


class InvalidAttachment(BookingError):
    reason = FailureReason.INVALID_ATTACHMENT


class TransitionConflict(BookingError):
    """Compare-and-swap kept losing after all retry attempts."""

    reason = FailureReason.CONFLICT


class CollaboratorUnavailable(BookingError):
    reason = FailureReason.UNAVAILABLE


class InvalidBooking(BookingError):
    reason = FailureReason.INVALID_BOOKING


class RoomUnavailable(BookingError):
    reason = FailureReason.ROOM_UNAVAILABLE


_ERRORS_BY_REASON: dict[FailureReason, type[BookingError]] = {
    error_cls.reason: error_cls
    for error_cls in (
        BookingNotFound,
        Unauthorized,
        WrongRole,
        InvalidStatus,
        TerminalStatus,
        InvalidAttachment,
        TransitionConflict,
        CollaboratorUnavailable,
        InvalidBooking,
        RoomUnavailable,
    )
}
