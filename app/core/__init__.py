"""Core utilities and security modules."""

from app.core.exceptions import (
    AppException,
    AuthenticationError,
    AuthorizationError,
    BookingError,
    FailureReason,
    RateLimitExceeded,
    ValidationError,
)
from app.core.permissions import ActorContext, ActorRole, is_booking_party
from app.core.security import (
    actor_from_token,
    create_access_token,
    create_actor_token,
    verify_token,
)

__all__ = [
    "AppException",
    "AuthenticationError",
    "AuthorizationError",
    "BookingError",
    "FailureReason",
    "RateLimitExceeded",
    "ValidationError",
    "ActorContext",
    "ActorRole",
    "is_booking_party",
    "actor_from_token",
    "create_access_token",
    "create_actor_token",
    "verify_token",
]
