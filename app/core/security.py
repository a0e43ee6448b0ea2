"""Security utilities for authentication.

Tokens are issued by the identity service; this service only verifies them.
``create_access_token`` is kept for internal callers and tooling.
"""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from jose import JWTError, jwt

from app.config import settings
from app.core.exceptions import AuthenticationError
from app.core.permissions import ActorContext, ActorRole


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(UTC) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_actor_token(actor_id: UUID | None, role: ActorRole | str) -> str:
    """Create an access token carrying an actor's ID and role."""
    data: dict[str, Any] = {"role": ActorRole(role).value}
    if actor_id is not None:
        data["sub"] = str(actor_id)
    return create_access_token(data)


def verify_token(token: str, token_type: str = "access") -> dict[str, Any]:
    """Verify and decode a JWT token."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        if payload.get("type") != token_type:
            raise AuthenticationError("Invalid token type")
        return payload
    except JWTError as e:
        raise AuthenticationError(f"Token validation failed: {str(e)}")


def actor_from_token(token: str) -> ActorContext:
    """Build the actor context from a verified access token.

    Guests and tenants must carry a ``sub`` claim; the system role may not.
    """
    payload = verify_token(token)
    try:
        role = ActorRole(payload.get("role"))
        sub = payload.get("sub")
        actor_id = UUID(sub) if sub else None
    except (ValueError, TypeError):
        raise AuthenticationError("Invalid token payload")

    if actor_id is None and role != ActorRole.SYSTEM:
        raise AuthenticationError("Invalid token payload")
    return ActorContext(actor_id=actor_id, role=role)
