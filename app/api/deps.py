"""API dependencies for authentication and service access."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.exceptions import AuthenticationError, AuthorizationError
from app.core.permissions import ActorContext, ActorRole
from app.core.security import actor_from_token
from app.services.booking_service import BookingService
from app.services.factory import get_booking_service, get_payment_proof_service
from app.services.payment_proof_service import PaymentProofService

# Security scheme
security = HTTPBearer(auto_error=False)


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> ActorContext:
    """Get the calling actor from the bearer token."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")
    return actor_from_token(credentials.credentials)


class RoleChecker:
    """Require the calling actor to hold one of the given roles."""

    def __init__(self, *roles: ActorRole):
        self.roles = frozenset(roles)

    async def __call__(
        self,
        actor: Annotated[ActorContext, Depends(get_current_actor)],
    ) -> ActorContext:
        if actor.role not in self.roles:
            allowed = " or ".join(sorted(role.value for role in self.roles))
            raise AuthorizationError(f"{allowed.capitalize()} access required")
        return actor


# Convenience instances
require_guest = RoleChecker(ActorRole.GUEST)
require_tenant = RoleChecker(ActorRole.TENANT)
require_system = RoleChecker(ActorRole.SYSTEM)

CurrentActor = Annotated[ActorContext, Depends(get_current_actor)]
GuestActor = Annotated[ActorContext, Depends(require_guest)]
TenantActor = Annotated[ActorContext, Depends(require_tenant)]
SystemActor = Annotated[ActorContext, Depends(require_system)]
BookingServiceDep = Annotated[BookingService, Depends(get_booking_service)]
PaymentProofServiceDep = Annotated[PaymentProofService, Depends(get_payment_proof_service)]
