"""Actor roles and per-request actor context."""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class ActorRole(str, Enum):
    """Roles an actor can hold when acting on a booking."""

    GUEST = "guest"
    TENANT = "tenant"  # Property owner/manager
    SYSTEM = "system"  # Scheduler and internal jobs


@dataclass(frozen=True)
class ActorContext:
    """Verified identity of whoever is calling the booking service.

    Built per request from the identity service's token; there is no
    process-wide session state.
    """

    actor_id: UUID | None
    role: ActorRole

    @classmethod
    def system(cls) -> "ActorContext":
        """Context used by scheduled jobs."""
        return cls(actor_id=None, role=ActorRole.SYSTEM)


def is_booking_party(actor: ActorContext, guest_user_id: UUID, tenant_owner_id: UUID) -> bool:
    """Check that the actor is the party of the booking their role claims.

    A guest must be the booking's guest, a tenant must own the booked
    property. The system actor is trusted for every booking.
    """
    if actor.role == ActorRole.SYSTEM:
        return True
    if actor.role == ActorRole.GUEST:
        return actor.actor_id == guest_user_id
    if actor.role == ActorRole.TENANT:
        return actor.actor_id == tenant_owner_id
    return False
