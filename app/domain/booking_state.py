"""Booking state machine.

States: WAITING_PAYMENT → WAITING_CONFIRMATION → PROCESSING → COMPLETED,
with CANCELLED reachable before processing starts. A rejected payment proof
sends the booking back to WAITING_PAYMENT.

Every legal move is one entry in BOOKING_TRANSITIONS, keyed by
(status, role, action). Anything missing from the table is rejected, so a
new action cannot be allowed without adding an entry for it.
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from app.core.exceptions import BookingError, FailureReason
from app.core.permissions import ActorRole


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    WAITING_PAYMENT = "WAITING_PAYMENT"
    WAITING_CONFIRMATION = "WAITING_CONFIRMATION"
    PROCESSING = "PROCESSING"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class BookingAction(str, Enum):
    """Actions that can be requested on an existing booking."""

    UPLOAD_PROOF = "upload_proof"
    CANCEL = "cancel"
    APPROVE = "approve"
    REJECT = "reject"
    REMIND = "remind"
    COMPLETE = "complete"


TERMINAL_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED})


@dataclass(frozen=True)
class Rejected:
    """Outcome of a refused transition."""

    reason: FailureReason


BOOKING_TRANSITIONS: dict[tuple[BookingStatus, ActorRole, BookingAction], BookingStatus] = {
    (BookingStatus.WAITING_PAYMENT, ActorRole.GUEST, BookingAction.UPLOAD_PROOF): (
        BookingStatus.WAITING_CONFIRMATION
    ),
    # Guest may only cancel before a proof is submitted
    (BookingStatus.WAITING_PAYMENT, ActorRole.GUEST, BookingAction.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.WAITING_PAYMENT, ActorRole.TENANT, BookingAction.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.WAITING_CONFIRMATION, ActorRole.TENANT, BookingAction.CANCEL): (
        BookingStatus.CANCELLED
    ),
    (BookingStatus.WAITING_CONFIRMATION, ActorRole.TENANT, BookingAction.APPROVE): (
        BookingStatus.PROCESSING
    ),
    # Rejected proof: guest has to upload a new one
    (BookingStatus.WAITING_CONFIRMATION, ActorRole.TENANT, BookingAction.REJECT): (
        BookingStatus.WAITING_PAYMENT
    ),
    (BookingStatus.PROCESSING, ActorRole.TENANT, BookingAction.REMIND): BookingStatus.PROCESSING,
    (BookingStatus.PROCESSING, ActorRole.SYSTEM, BookingAction.COMPLETE): BookingStatus.COMPLETED,
}

ACTION_ROLES: dict[BookingAction, frozenset[ActorRole]] = {
    action: frozenset(role for (_, role, act) in BOOKING_TRANSITIONS if act == action)
    for action in BookingAction
}


def decide(
    current: BookingStatus | str,
    role: ActorRole | str,
    action: BookingAction | str,
) -> BookingStatus | Rejected:
    """Decide the next status for an action, or why it is refused.

    Args:
        current: Current booking status
        role: Role of the acting party
        action: Requested action

    Returns:
        The next BookingStatus, or Rejected with the reason
    """
    current = BookingStatus(current)
    role = ActorRole(role)
    action = BookingAction(action)

    if current in TERMINAL_STATUSES:
        return Rejected(FailureReason.TERMINAL)

    if role not in ACTION_ROLES[action]:
        return Rejected(FailureReason.WRONG_ROLE)

    next_status = BOOKING_TRANSITIONS.get((current, role, action))
    if next_status is None:
        return Rejected(FailureReason.INVALID_STATUS)
    return next_status


def assert_transition(
    current: BookingStatus | str,
    role: ActorRole | str,
    action: BookingAction | str,
    booking_id: UUID | None = None,
) -> BookingStatus:
    """Return the next status or raise the matching BookingError."""
    outcome = decide(current, role, action)
    if isinstance(outcome, Rejected):
        raise BookingError.for_reason(
            outcome.reason,
            booking_id,
            status=BookingStatus(current).value,
            action=BookingAction(action).value,
        )
    return outcome


def allowed_actions(current: BookingStatus | str, role: ActorRole | str) -> list[BookingAction]:
    """Actions the given role may take from a status, in declaration order."""
    current = BookingStatus(current)
    role = ActorRole(role)
    return [
        action
        for action in BookingAction
        if (current, role, action) in BOOKING_TRANSITIONS
    ]


def is_terminal(current: BookingStatus | str) -> bool:
    return BookingStatus(current) in TERMINAL_STATUSES
