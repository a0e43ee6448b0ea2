"""Booking state machine tests."""

from itertools import product
from uuid import uuid4

import pytest

from app.core.exceptions import FailureReason, InvalidStatus, TerminalStatus, WrongRole
from app.core.permissions import ActorRole
from app.domain.booking_state import (
    ACTION_ROLES,
    BOOKING_TRANSITIONS,
    TERMINAL_STATUSES,
    BookingAction,
    BookingStatus,
    Rejected,
    allowed_actions,
    assert_transition,
    decide,
    is_terminal,
)

S = BookingStatus
R = ActorRole
A = BookingAction


EXPECTED_TABLE = {
    (S.WAITING_PAYMENT, R.GUEST, A.UPLOAD_PROOF): S.WAITING_CONFIRMATION,
    (S.WAITING_PAYMENT, R.GUEST, A.CANCEL): S.CANCELLED,
    (S.WAITING_PAYMENT, R.TENANT, A.CANCEL): S.CANCELLED,
    (S.WAITING_CONFIRMATION, R.TENANT, A.CANCEL): S.CANCELLED,
    (S.WAITING_CONFIRMATION, R.TENANT, A.APPROVE): S.PROCESSING,
    (S.WAITING_CONFIRMATION, R.TENANT, A.REJECT): S.WAITING_PAYMENT,
    (S.PROCESSING, R.TENANT, A.REMIND): S.PROCESSING,
    (S.PROCESSING, R.SYSTEM, A.COMPLETE): S.COMPLETED,
}


def test_transition_table_is_exactly_the_lifecycle():
    assert BOOKING_TRANSITIONS == EXPECTED_TABLE


@pytest.mark.parametrize("key,expected", list(EXPECTED_TABLE.items()))
def test_decide_allows_every_listed_transition(key, expected):
    status, role, action = key
    assert decide(status, role, action) == expected


@pytest.mark.parametrize("status,role,action", list(product(TERMINAL_STATUSES, R, A)))
def test_terminal_statuses_refuse_every_action(status, role, action):
    assert decide(status, role, action) == Rejected(FailureReason.TERMINAL)


def test_unlisted_combinations_for_permitted_roles_are_invalid_status():
    checked = 0
    for status, role, action in product(S, R, A):
        if status in TERMINAL_STATUSES or (status, role, action) in BOOKING_TRANSITIONS:
            continue
        if role not in ACTION_ROLES[action]:
            continue
        assert decide(status, role, action) == Rejected(FailureReason.INVALID_STATUS), (
            status,
            role,
            action,
        )
        checked += 1
    assert checked > 0


@pytest.mark.parametrize(
    "role,action",
    [
        (R.GUEST, A.APPROVE),
        (R.GUEST, A.REJECT),
        (R.GUEST, A.REMIND),
        (R.GUEST, A.COMPLETE),
        (R.TENANT, A.UPLOAD_PROOF),
        (R.TENANT, A.COMPLETE),
        (R.SYSTEM, A.CANCEL),
        (R.SYSTEM, A.APPROVE),
    ],
)
def test_roles_never_allowed_an_action_get_wrong_role(role, action):
    for status in S:
        if status in TERMINAL_STATUSES:
            continue
        assert decide(status, role, action) == Rejected(FailureReason.WRONG_ROLE)


def test_guest_cannot_cancel_after_proof_upload():
    assert decide(S.WAITING_CONFIRMATION, R.GUEST, A.CANCEL) == Rejected(
        FailureReason.INVALID_STATUS
    )
    assert decide(S.WAITING_CONFIRMATION, R.TENANT, A.CANCEL) == S.CANCELLED


def test_reject_on_processing_is_invalid_status():
    assert decide(S.PROCESSING, R.TENANT, A.REJECT) == Rejected(FailureReason.INVALID_STATUS)


def test_decide_accepts_plain_strings():
    assert decide("WAITING_PAYMENT", "guest", "upload_proof") == S.WAITING_CONFIRMATION


def test_decide_rejects_unknown_status_values():
    with pytest.raises(ValueError):
        decide("PAID", R.GUEST, A.CANCEL)


def test_assert_transition_raises_structured_errors():
    booking_id = uuid4()

    with pytest.raises(InvalidStatus) as exc_info:
        assert_transition(S.PROCESSING, R.TENANT, A.REJECT, booking_id)
    assert exc_info.value.status_code == 409
    assert exc_info.value.detail == {
        "reason": "INVALID_STATUS",
        "booking_id": str(booking_id),
        "status": "PROCESSING",
        "action": "reject",
    }

    with pytest.raises(TerminalStatus):
        assert_transition(S.COMPLETED, R.SYSTEM, A.COMPLETE)

    with pytest.raises(WrongRole) as exc_info:
        assert_transition(S.WAITING_CONFIRMATION, R.GUEST, A.APPROVE)
    assert exc_info.value.status_code == 403

    assert assert_transition(S.WAITING_PAYMENT, R.GUEST, A.UPLOAD_PROOF) == S.WAITING_CONFIRMATION


def test_allowed_actions_follow_the_table():
    assert allowed_actions(S.WAITING_PAYMENT, R.GUEST) == [A.UPLOAD_PROOF, A.CANCEL]
    assert allowed_actions(S.WAITING_PAYMENT, R.TENANT) == [A.CANCEL]
    assert allowed_actions(S.WAITING_CONFIRMATION, R.GUEST) == []
    assert allowed_actions(S.WAITING_CONFIRMATION, R.TENANT) == [A.CANCEL, A.APPROVE, A.REJECT]
    assert allowed_actions(S.PROCESSING, R.TENANT) == [A.REMIND]
    assert allowed_actions(S.PROCESSING, R.SYSTEM) == [A.COMPLETE]
    for status, role in product(TERMINAL_STATUSES, R):
        assert allowed_actions(status, role) == []


def test_is_terminal():
    assert is_terminal(S.CANCELLED)
    assert is_terminal("COMPLETED")
    assert not is_terminal(S.PROCESSING)
