# app/enrollments/state_machine.py
from __future__ import annotations

from app.enrollments.model import EnrollmentAction, EnrollmentStatus
from app.errors import IllegalTransitionError

S = EnrollmentStatus
A = EnrollmentAction


ALLOWED: dict[EnrollmentStatus, frozenset[EnrollmentAction]] = {
    S.ENROLLED: frozenset({A.APPROVE, A.REJECT, A.REQUEST_CHANGES, A.WITHDRAW}),
    S.AWAITING_SUBMISSION: frozenset({A.SUBMIT_DELIVERABLES, A.WITHDRAW, A.EXPIRE}),
    S.AWAITING_REVIEW: frozenset({A.APPROVE, A.REJECT, A.REQUEST_CHANGES}),
    S.CHANGES_REQUESTED: frozenset({A.RESUBMIT, A.WITHDRAW, A.EXPIRE}),
    S.APPROVED: frozenset(),
    S.REJECTED: frozenset(),
    S.WITHDRAWN: frozenset(),
    S.EXPIRED: frozenset(),
}

RESULTING_STATUS: dict[EnrollmentAction, EnrollmentStatus] = {
    A.APPROVE: S.APPROVED,
    A.REJECT: S.REJECTED,
    A.REQUEST_CHANGES: S.CHANGES_REQUESTED,
    A.WITHDRAW: S.WITHDRAWN,
    A.EXPIRE: S.EXPIRED,
    A.SUBMIT_DELIVERABLES: S.AWAITING_REVIEW,
    A.RESUBMIT: S.AWAITING_REVIEW,
}

TERMINAL_STATUSES = frozenset(s for s, actions in ALLOWED.items() if not actions)

# money moves: approval spends the hold, any other terminal outcome releases it
COMMIT_STATUSES = frozenset({S.APPROVED})
VOID_STATUSES = frozenset({S.REJECTED, S.WITHDRAWN, S.EXPIRED})

REASON_REQUIRED = frozenset({A.REJECT, A.REQUEST_CHANGES})


def allowed_actions(status: EnrollmentStatus | str) -> frozenset[EnrollmentAction]:
    """
    Legal actions for a status. An unknown status is a caller bug and raises ValueError.
    """
    return ALLOWED[EnrollmentStatus(status)]


def is_terminal(status: EnrollmentStatus | str) -> bool:
    return EnrollmentStatus(status) in TERMINAL_STATUSES


def requires_reason(action: EnrollmentAction | str) -> bool:
    return EnrollmentAction(action) in REASON_REQUIRED


def resolve_transition(status: EnrollmentStatus | str, action: EnrollmentAction | str) -> EnrollmentStatus:
    current = EnrollmentStatus(status)
    act = EnrollmentAction(action)
    if act not in allowed_actions(current):
        raise IllegalTransitionError(
            f"Cannot {act.value.replace('_', ' ')} an enrollment that is {current.value.replace('_', ' ')}"
        )
    return RESULTING_STATUS[act]


def sorted_actions(actions: frozenset[EnrollmentAction]) -> list[EnrollmentAction]:
    order = list(EnrollmentAction)
    return sorted(actions, key=order.index)
