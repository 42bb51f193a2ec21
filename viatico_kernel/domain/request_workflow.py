"""
Viatic request lifecycle.

State diagram::

    DRAFT --submit--> SUBMITTED_TO_ADMIN --start_review--> ADMIN_REVIEW
                              |                                 |
                              +----------- standardize ---------+
                                               |
                                               v
    ADMIN_CORRECTION <--start_correction-- TREASURY_RETURNED
          |                                    ^      |
          +--create_correction--+              |      +--create_correction--+
                                v              |                            v
                         PENDING_SIGNATURE <---+--------------------- (fork version)
                                |              |
                              sign     request_correction
                                v              |
                         READY_FOR_PAYMENT ----+
                                |
                            mark_paid  (repeatable on PAID)
                                v
                               PAID

    cancel: any non-terminal state -> CANCELLED
"""

from __future__ import annotations

from enum import Enum

from viatico_kernel.domain.actor import UserRole
from viatico_kernel.domain.workflow import Guard, Transition, Workflow


class RequestStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED_TO_ADMIN = "SUBMITTED_TO_ADMIN"
    ADMIN_REVIEW = "ADMIN_REVIEW"
    PENDING_SIGNATURE = "PENDING_SIGNATURE"
    READY_FOR_PAYMENT = "READY_FOR_PAYMENT"
    PAID = "PAID"
    TREASURY_RETURNED = "TREASURY_RETURNED"
    ADMIN_CORRECTION = "ADMIN_CORRECTION"
    CANCELLED = "CANCELLED"


class RequestAction(str, Enum):
    SUBMIT = "submit"
    START_REVIEW = "start_review"
    STANDARDIZE = "standardize"
    START_CORRECTION = "start_correction"
    CREATE_CORRECTION = "create_correction"
    SIGN = "sign"
    MARK_PAID = "mark_paid"
    REQUEST_CORRECTION = "request_correction"
    CANCEL = "cancel"


_S = RequestStatus
_A = RequestAction

TERMINAL_STATES = (_S.PAID.value, _S.CANCELLED.value)

ACTIVE_VERSION_HAS_LINES = "active_version_has_lines"

_HAS_LINES = Guard(
    name=ACTIVE_VERSION_HAS_LINES,
    description="The active version carries at least one worker line",
)


def _t(src: RequestStatus, dst: RequestStatus, action: RequestAction,
       role: UserRole, guard: Guard | None = None) -> Transition:
    return Transition(
        from_state=src.value,
        to_state=dst.value,
        action=action.value,
        required_role=role.value,
        guard=guard,
    )


_CANCELLABLE = (
    _S.DRAFT,
    _S.SUBMITTED_TO_ADMIN,
    _S.ADMIN_REVIEW,
    _S.PENDING_SIGNATURE,
    _S.READY_FOR_PAYMENT,
    _S.TREASURY_RETURNED,
    _S.ADMIN_CORRECTION,
)

VIATIC_REQUEST_WORKFLOW = Workflow(
    name="viatic_request",
    description="Per-diem request from area chief submission to treasury payment",
    initial_state=_S.SUBMITTED_TO_ADMIN.value,
    states=tuple(s.value for s in RequestStatus),
    transitions=(
        _t(_S.DRAFT, _S.SUBMITTED_TO_ADMIN, _A.SUBMIT, UserRole.JEFE_AREA),
        _t(_S.SUBMITTED_TO_ADMIN, _S.ADMIN_REVIEW, _A.START_REVIEW, UserRole.ADMIN),
        _t(_S.SUBMITTED_TO_ADMIN, _S.PENDING_SIGNATURE, _A.STANDARDIZE, UserRole.ADMIN),
        _t(_S.ADMIN_REVIEW, _S.PENDING_SIGNATURE, _A.STANDARDIZE, UserRole.ADMIN),
        _t(_S.TREASURY_RETURNED, _S.ADMIN_CORRECTION, _A.START_CORRECTION, UserRole.ADMIN),
        _t(_S.TREASURY_RETURNED, _S.PENDING_SIGNATURE, _A.CREATE_CORRECTION,
           UserRole.ADMIN, _HAS_LINES),
        _t(_S.ADMIN_CORRECTION, _S.PENDING_SIGNATURE, _A.CREATE_CORRECTION,
           UserRole.ADMIN, _HAS_LINES),
        _t(_S.PENDING_SIGNATURE, _S.READY_FOR_PAYMENT, _A.SIGN, UserRole.JEFE_AREA),
        _t(_S.READY_FOR_PAYMENT, _S.PAID, _A.MARK_PAID, UserRole.TESORERIA),
        _t(_S.READY_FOR_PAYMENT, _S.TREASURY_RETURNED, _A.REQUEST_CORRECTION,
           UserRole.TESORERIA),
    ) + tuple(
        _t(src, _S.CANCELLED, _A.CANCEL, UserRole.ADMIN) for src in _CANCELLABLE
    ),
    terminal_states=TERMINAL_STATES,
)


# PAID -> PAID: re-registering a payment updates the payment record only.
# Kept outside the state machine so that PAID stays terminal.
REPEATABLE_ACTIONS: dict[str, tuple[str, ...]] = {
    _A.MARK_PAID.value: (_S.PAID.value,),
}


def allowed_sources(action: RequestAction | str) -> tuple[str, ...]:
    """All states from which ``action`` is accepted, including repeats."""
    name = RequestAction(action).value
    return VIATIC_REQUEST_WORKFLOW.sources_for(name) + REPEATABLE_ACTIONS.get(name, ())


def target_state(action: RequestAction | str, from_state: RequestStatus | str) -> str | None:
    """
    The state ``action`` leads to from ``from_state``, or None when the
    action is not allowed there.
    """
    name = RequestAction(action).value
    src = RequestStatus(from_state).value
    transition = VIATIC_REQUEST_WORKFLOW.find(name, src)
    if transition is not None:
        return transition.to_state
    if src in REPEATABLE_ACTIONS.get(name, ()):
        return src
    return None


def guard_for(action: RequestAction | str, from_state: RequestStatus | str) -> Guard | None:
    """The guard on ``action`` out of ``from_state``; repeats are unguarded."""
    transition = VIATIC_REQUEST_WORKFLOW.find(
        RequestAction(action).value, RequestStatus(from_state).value
    )
    return transition.guard if transition is not None else None


def required_role(action: RequestAction | str) -> UserRole:
    role = VIATIC_REQUEST_WORKFLOW.required_role(RequestAction(action).value)
    return UserRole(role)
