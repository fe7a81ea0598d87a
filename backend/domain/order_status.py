"""
Rental order status model — the lifecycle state machine.

Forward chain:
    Pending → DocumentsSubmitted → DepositPending → Confirmed → Renting
    → Returned → Completed

Side branch:
    Pending / DocumentsSubmitted → AwaitingPayment → DepositPending / Confirmed

Any non-terminal status may move to Cancelled. Completed and Cancelled are
terminal. A new order (no status yet) can only start in Pending.

Pure functions only; nothing here talks to the rental backend.
"""
import re
from typing import Optional, Union

from domain.enums import RentalOrderStatus as S
from domain.errors import IllegalTransitionError

INITIAL_STATUS = S.PENDING
TERMINAL_STATUSES = frozenset({S.COMPLETED, S.CANCELLED})

_FORWARD = {
    S.PENDING: {S.DOCUMENTS_SUBMITTED, S.AWAITING_PAYMENT},
    S.DOCUMENTS_SUBMITTED: {S.DEPOSIT_PENDING, S.AWAITING_PAYMENT},
    S.DEPOSIT_PENDING: {S.CONFIRMED},
    S.CONFIRMED: {S.RENTING},
    S.RENTING: {S.RETURNED},
    S.RETURNED: {S.COMPLETED},
    S.AWAITING_PAYMENT: {S.DEPOSIT_PENDING, S.CONFIRMED},
}

ALLOWED_TRANSITIONS: dict[S, frozenset[S]] = {
    status: frozenset(_FORWARD.get(status, set()) | ({S.CANCELLED} if status not in TERMINAL_STATUSES else set()))
    for status in S
}

# Names the backend (and older staff screens) use for each status
_STATUS_ALIASES = {
    "pending": S.PENDING,
    "documentssubmitted": S.DOCUMENTS_SUBMITTED,
    "depositpending": S.DEPOSIT_PENDING,
    "confirmed": S.CONFIRMED,
    "renting": S.RENTING,
    "returned": S.RETURNED,
    "awaitingpayment": S.AWAITING_PAYMENT,
    "paymentpending": S.AWAITING_PAYMENT,
    "cancelled": S.CANCELLED,
    "canceled": S.CANCELLED,
    "completed": S.COMPLETED,
}

_SEPARATORS = re.compile(r"[\s_\-]+")


def parse_status(value: Union[int, str, S]) -> S:
    """
    Normalize a status from the rental backend.

    Accepts the enum itself, the integer code, the code as a string
    ("3") or the name in any case with optional separators
    ("DepositPending", "deposit_pending", "PaymentPending").

    Raises:
        ValueError for anything unrecognized (never defaults silently)
    """
    if isinstance(value, S):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid rental order status: {value!r}")
    if isinstance(value, int):
        return S(value)
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return S(int(text))
        key = _SEPARATORS.sub("", text).lower()
        if key in _STATUS_ALIASES:
            return _STATUS_ALIASES[key]
    raise ValueError(f"Invalid rental order status: {value!r}")


def is_terminal(status: S) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(from_status: Optional[S], to_status: S) -> bool:
    """
    True if `from_status → to_status` is a legal lifecycle step.

    `from_status=None` is the implicit initial state (order not created yet).
    """
    if from_status is None:
        return to_status == INITIAL_STATUS
    return to_status in ALLOWED_TRANSITIONS[from_status]


def available_transitions(from_status: S) -> list[S]:
    """Legal targets from a status, in lifecycle order (staff status menu)."""
    return sorted(ALLOWED_TRANSITIONS[from_status])


def require_transition(from_status: Optional[S], to_status: S) -> None:
    """Raise IllegalTransitionError unless the transition is legal."""
    if not can_transition(from_status, to_status):
        raise IllegalTransitionError(from_status, to_status)
