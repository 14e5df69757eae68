"""
Subscription-day state machine.

The edge set is fixed; every status write in the service layer must be
validated with ``can_transition`` first.
"""

from typing import Union

from domain.enums import DayStatus

TRANSITIONS = {
    DayStatus.OPEN: frozenset({DayStatus.LOCKED, DayStatus.SKIPPED}),
    DayStatus.LOCKED: frozenset(
        {DayStatus.IN_PREPARATION, DayStatus.OUT_FOR_DELIVERY, DayStatus.READY_FOR_PICKUP}
    ),
    DayStatus.IN_PREPARATION: frozenset(
        {DayStatus.OUT_FOR_DELIVERY, DayStatus.READY_FOR_PICKUP}
    ),
    DayStatus.OUT_FOR_DELIVERY: frozenset({DayStatus.FULFILLED}),
    DayStatus.READY_FOR_PICKUP: frozenset({DayStatus.FULFILLED}),
    DayStatus.FULFILLED: frozenset(),
    DayStatus.SKIPPED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)

_CLIENT_STATUS = {
    DayStatus.LOCKED: "preparing",
    DayStatus.IN_PREPARATION: "preparing",
    DayStatus.OUT_FOR_DELIVERY: "on_the_way",
}


def _coerce(status: Union[str, DayStatus]):
    try:
        return DayStatus(status)
    except ValueError:
        return None


def can_transition(from_status: Union[str, DayStatus], to_status: Union[str, DayStatus]) -> bool:
    """Return True if ``from_status -> to_status`` is an edge; unknown states are denied."""
    src = _coerce(from_status)
    dst = _coerce(to_status)
    if src is None or dst is None:
        return False
    return dst in TRANSITIONS[src]


def is_terminal(status: Union[str, DayStatus]) -> bool:
    return _coerce(status) in TERMINAL_STATUSES


def client_status(status: Union[str, DayStatus]) -> str:
    """Map an internal status onto the vocabulary shown to subscribers."""
    coerced = _coerce(status)
    if coerced is None:
        return str(status)
    return _CLIENT_STATUS.get(coerced, coerced.value)
