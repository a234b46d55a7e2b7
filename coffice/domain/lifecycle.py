"""
Reservation lifecycle rules.

    pending -> confirmed -> in_progress -> completed
    pending -> cancelled
    confirmed -> cancelled

``in_progress`` and ``completed`` follow the wall clock; nothing skips a
state except the two cancellation edges. Terminal states never change.
"""

from datetime import datetime
from typing import Dict, FrozenSet

from coffice.core.exceptions import InvalidStateException
from coffice.models.reservation import ReservationStatus

PENDING = ReservationStatus.PENDING.value
CONFIRMED = ReservationStatus.CONFIRMED.value
IN_PROGRESS = ReservationStatus.IN_PROGRESS.value
COMPLETED = ReservationStatus.COMPLETED.value
CANCELLED = ReservationStatus.CANCELLED.value

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    PENDING: frozenset({CONFIRMED, CANCELLED}),
    CONFIRMED: frozenset({IN_PROGRESS, CANCELLED}),
    IN_PROGRESS: frozenset({COMPLETED}),
    COMPLETED: frozenset(),
    CANCELLED: frozenset(),
}

TERMINAL_STATUSES: FrozenSet[str] = frozenset({COMPLETED, CANCELLED})
CANCELLABLE_STATUSES: FrozenSet[str] = frozenset({PENDING, CONFIRMED})


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(reservation_id: str, current: str, target: str) -> None:
    """Raise InvalidStateException unless ``current -> target`` is an allowed edge."""
    if not can_transition(current, target):
        raise InvalidStateException(reservation_id, current, target)


def derive_status(status: str, start_at: datetime, end_at: datetime, now: datetime) -> str:
    """
    Status as the wall clock sees it, without persisting anything.

    A confirmed reservation reads as in_progress once ``now`` reaches its
    start and completed once ``now`` reaches its end. Pending and terminal
    statuses are returned unchanged; pending expiry is a write performed by
    the status sync.
    """
    if status == CONFIRMED:
        if now >= end_at:
            return COMPLETED
        if now >= start_at:
            return IN_PROGRESS
    elif status == IN_PROGRESS and now >= end_at:
        return COMPLETED
    return status
