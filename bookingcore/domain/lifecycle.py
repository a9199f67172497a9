"""
Appointment status state machine.

    pending -> confirmed -> completed
    pending | confirmed -> cancelled

``completed`` and ``cancelled`` are terminal. The table only says which
moves are legal; deciding when to make one is up to the caller.
"""

from typing import Dict, FrozenSet

from .exceptions import StateError
from .models import AppointmentStatus

ALLOWED_TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset(
        {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}


def can_transition(current: AppointmentStatus | str, target: AppointmentStatus | str) -> bool:
    """Check whether moving from ``current`` to ``target`` is permitted."""
    current_status = AppointmentStatus.parse(current)
    target_status = AppointmentStatus.parse(target)
    return target_status in ALLOWED_TRANSITIONS[current_status]


def ensure_transition(
    current: AppointmentStatus | str,
    target: AppointmentStatus | str,
) -> AppointmentStatus:
    """
    Validate a requested status change.

    Returns:
        The target status

    Raises:
        StateError: If the transition is not in the table
        ValidationError: If either status is unknown
    """
    current_status = AppointmentStatus.parse(current)
    target_status = AppointmentStatus.parse(target)

    if target_status not in ALLOWED_TRANSITIONS[current_status]:
        raise StateError(current_status.value, target_status.value)

    return target_status


def is_terminal(status: AppointmentStatus | str) -> bool:
    return not ALLOWED_TRANSITIONS[AppointmentStatus.parse(status)]
