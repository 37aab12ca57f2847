"""
Incident status state machine.
"""

from typing import Dict, FrozenSet

from anchor_incidents.models.incident import IncidentStatus
from anchor_incidents.services.errors import InvalidTransitionError

# Self-transitions are never listed. Closed incidents may only be reopened.
ALLOWED_TRANSITIONS: Dict[IncidentStatus, FrozenSet[IncidentStatus]] = {
    IncidentStatus.OPEN: frozenset({
        IncidentStatus.IN_PROGRESS,
        IncidentStatus.RESOLVED,
        IncidentStatus.CLOSED,
    }),
    IncidentStatus.IN_PROGRESS: frozenset({
        IncidentStatus.OPEN,
        IncidentStatus.RESOLVED,
        IncidentStatus.CLOSED,
    }),
    IncidentStatus.RESOLVED: frozenset({
        IncidentStatus.OPEN,
        IncidentStatus.IN_PROGRESS,
        IncidentStatus.CLOSED,
    }),
    IncidentStatus.CLOSED: frozenset({
        IncidentStatus.OPEN,
    }),
}


def can_transition(current: IncidentStatus, new: IncidentStatus) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: IncidentStatus, new: IncidentStatus) -> None:
    """
    Raises:
        InvalidTransitionError: If the table does not list current -> new
    """
    if not can_transition(current, new):
        raise InvalidTransitionError(current, new)
