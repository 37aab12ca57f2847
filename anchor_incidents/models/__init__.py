"""
Models package.
"""

from .base import Base
from .incident import (
    Incident,
    IncidentNote,
    IncidentWatcher,
    IncidentKeySequence,
    IncidentSeverity,
    IncidentStatus,
    NoteType,
)
from .events import (
    EVENT_TOPIC,
    IncidentEvent,
    IncidentCreated,
    IncidentStatusUpdated,
    IncidentSeverityUpdated,
    IncidentNoteAdded,
    parse_event,
)

__all__ = [
    "Base",
    "Incident",
    "IncidentNote",
    "IncidentWatcher",
    "IncidentKeySequence",
    "IncidentSeverity",
    "IncidentStatus",
    "NoteType",
    "EVENT_TOPIC",
    "IncidentEvent",
    "IncidentCreated",
    "IncidentStatusUpdated",
    "IncidentSeverityUpdated",
    "IncidentNoteAdded",
    "parse_event",
]
