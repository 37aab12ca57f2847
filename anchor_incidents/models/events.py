"""
Incident domain events.

Each event kind is a frozen dataclass sharing the same publishing surface:
a topic, a schema version, an event type tag and a JSON payload.
"""

import json
import uuid
from dataclasses import dataclass, field, asdict
from typing import Any, ClassVar, Dict, Optional, Type

EVENT_TOPIC = "anchor.incident.events"
SOURCE_SERVICE = "incident"
SCHEMA_VERSION = 1


def new_event_key() -> str:
    """Key unique to a single emission, not to the incident."""
    return uuid.uuid4().hex


class IncidentEvent:
    """Common publishing surface of every incident event."""

    topic: ClassVar[str] = EVENT_TOPIC
    version: ClassVar[int] = SCHEMA_VERSION
    event_type: ClassVar[str] = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["source_service"] = SOURCE_SERVICE
        data["version"] = self.version
        data["event_type"] = self.event_type
        return data

    def payload(self) -> bytes:
        """Serialized JSON payload as sent on the wire."""
        return json.dumps(self.to_dict()).encode("utf-8")


@dataclass(frozen=True)
class IncidentCreated(IncidentEvent):
    id: str
    title: str
    severity: str
    event_key: str = field(default_factory=new_event_key)

    event_type: ClassVar[str] = "incident.created"

    @classmethod
    def from_incident(cls, incident) -> "IncidentCreated":
        return cls(id=incident.id, title=incident.title, severity=_value(incident.severity))


@dataclass(frozen=True)
class IncidentStatusUpdated(IncidentEvent):
    id: str
    title: str
    status: str
    event_key: str = field(default_factory=new_event_key)

    event_type: ClassVar[str] = "incident.status.updated"

    @classmethod
    def from_incident(cls, incident) -> "IncidentStatusUpdated":
        return cls(id=incident.id, title=incident.title, status=_value(incident.status))


@dataclass(frozen=True)
class IncidentSeverityUpdated(IncidentEvent):
    id: str
    title: str
    severity: str
    event_key: str = field(default_factory=new_event_key)

    event_type: ClassVar[str] = "incident.severity.updated"

    @classmethod
    def from_incident(cls, incident) -> "IncidentSeverityUpdated":
        return cls(id=incident.id, title=incident.title, severity=_value(incident.severity))


@dataclass(frozen=True)
class IncidentNoteAdded(IncidentEvent):
    id: str
    title: str
    content: str
    event_key: str = field(default_factory=new_event_key)

    event_type: ClassVar[str] = "incident.notes.added"

    @classmethod
    def from_incident(cls, incident, content: str) -> "IncidentNoteAdded":
        return cls(id=incident.id, title=incident.title, content=content)


EVENT_TYPES: Dict[str, Type[IncidentEvent]] = {
    IncidentCreated.event_type: IncidentCreated,
    IncidentStatusUpdated.event_type: IncidentStatusUpdated,
    IncidentSeverityUpdated.event_type: IncidentSeverityUpdated,
    IncidentNoteAdded.event_type: IncidentNoteAdded,
}


def parse_event(payload: bytes) -> Optional[IncidentEvent]:
    """
    Decode a payload back into its event class.

    Unknown event types return None so consumers can skip them. Fields the
    current schema does not know about are dropped.

    Raises:
        ValueError: If the payload is not a JSON object
    """
    data = json.loads(payload)
    if not isinstance(data, dict):
        raise ValueError("event payload must be a JSON object")

    event_cls = EVENT_TYPES.get(data.get("event_type", ""))
    if event_cls is None:
        return None

    known = event_cls.__dataclass_fields__
    return event_cls(**{name: value for name, value in data.items() if name in known})


def _value(member: Any) -> str:
    return getattr(member, "value", member)
