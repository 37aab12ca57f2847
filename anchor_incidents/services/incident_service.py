"""
Incident lifecycle manager.

This service owns incident validation, status transition rules, incident key
assignment and event emission. Storage goes through an injected
IncidentRepository and events through an injected EventPublisher.
"""

from typing import Any, Dict, List, Optional, Sequence

from anchor_incidents.models.events import (
    IncidentEvent,
    IncidentCreated,
    IncidentStatusUpdated,
    IncidentSeverityUpdated,
    IncidentNoteAdded,
)
from anchor_incidents.models.incident import (
    Incident,
    INCIDENT_KEY_MAX,
    IncidentNote,
    IncidentStatus,
    IncidentWatcher,
    new_object_id,
    utcnow,
)
from anchor_incidents.services.errors import (
    IncidentError,
    IncidentNotFoundError,
    PartialFailureError,
)
from anchor_incidents.services.event_publisher import EventFailurePolicy, EventPublisher
from anchor_incidents.services.incident_repository import IncidentRepository
from anchor_incidents.services.status_transitions import ensure_transition
from anchor_incidents.services.validation import (
    validate_title,
    parse_severity,
    parse_status,
    parse_note_type,
    validate_note_content,
    validate_email,
    optional_email,
)
from anchor_incidents.utils.logging import get_logger, log_incident_event

logger = get_logger(__name__)


class IncidentService:
    """Service for managing the incident lifecycle."""

    def __init__(
        self,
        repository: IncidentRepository,
        publisher: EventPublisher,
        failure_policy: EventFailurePolicy = EventFailurePolicy.LOG
    ):
        """
        Initialize incident service.

        Args:
            repository: Incident store adapter
            publisher: Event publisher
            failure_policy: What to do when publishing an event fails
        """
        self.repository = repository
        self.publisher = publisher
        self.failure_policy = failure_policy

    def create_incident(
        self,
        title: str,
        severity: str,
        description: Optional[str] = None,
        notes: Optional[Sequence[Dict[str, Any]]] = None,
        author_email: Optional[str] = None,
        assignee: Optional[str] = None
    ) -> Incident:
        """
        Create a new incident with status `open`.

        Args:
            title: Incident title (3-255 characters)
            severity: low, medium, high or critical
            description: Optional free text
            notes: Optional initial notes ({"content", "author_email", "type"});
                any id in the request is ignored
            author_email: Optional creator email, added to the watch list
            assignee: Optional assignee

        Returns:
            Incident: Persisted incident with id, key and timestamps

        Raises:
            InvalidInputError: If title or a supplied note is invalid
            InvalidSeverityError: If severity is unknown
            InvalidEmailError: If author_email is non-empty and malformed
            PersistenceError: If the store write fails
        """
        title = validate_title(title)
        new_severity = parse_severity(severity)
        watcher_email = optional_email(author_email)
        initial_notes = self._build_notes(notes or [])

        incident = Incident(
            incident_key=self.repository.next_incident_key(),
            title=title,
            severity=new_severity,
            status=IncidentStatus.OPEN,
            notes=initial_notes,
            watchlist=[IncidentWatcher(email=watcher_email)] if watcher_email else [],
            created_by=(author_email or "").strip(),
            description=description or "",
            assignee=assignee or "",
        )

        created = self.repository.create(incident)
        log_incident_event(
            logger,
            "incident_created",
            created.id,
            incident_key=created.incident_key,
            title=created.title,
            severity=created.severity.value,
        )

        self._emit(IncidentCreated.from_incident(created))
        return created

    def get_by_id(self, identifier: str) -> Incident:
        """
        Get an incident by storage id or by incident key.

        An all-digit identifier is looked up as an incident key first.

        Raises:
            IncidentNotFoundError: If nothing matches
        """
        incident = self._find(identifier)
        if incident is None:
            logger.info("incident_not_found", identifier=identifier)
            raise IncidentNotFoundError(identifier)
        return incident

    def list_incidents(self) -> List[Incident]:
        incidents = self.repository.list_all()
        logger.info("incidents_listed", count=len(incidents))
        return incidents

    def update_status(self, identifier: str, status: str, author_email: Optional[str] = None) -> Incident:
        """
        Move an incident to a new status.

        Args:
            identifier: Storage id or incident key
            status: Target status
            author_email: Optional email added to the watch list afterwards

        Returns:
            Incident: Updated incident

        Raises:
            InvalidStatusError: If status is unknown
            InvalidEmailError: If author_email is non-empty and malformed
            IncidentNotFoundError: If the incident does not exist
            InvalidTransitionError: If the transition table forbids the change
            PersistenceError: If the status update fails
            PartialFailureError: If the status changed but the watcher add failed
        """
        new_status = parse_status(status)
        watcher_email = optional_email(author_email)
        incident = self.get_by_id(identifier)
        previous_status = incident.status

        ensure_transition(previous_status, new_status)

        updated = self.repository.update_status(incident.id, new_status)
        log_incident_event(
            logger,
            "incident_status_updated",
            updated.id,
            from_status=previous_status.value,
            to_status=new_status.value,
        )
        self._emit(IncidentStatusUpdated.from_incident(updated))

        return self._add_chained_watcher(updated, watcher_email, "status")

    def update_severity(self, identifier: str, severity: str, author_email: Optional[str] = None) -> Incident:
        """
        Change incident severity. Any severity may follow any other.

        Raises:
            InvalidSeverityError: If severity is unknown
            InvalidEmailError: If author_email is non-empty and malformed
            IncidentNotFoundError: If the incident does not exist
            PersistenceError: If the severity update fails
            PartialFailureError: If the severity changed but the watcher add failed
        """
        new_severity = parse_severity(severity)
        watcher_email = optional_email(author_email)
        incident = self.get_by_id(identifier)
        previous_severity = incident.severity

        updated = self.repository.update_severity(incident.id, new_severity)
        log_incident_event(
            logger,
            "incident_severity_updated",
            updated.id,
            from_severity=previous_severity.value,
            to_severity=new_severity.value,
        )
        self._emit(IncidentSeverityUpdated.from_incident(updated))

        return self._add_chained_watcher(updated, watcher_email, "severity")

    def add_note(
        self,
        identifier: str,
        content: str,
        author_email: Optional[str] = None,
        note_type: Optional[str] = None
    ) -> Incident:
        """
        Append a note to an incident.

        Raises:
            InvalidNoteError: If content is empty, too long, or type is unknown
            IncidentNotFoundError: If the incident does not exist
            PersistenceError: If the update fails
        """
        note = self._build_note(content, author_email, note_type)
        incident = self.get_by_id(identifier)

        updated = self.repository.add_note(incident.id, note)
        log_incident_event(logger, "incident_note_added", updated.id, note_id=note.id, author=note.author_email)

        self._emit(IncidentNoteAdded.from_incident(updated, note.content))
        return updated

    def add_watcher(self, identifier: str, email: str) -> Incident:
        """
        Add an email to the watch list. Adding an existing email is a no-op.

        No event is emitted.

        Raises:
            InvalidEmailError: If email fails format validation
            IncidentNotFoundError: If the incident does not exist
            PersistenceError: If the update fails
        """
        watcher_email = validate_email(email)
        incident = self.get_by_id(identifier)

        updated = self.repository.add_watcher(incident.id, watcher_email)
        log_incident_event(logger, "incident_watcher_added", updated.id, email=watcher_email)
        return updated

    def _find(self, identifier: str) -> Optional[Incident]:
        identifier = (identifier or "").strip()
        if not identifier:
            return None
        incident_key = _parse_incident_key(identifier)
        if incident_key is not None:
            incident = self.repository.get_by_key(incident_key)
            if incident is not None:
                return incident
        return self.repository.get_by_id(identifier)

    def _add_chained_watcher(self, updated: Incident, watcher_email: Optional[str], field: str) -> Incident:
        """
        Second step of a status/severity update.

        The primary change is already committed and stays committed; a
        failure here is reported as PartialFailureError carrying that state.
        """
        if watcher_email is None:
            return updated

        try:
            return self.add_watcher(updated.id, watcher_email)
        except IncidentError as e:
            logger.error(
                "incident_chained_watcher_failed",
                incident_id=updated.id,
                field=field,
                email=watcher_email,
                error=str(e),
            )
            raise PartialFailureError(
                f"updated incident {field} but failed to add watcher to incident: {e}",
                incident=updated,
                cause=e,
            ) from e

    def _build_note(self, content: str, author_email: Optional[str], note_type: Optional[str]) -> IncidentNote:
        return IncidentNote(
            id=new_object_id(),
            content=validate_note_content(content),
            author_email=(author_email or "").strip(),
            type=parse_note_type(note_type),
            created_at=utcnow(),
        )

    def _build_notes(self, notes: Sequence[Dict[str, Any]]) -> List[IncidentNote]:
        return [
            self._build_note(note.get("content"), note.get("author_email"), note.get("type"))
            for note in notes
        ]

    def _emit(self, event: IncidentEvent) -> None:
        """Publish best-effort; failures never reach the caller."""
        try:
            self.publisher.publish(event)
        except Exception as e:
            if self.failure_policy is EventFailurePolicy.LOG:
                logger.warning(
                    "incident_event_emit_failed",
                    event_type=event.event_type,
                    event_key=event.event_key,
                    incident_id=getattr(event, "id", None),
                    error=str(e),
                )
            else:
                logger.debug("incident_event_emit_failed_ignored", event_type=event.event_type, error=str(e))


def _parse_incident_key(identifier: str) -> Optional[int]:
    """Decimal identifier within the key column range as an incident key, else None."""
    if not identifier.isdecimal() or len(identifier.lstrip("0")) > len(str(INCIDENT_KEY_MAX)):
        return None
    incident_key = int(identifier)
    return incident_key if 0 < incident_key <= INCIDENT_KEY_MAX else None
