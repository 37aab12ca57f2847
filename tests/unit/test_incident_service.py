"""
Unit tests for IncidentService.

Most tests run the service against a real repository on in-memory SQLite;
failure paths use a Mock repository.
"""

from unittest.mock import Mock

import pytest

from anchor_incidents.models.events import (
    IncidentCreated,
    IncidentStatusUpdated,
    IncidentSeverityUpdated,
    IncidentNoteAdded,
)
from anchor_incidents.models.incident import IncidentSeverity, IncidentStatus, NoteType
from anchor_incidents.services.errors import (
    IncidentNotFoundError,
    InvalidEmailError,
    InvalidInputError,
    InvalidNoteError,
    InvalidSeverityError,
    InvalidStatusError,
    InvalidTransitionError,
    PartialFailureError,
    PersistenceError,
)
from anchor_incidents.services.event_publisher import EventFailurePolicy, EventPublishError
from anchor_incidents.services.incident_repository import IncidentRepository
from anchor_incidents.services.incident_service import IncidentService


class TestCreateIncident:
    """Tests for incident creation."""

    def test_create_with_defaults(self, service, publisher):
        # Act
        incident = service.create_incident(title="Payments API 500s", severity="high")

        # Assert
        assert incident.incident_key == 1
        assert incident.status is IncidentStatus.OPEN
        assert incident.severity is IncidentSeverity.HIGH
        assert incident.notes == []
        assert incident.watchlist == []
        assert incident.created_at == incident.updated_at

        events = publisher.of_type("incident.created")
        assert len(events) == 1
        assert events[0] == IncidentCreated(
            id=incident.id, title="Payments API 500s", severity="high", event_key=events[0].event_key
        )

    def test_author_email_joins_watch_list(self, service):
        incident = service.create_incident(
            title="Payments API 500s",
            severity="critical",
            author_email="oncall@anchor.io",
        )

        assert [watcher.email for watcher in incident.watchlist] == ["oncall@anchor.io"]
        assert incident.created_by == "oncall@anchor.io"

    def test_initial_notes_keep_order_and_type(self, service):
        incident = service.create_incident(
            title="Payments API 500s",
            severity="medium",
            notes=[
                {"content": "Paged on-call", "author_email": "a@b.com", "type": "communication"},
                {"content": "Looking at logs", "id": "client-supplied"},
            ],
        )

        assert [note.content for note in incident.notes] == ["Paged on-call", "Looking at logs"]
        assert incident.notes[0].type is NoteType.COMMUNICATION
        assert incident.notes[1].type is NoteType.UPDATE
        assert incident.notes[1].id != "client-supplied"

    def test_keys_are_sequential(self, service):
        keys = [service.create_incident(title=f"Incident {i}", severity="low").incident_key for i in range(3)]

        assert keys == [1, 2, 3]

    @pytest.mark.parametrize("title", ["ab", "a" * 256, "   "])
    def test_invalid_title_is_rejected(self, service, publisher, title):
        with pytest.raises(InvalidInputError):
            service.create_incident(title=title, severity="low")

        assert service.list_incidents() == []
        assert publisher.events == []

    def test_invalid_severity_is_rejected(self, service):
        with pytest.raises(InvalidSeverityError):
            service.create_incident(title="Payments API 500s", severity="urgent")

    def test_invalid_author_email_is_rejected(self, service):
        with pytest.raises(InvalidEmailError):
            service.create_incident(title="Payments API 500s", severity="low", author_email="nope")

        assert service.list_incidents() == []

    def test_invalid_initial_note_is_rejected(self, service):
        with pytest.raises(InvalidNoteError):
            service.create_incident(title="Payments API 500s", severity="low", notes=[{"content": ""}])

    def test_validation_happens_before_any_store_call(self, publisher):
        repository = Mock(spec=IncidentRepository)
        service = IncidentService(repository, publisher)

        with pytest.raises(InvalidSeverityError):
            service.create_incident(title="Payments API 500s", severity="bogus")

        repository.next_incident_key.assert_not_called()
        repository.create.assert_not_called()


class TestGetIncident:

    def test_get_by_storage_id(self, service):
        incident = service.create_incident(title="Payments API 500s", severity="low")

        assert service.get_by_id(incident.id).id == incident.id

    def test_get_by_incident_key(self, service):
        service.create_incident(title="First incident", severity="low")
        second = service.create_incident(title="Second incident", severity="low")

        assert service.get_by_id("2").id == second.id

    @pytest.mark.parametrize("identifier", [
        "",
        "missing",
        "404",
        "0",
        "\u00b2",
        "9" * 20,
        "9" * 5000,
        str(2**31),
    ])
    def test_unknown_identifier_raises_not_found(self, service, identifier):
        with pytest.raises(IncidentNotFoundError):
            service.get_by_id(identifier)

    def test_key_with_leading_zeros(self, service):
        incident = service.create_incident(title="First incident", severity="low")

        assert service.get_by_id("0001").id == incident.id

    def test_watcher_on_local_domain(self, service):
        incident = service.create_incident(title="First incident", severity="low")

        updated = service.add_watcher(incident.id, "oncall@corp.local")

        assert [watcher.email for watcher in updated.watchlist] == ["oncall@corp.local"]

    def test_list_is_newest_first(self, service):
        first = service.create_incident(title="First incident", severity="low")
        second = service.create_incident(title="Second incident", severity="low")

        assert [incident.id for incident in service.list_incidents()] == [second.id, first.id]


class TestUpdateStatus:

    def test_allowed_transition(self, service, publisher):
        # Arrange
        incident = service.create_incident(title="Payments API 500s", severity="high")

        # Act
        updated = service.update_status(incident.id, "in_progress")

        # Assert
        assert updated.status is IncidentStatus.IN_PROGRESS
        events = publisher.of_type("incident.status.updated")
        assert len(events) == 1
        assert events[0].status == "in_progress"
        assert events[0].title == "Payments API 500s"

    def test_full_lifecycle_and_reopen(self, service):
        incident = service.create_incident(title="Payments API 500s", severity="high")

        for target in ["in_progress", "resolved", "closed", "open"]:
            incident = service.update_status(incident.id, target)

        assert incident.status is IncidentStatus.OPEN

    def test_forbidden_transition_leaves_incident_unchanged(self, service, publisher):
        # Arrange
        incident = service.create_incident(title="Payments API 500s", severity="high")
        service.update_status(incident.id, "closed")

        # Act & Assert
        with pytest.raises(InvalidTransitionError) as exc_info:
            service.update_status(incident.id, "resolved")

        assert str(exc_info.value) == "cannot transition from closed to resolved"
        assert service.get_by_id(incident.id).status is IncidentStatus.CLOSED
        assert len(publisher.of_type("incident.status.updated")) == 1

    def test_self_transition_is_rejected(self, service):
        incident = service.create_incident(title="Payments API 500s", severity="high")

        with pytest.raises(InvalidTransitionError):
            service.update_status(incident.id, "open")

    def test_unknown_status_is_rejected(self, service):
        incident = service.create_incident(title="Payments API 500s", severity="high")

        with pytest.raises(InvalidStatusError):
            service.update_status(incident.id, "done")

    def test_missing_incident_never_writes(self, publisher):
        repository = Mock(spec=IncidentRepository)
        repository.get_by_id.return_value = None
        service = IncidentService(repository, publisher)

        with pytest.raises(IncidentNotFoundError):
            service.update_status("missing", "closed")

        repository.update_status.assert_not_called()
        assert publisher.events == []

    def test_author_email_is_added_to_watch_list(self, service):
        incident = service.create_incident(title="Payments API 500s", severity="high")

        updated = service.update_status(incident.id, "resolved", author_email="oncall@anchor.io")

        assert updated.status is IncidentStatus.RESOLVED
        assert [watcher.email for watcher in updated.watchlist] == ["oncall@anchor.io"]

    def test_invalid_author_email_is_rejected_before_update(self, service):
        incident = service.create_incident(title="Payments API 500s", severity="high")

        with pytest.raises(InvalidEmailError):
            service.update_status(incident.id, "resolved", author_email="not-an-email")

        assert service.get_by_id(incident.id).status is IncidentStatus.OPEN

    def test_watcher_failure_is_a_partial_failure(self, publisher):
        # Arrange
        incident = Mock(id="abc", title="Payments API 500s", status=IncidentStatus.OPEN)
        updated = Mock(id="abc", title="Payments API 500s", status=IncidentStatus.RESOLVED)
        repository = Mock(spec=IncidentRepository)
        repository.get_by_key.return_value = None
        repository.get_by_id.side_effect = [incident, updated]
        repository.update_status.return_value = updated
        repository.add_watcher.side_effect = PersistenceError("failed to add watcher to incident: boom")
        service = IncidentService(repository, publisher)

        # Act
        with pytest.raises(PartialFailureError) as exc_info:
            service.update_status("abc", "resolved", author_email="a@b.com")

        # Assert
        assert exc_info.value.incident is updated
        assert isinstance(exc_info.value.cause, PersistenceError)
        assert "updated incident status but failed to add watcher" in str(exc_info.value)
        repository.update_status.assert_called_once_with("abc", IncidentStatus.RESOLVED)
        assert len(publisher.of_type("incident.status.updated")) == 1


class TestUpdateSeverity:

    def test_any_severity_change_is_allowed(self, service, publisher):
        incident = service.create_incident(title="Payments API 500s", severity="low")

        updated = service.update_severity(incident.id, "critical")
        updated = service.update_severity(updated.id, "critical")

        assert updated.severity is IncidentSeverity.CRITICAL
        events = publisher.of_type("incident.severity.updated")
        assert [event.severity for event in events] == ["critical", "critical"]

    def test_unknown_severity_is_rejected(self, service):
        incident = service.create_incident(title="Payments API 500s", severity="low")

        with pytest.raises(InvalidSeverityError):
            service.update_severity(incident.id, "sev1")

    def test_missing_incident(self, service):
        with pytest.raises(IncidentNotFoundError):
            service.update_severity("missing", "low")

    def test_watcher_failure_is_a_partial_failure(self, publisher):
        incident = Mock(id="abc", title="Payments API 500s", severity=IncidentSeverity.LOW)
        updated = Mock(id="abc", title="Payments API 500s", severity=IncidentSeverity.HIGH)
        repository = Mock(spec=IncidentRepository)
        repository.get_by_id.side_effect = [incident, None]
        repository.update_severity.return_value = updated
        service = IncidentService(repository, publisher)

        with pytest.raises(PartialFailureError) as exc_info:
            service.update_severity("abc", "high", author_email="a@b.com")

        assert exc_info.value.incident is updated
        assert isinstance(exc_info.value.cause, IncidentNotFoundError)
        assert "updated incident severity" in str(exc_info.value)


class TestAddNote:

    def test_note_is_appended_and_emitted(self, service, publisher):
        incident = service.create_incident(
            title="Payments API 500s", severity="low", notes=[{"content": "First"}]
        )

        updated = service.add_note(incident.id, "Rolled back deploy", "a@b.com", "resolution")

        assert [note.content for note in updated.notes] == ["First", "Rolled back deploy"]
        assert updated.notes[-1].type is NoteType.RESOLUTION
        assert updated.notes[-1].author_email == "a@b.com"
        events = publisher.of_type("incident.notes.added")
        assert len(events) == 1
        assert events[0].content == "Rolled back deploy"

    def test_missing_type_defaults_to_update(self, service):
        incident = service.create_incident(title="Payments API 500s", severity="low")

        updated = service.add_note(incident.id, "Still investigating")

        assert updated.notes[0].type is NoteType.UPDATE

    @pytest.mark.parametrize("content", ["", "x" * 1001])
    def test_invalid_content_is_rejected(self, service, content):
        incident = service.create_incident(title="Payments API 500s", severity="low")

        with pytest.raises(InvalidNoteError):
            service.add_note(incident.id, content)

        assert service.get_by_id(incident.id).notes == []

    def test_boundary_content_is_accepted(self, service):
        incident = service.create_incident(title="Payments API 500s", severity="low")

        updated = service.add_note(incident.id, "x" * 1000)

        assert len(updated.notes[0].content) == 1000

    def test_missing_incident(self, service, publisher):
        with pytest.raises(IncidentNotFoundError):
            service.add_note("missing", "content")

        assert publisher.of_type("incident.notes.added") == []


class TestAddWatcher:

    def test_adding_twice_keeps_one_entry(self, service, publisher):
        incident = service.create_incident(title="Payments API 500s", severity="low")
        publisher.events.clear()

        service.add_watcher(incident.id, "a@b.com")
        updated = service.add_watcher(incident.id, "a@b.com")

        assert [watcher.email for watcher in updated.watchlist] == ["a@b.com"]
        assert publisher.events == []

    def test_invalid_email_is_rejected(self, service):
        incident = service.create_incident(title="Payments API 500s", severity="low")

        with pytest.raises(InvalidEmailError):
            service.add_watcher(incident.id, "not-an-email")

    def test_missing_incident(self, service):
        with pytest.raises(IncidentNotFoundError):
            service.add_watcher("missing", "a@b.com")


class TestEventFailures:
    """Publishing failures never fail the operation."""

    @pytest.mark.parametrize("policy", [EventFailurePolicy.LOG, EventFailurePolicy.IGNORE])
    def test_publish_failure_does_not_fail_create(self, repository, policy):
        # Arrange
        publisher = Mock()
        publisher.publish.side_effect = EventPublishError("broker down")
        service = IncidentService(repository, publisher, failure_policy=policy)

        # Act
        incident = service.create_incident(title="Payments API 500s", severity="low")

        # Assert
        publisher.publish.assert_called_once()
        assert service.get_by_id(incident.id).title == "Payments API 500s"

    def test_publish_failure_does_not_fail_status_update(self, repository):
        publisher = Mock()
        publisher.publish.side_effect = RuntimeError("unexpected")
        service = IncidentService(repository, publisher)
        incident = service.create_incident(title="Payments API 500s", severity="low")

        updated = service.update_status(incident.id, "resolved")

        assert updated.status is IncidentStatus.RESOLVED
        assert isinstance(publisher.publish.call_args[0][0], IncidentStatusUpdated)

    def test_event_types_per_operation(self, service, publisher):
        incident = service.create_incident(title="Payments API 500s", severity="low")
        service.update_status(incident.id, "in_progress")
        service.update_severity(incident.id, "high")
        service.add_note(incident.id, "Mitigated")
        service.add_watcher(incident.id, "a@b.com")

        assert [type(event) for event in publisher.events] == [
            IncidentCreated,
            IncidentStatusUpdated,
            IncidentSeverityUpdated,
            IncidentNoteAdded,
        ]
        assert len({event.event_key for event in publisher.events}) == 4
