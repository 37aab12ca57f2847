"""
Incident store adapter.

This repository wraps a SQLAlchemy session and exposes the document-style
operations the lifecycle manager relies on: insert, update returning the
post-update incident, sorted listing, and lookup by storage id or by
incident key.
"""

from contextlib import contextmanager
from typing import Iterator, List, Optional

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from anchor_incidents.models.incident import (
    Incident,
    IncidentNote,
    IncidentWatcher,
    IncidentKeySequence,
    IncidentSeverity,
    IncidentStatus,
    utcnow,
)
from anchor_incidents.services.errors import IncidentNotFoundError, PersistenceError
from anchor_incidents.utils.logging import get_logger

logger = get_logger(__name__)

INCIDENT_KEY_SEQUENCE = "incidents"


class IncidentRepository:
    """Store adapter for incidents."""

    def __init__(self, db_session: Session):
        """
        Initialize incident repository.

        Args:
            db_session: SQLAlchemy database session
        """
        self.db = db_session

    @contextmanager
    def _store_operation(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("incident_store_operation_failed", operation=operation, error=str(e))
            raise PersistenceError(f"failed to {operation}: {e}") from e

    def next_incident_key(self) -> int:
        """
        Reserve the next incident key.

        The counter row is incremented in the caller's open transaction, so
        the row stays locked until `create` commits or rolls back. The first
        call seeds the counter from the highest existing key.

        Returns:
            int: Reserved key (1 on an empty store)

        Raises:
            PersistenceError: If the counter cannot be read or written
        """
        with self._store_operation("generate incident key"):
            result = self.db.execute(
                update(IncidentKeySequence)
                .where(IncidentKeySequence.name == INCIDENT_KEY_SEQUENCE)
                .values(value=IncidentKeySequence.value + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount:
                return self.db.execute(
                    select(IncidentKeySequence.value)
                    .where(IncidentKeySequence.name == INCIDENT_KEY_SEQUENCE)
                ).scalar_one()

            current_max = self.db.execute(select(func.max(Incident.incident_key))).scalar() or 0
            self.db.add(IncidentKeySequence(name=INCIDENT_KEY_SEQUENCE, value=current_max + 1))
            self.db.flush()
            return current_max + 1

    def create(self, incident: Incident) -> Incident:
        """
        Insert a new incident.

        Sets `id`, `created_at` and `updated_at` (equal at creation) and the
        position of any notes supplied with it.

        Returns:
            Incident: Persisted incident

        Raises:
            PersistenceError: If the insert fails (including a duplicate key)
        """
        now = utcnow()
        incident.created_at = now
        incident.updated_at = now
        for position, note in enumerate(incident.notes):
            note.position = position

        with self._store_operation("create incident"):
            self.db.add(incident)
            self.db.commit()
            self.db.refresh(incident)
        return incident

    def get_by_id(self, incident_id: str) -> Optional[Incident]:
        with self._store_operation("get incident"):
            return self.db.get(Incident, incident_id)

    def get_by_key(self, incident_key: int) -> Optional[Incident]:
        with self._store_operation("get incident"):
            return self.db.execute(
                select(Incident).where(Incident.incident_key == incident_key)
            ).scalar_one_or_none()

    def list_all(self) -> List[Incident]:
        """
        Get all incidents, newest first.

        Returns:
            List[Incident]: Incidents ordered by created_at descending
        """
        with self._store_operation("get incidents"):
            return list(
                self.db.execute(
                    select(Incident).order_by(Incident.created_at.desc(), Incident.incident_key.desc())
                ).scalars().all()
            )

    def _require(self, incident_id: str) -> Incident:
        incident = self.db.get(Incident, incident_id)
        if incident is None:
            raise IncidentNotFoundError(incident_id)
        return incident

    def update_status(self, incident_id: str, status: IncidentStatus) -> Incident:
        """
        Set status and refresh updated_at.

        Raises:
            IncidentNotFoundError: If the incident does not exist
            PersistenceError: If the update fails
        """
        with self._store_operation("update incident status"):
            incident = self._require(incident_id)
            incident.status = status
            incident.updated_at = utcnow()
            self.db.commit()
            self.db.refresh(incident)
        return incident

    def update_severity(self, incident_id: str, severity: IncidentSeverity) -> Incident:
        with self._store_operation("update incident severity"):
            incident = self._require(incident_id)
            incident.severity = severity
            incident.updated_at = utcnow()
            self.db.commit()
            self.db.refresh(incident)
        return incident

    def add_note(self, incident_id: str, note: IncidentNote) -> Incident:
        """
        Append a note to the end of the incident's note sequence.

        Raises:
            IncidentNotFoundError: If the incident does not exist
            PersistenceError: If the update fails
        """
        with self._store_operation("add note to incident"):
            incident = self._require(incident_id)
            note.position = len(incident.notes)
            incident.notes.append(note)
            incident.updated_at = utcnow()
            self.db.commit()
            self.db.refresh(incident)
        return incident

    def add_watcher(self, incident_id: str, email: str) -> Incident:
        """
        Add an email to the watch list with set semantics.

        An email already on the list is left as is; updated_at is still
        refreshed.

        Raises:
            IncidentNotFoundError: If the incident does not exist
            PersistenceError: If the update fails
        """
        with self._store_operation("add watcher to incident"):
            incident = self._require(incident_id)
            if not incident.has_watcher(email):
                incident.watchlist.append(IncidentWatcher(email=email))
            incident.updated_at = utcnow()
            try:
                self.db.commit()
            except IntegrityError:
                # Same email inserted concurrently; the set already holds it.
                self.db.rollback()
                logger.info("incident_watcher_already_present", incident_id=incident_id, email=email)
                incident = self._require(incident_id)
            self.db.refresh(incident)
        return incident
