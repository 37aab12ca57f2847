"""
Incident SQLAlchemy models: the incident aggregate, its notes and watchers,
and the key sequence used to hand out human-facing incident keys.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import List, Optional

from sqlalchemy import String, DateTime, Text, Enum, Integer, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from anchor_incidents.models.base import Base


def new_object_id() -> str:
    """Generate an opaque storage identifier."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


INCIDENT_KEY_MAX = 2**31 - 1


def _enum_values(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


class IncidentSeverity(str, PyEnum):
    """Enum for incident severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class IncidentStatus(str, PyEnum):
    """Enum for incident status."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class NoteType(str, PyEnum):
    """Enum for note types."""
    UPDATE = "update"
    INVESTIGATION = "investigation"
    RESOLUTION = "resolution"
    COMMUNICATION = "communication"


class Incident(Base):
    """
    Incident aggregate root.

    `id` is assigned by the store at creation; `incident_key` is the
    human-facing sequence number and is unique across all incidents.
    """

    __tablename__ = "incidents"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_object_id)
    incident_key: Mapped[int] = mapped_column(Integer, nullable=False, unique=True, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    severity: Mapped[IncidentSeverity] = mapped_column(
        Enum(IncidentSeverity, name="incident_severity", native_enum=False, values_callable=_enum_values),
        nullable=False,
    )
    status: Mapped[IncidentStatus] = mapped_column(
        Enum(IncidentStatus, name="incident_status", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=IncidentStatus.OPEN,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    created_by: Mapped[str] = mapped_column(String(320), nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    assignee: Mapped[str] = mapped_column(String(320), nullable=False, default="")

    notes: Mapped[List["IncidentNote"]] = relationship(
        back_populates="incident",
        order_by="IncidentNote.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    watchlist: Mapped[List["IncidentWatcher"]] = relationship(
        back_populates="incident",
        order_by="IncidentWatcher.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_incidents_created_at", "created_at"),
    )

    def has_watcher(self, email: str) -> bool:
        return any(watcher.email == email for watcher in self.watchlist)

    def __repr__(self) -> str:
        """String representation of Incident."""
        return (
            f"<Incident(id={self.id}, key={self.incident_key}, title={self.title}, "
            f"severity={self.severity}, status={self.status})>"
        )


class IncidentNote(Base):
    """Note attached to an incident. Append-only, ordered by position."""

    __tablename__ = "incident_notes"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_object_id)
    incident_id: Mapped[str] = mapped_column(String(32), ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    author_email: Mapped[str] = mapped_column(String(320), nullable=False, default="")
    type: Mapped[NoteType] = mapped_column(
        Enum(NoteType, name="note_type", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=NoteType.UPDATE,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    incident: Mapped[Incident] = relationship(back_populates="notes")

    __table_args__ = (
        UniqueConstraint("incident_id", "position", name="uq_incident_notes_position"),
    )

    def __repr__(self) -> str:
        return f"<IncidentNote(id={self.id}, incident_id={self.incident_id}, type={self.type})>"


class IncidentWatcher(Base):
    """Watcher subscription. One row per (incident, email)."""

    __tablename__ = "incident_watchers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    incident_id: Mapped[str] = mapped_column(String(32), ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)

    incident: Mapped[Incident] = relationship(back_populates="watchlist")

    __table_args__ = (
        UniqueConstraint("incident_id", "email", name="uq_incident_watchers_email"),
    )

    def __repr__(self) -> str:
        return f"<IncidentWatcher(incident_id={self.incident_id}, email={self.email})>"


class IncidentKeySequence(Base):
    """Named counter row; `value` is the last key handed out."""

    __tablename__ = "incident_key_sequences"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True, onupdate=utcnow)
