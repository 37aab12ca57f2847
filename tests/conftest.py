"""
Shared fixtures: an in-memory SQLite store and a recording event publisher.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("EVENT_PUBLISHER", "null")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from anchor_incidents.models import Base
from anchor_incidents.services.event_publisher import EventPublisher
from anchor_incidents.services.incident_repository import IncidentRepository
from anchor_incidents.services.incident_service import IncidentService


class RecordingPublisher(EventPublisher):
    """Keeps published events in memory."""

    def __init__(self):
        self.events = []

    def publish(self, event):
        self.events.append(event)

    def of_type(self, event_type):
        return [event for event in self.events if event.event_type == event_type]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def repository(db_session):
    return IncidentRepository(db_session)


@pytest.fixture
def service(repository, publisher):
    return IncidentService(repository, publisher)
