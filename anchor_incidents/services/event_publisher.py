"""
Event publishing for incident domain events.

This module provides the publisher interface used by the lifecycle manager,
a no-op publisher (the default), and a kombu-backed publisher that sends
each event to a topic exchange on the configured broker.
"""

from enum import Enum
from typing import Any, Dict, Optional

from kombu import Connection, Exchange
from kombu.exceptions import KombuError

from anchor_incidents.config.app_config import get_event_config
from anchor_incidents.models.events import IncidentEvent
from anchor_incidents.utils.logging import get_logger

logger = get_logger(__name__)


class EventPublishError(Exception):
    """Exception raised for event delivery failures."""
    pass


class EventFailurePolicy(str, Enum):
    """
    What the lifecycle manager does when publishing fails.

    Neither policy fails or rolls back the operation that emitted the event.
    """
    LOG = "log"
    IGNORE = "ignore"


class EventPublisher:
    """Interface for event publishers."""

    def publish(self, event: IncidentEvent) -> None:
        """
        Publish a single event.

        Raises:
            EventPublishError: If the event could not be handed to the broker
        """
        raise NotImplementedError


class NullEventPublisher(EventPublisher):
    """Accepts every event and drops it after logging."""

    def publish(self, event: IncidentEvent) -> None:
        logger.debug(
            "incident_event_discarded",
            topic=event.topic,
            event_type=event.event_type,
            event_key=event.event_key,
        )


class KombuEventPublisher(EventPublisher):
    """
    Publishes events to a kombu topic exchange.

    The exchange is named after the event topic and the routing key is the
    event type, so consumers can bind e.g. `incident.status.*`.
    """

    def __init__(
        self,
        broker_url: Optional[str] = None,
        connection: Optional[Connection] = None,
        declare_exchange: bool = True
    ):
        """
        Initialize kombu publisher.

        Args:
            broker_url: Broker connection URL (defaults to env EVENT_BROKER_URL)
            connection: Optional pre-built kombu connection
            declare_exchange: Declare the exchange before publishing
        """
        self.broker_url = broker_url or get_event_config()["broker_url"]
        self.connection = connection or Connection(self.broker_url)
        self.declare_exchange = declare_exchange
        self._exchanges: Dict[str, Exchange] = {}

    def _exchange(self, topic: str) -> Exchange:
        if topic not in self._exchanges:
            self._exchanges[topic] = Exchange(topic, type="topic", durable=True)
        return self._exchanges[topic]

    def publish(self, event: IncidentEvent) -> None:
        exchange = self._exchange(event.topic)
        errors = (
            (KombuError, OSError)
            + tuple(self.connection.connection_errors)
            + tuple(self.connection.channel_errors)
        )
        try:
            with self.connection.Producer() as producer:
                producer.publish(
                    event.payload(),
                    exchange=exchange,
                    routing_key=event.event_type,
                    content_type="application/json",
                    content_encoding="utf-8",
                    declare=[exchange] if self.declare_exchange else [],
                    headers={"event_key": event.event_key, "version": event.version},
                )
        except errors as e:
            logger.error("incident_event_publish_failed", event_type=event.event_type, error=str(e))
            raise EventPublishError(f"Event delivery failed: {str(e)}") from e

        logger.info(
            "incident_event_published",
            topic=event.topic,
            event_type=event.event_type,
            event_key=event.event_key,
        )

    def close(self) -> None:
        self.connection.release()


def parse_failure_policy(value: Optional[str]) -> EventFailurePolicy:
    try:
        return EventFailurePolicy((value or EventFailurePolicy.LOG.value).lower())
    except ValueError:
        logger.warning("event_failure_policy_unknown", value=value, fallback=EventFailurePolicy.LOG.value)
        return EventFailurePolicy.LOG


def build_event_publisher(config: Optional[Dict[str, Any]] = None) -> EventPublisher:
    """
    Build the publisher selected by configuration.

    Args:
        config: Event config (defaults to get_event_config())

    Returns:
        EventPublisher: NullEventPublisher or KombuEventPublisher
    """
    config = config or get_event_config()
    kind = config.get("publisher", "null")

    if kind == "kombu":
        logger.info("event_publisher_configured", publisher="kombu")
        return KombuEventPublisher(
            broker_url=config.get("broker_url"),
            declare_exchange=config.get("declare_exchange", True),
        )

    if kind != "null":
        logger.warning("event_publisher_unknown", publisher=kind, fallback="null")
    return NullEventPublisher()
