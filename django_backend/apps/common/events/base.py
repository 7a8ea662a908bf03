import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from django.utils.module_loading import import_string

EVENT_SOURCE = "tasktracker"

PUBLISHER_BACKENDS = {
    "kafka": "apps.common.events.kafka_publisher.KafkaEventPublisher",
    "memory": "apps.common.events.memory_publisher.MemoryEventPublisher",
}


class EventPayload:
    """
    Envelope for one domain event.

    ``event_id`` lets consumers drop redelivered messages; ``data`` holds the
    event-specific body.
    """

    def __init__(self, event_type: str, user_id: Optional[int], timestamp: datetime = None,
                 data: Dict[str, Any] = None, metadata: Dict[str, Any] = None,
                 event_id: str = None):
        self.event_id = event_id or uuid.uuid4().hex
        self.event_type = event_type
        self.user_id = user_id
        self.timestamp = timestamp or datetime.now(timezone.utc)
        self.data = data or {}
        self.metadata = metadata or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'event_id': self.event_id,
            'event_type': self.event_type,
            'source': EVENT_SOURCE,
            'user_id': self.user_id,
            'timestamp': self.timestamp.isoformat(),
            'data': self.data,
            'metadata': self.metadata,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "EventPayload":
        return cls(
            event_type=raw['event_type'],
            user_id=raw.get('user_id'),
            timestamp=datetime.fromisoformat(raw['timestamp']) if raw.get('timestamp') else None,
            data=raw.get('data'),
            metadata=raw.get('metadata'),
            event_id=raw.get('event_id'),
        )


class EventPublisher(ABC):
    """Transport for task events"""

    @abstractmethod
    def publish(self, topic: str, event: EventPayload, key: str = None) -> bool:
        """
        Send ``event`` to ``topic``.

        Args:
            topic: destination topic
            event: event envelope
            key: partition key; events sharing a key keep their order

        Returns:
            bool: True once the backend accepted the event
        """

    @abstractmethod
    def close(self):
        """Release the backend connection"""


class EventPublisherFactory:
    """Process-wide publisher chosen by the EVENT_PUBLISHER_TYPE setting"""

    _publisher = None

    @classmethod
    def get_publisher(cls) -> EventPublisher:
        if cls._publisher is None:
            from django.conf import settings

            backend = getattr(settings, 'EVENT_PUBLISHER_TYPE', 'kafka')
            if backend not in PUBLISHER_BACKENDS:
                raise ValueError(f"Unknown event publisher type: {backend}")
            cls._publisher = import_string(PUBLISHER_BACKENDS[backend])()

        return cls._publisher

    @classmethod
    def reset_publisher(cls):
        """Close and forget the current publisher"""
        if cls._publisher:
            cls._publisher.close()
            cls._publisher = None
