import json
import logging
from typing import Any, Dict, List, Optional

from django.conf import settings
from kafka import KafkaProducer

logger = logging.getLogger(__name__)

TASK_EVENTS_TOPIC = "task-events"

PRODUCER_DEFAULTS = {
    "client_id": "tasktracker",
    "acks": "all",
    "retries": 3,
    "retry_backoff_ms": 300,
    "request_timeout_ms": 30000,
    "linger_ms": 5,
}


def bootstrap_servers() -> List[str]:
    raw = getattr(settings, "KAFKA_BOOTSTRAP_SERVERS", "localhost:9092")
    return [s.strip() for s in raw.split(",") if s.strip()]


def encode_value(value: Dict[str, Any]) -> bytes:
    return json.dumps(value, default=str).encode("utf-8")


def encode_key(key: Optional[str]) -> Optional[bytes]:
    return key.encode("utf-8") if key else None


def producer_options() -> Dict[str, Any]:
    """Producer keyword arguments, with KAFKA_PRODUCER_OPTIONS overrides applied"""
    options = dict(PRODUCER_DEFAULTS)
    options.update(getattr(settings, "KAFKA_PRODUCER_OPTIONS", None) or {})
    options["bootstrap_servers"] = bootstrap_servers()
    options["value_serializer"] = encode_value
    options["key_serializer"] = encode_key
    return options


class KafkaConnection:
    """One lazily created producer shared by the process"""

    _producer = None

    @classmethod
    def get_producer(cls) -> Optional[KafkaProducer]:
        if cls._producer is None:
            try:
                cls._producer = KafkaProducer(**producer_options())
                logger.info(f"Kafka producer connected to {','.join(bootstrap_servers())}")
            except Exception as e:
                logger.error(f"Failed to initialize Kafka producer: {e}")
                cls._producer = None
        return cls._producer

    @classmethod
    def close_producer(cls):
        if cls._producer is not None:
            cls._producer.close()
            cls._producer = None
