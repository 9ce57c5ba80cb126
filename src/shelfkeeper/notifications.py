# ABOUTME: Fire-and-forget progress notifications published by refresh jobs.
# ABOUTME: An in-process event bus fans payloads out to subscribers such as the CLI progress bar.

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

BATCH_PROGRESS_TOPIC = "metadata.batch.progress"


@dataclass(frozen=True)
class BatchProgress:
    """One progress update for a refresh job."""

    job_id: str | None
    current: int
    total: int
    message: str
    status: str
    review_mode: bool = False


@runtime_checkable
class Notifier(Protocol):
    """Publishes a payload on a topic. Delivery is best effort."""

    def publish(self, topic: str, payload: Any) -> None: ...


Subscriber = Callable[[str, Any], None]


class EventBus:
    """Synchronous in-process publish/subscribe.

    Subscriber exceptions are logged and never reach the publisher.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Subscriber]] = {}
        self._lock = threading.Lock()

    def subscribe(self, topic: str, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscribers.setdefault(topic, []).append(subscriber)

    def unsubscribe(self, topic: str, subscriber: Subscriber) -> None:
        with self._lock:
            handlers = self._subscribers.get(topic, [])
            if subscriber in handlers:
                handlers.remove(subscriber)

    def publish(self, topic: str, payload: Any) -> None:
        with self._lock:
            handlers = list(self._subscribers.get(topic, []))
        for handler in handlers:
            try:
                handler(topic, payload)
            except Exception:
                logger.exception("Subscriber failed on topic %s", topic)

