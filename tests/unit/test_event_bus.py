# ABOUTME: Unit tests for the in-process event bus.
# ABOUTME: Validates topic routing, unsubscription, and isolation from failing subscribers.

from typing import Any

from shelfkeeper.notifications import BATCH_PROGRESS_TOPIC, BatchProgress, EventBus, Notifier


class TestEventBus:
    """Tests for EventBus."""

    def test_satisfies_notifier(self) -> None:
        assert isinstance(EventBus(), Notifier)

    def test_routes_by_topic(self) -> None:
        bus = EventBus()
        seen: list[tuple[str, Any]] = []
        bus.subscribe(BATCH_PROGRESS_TOPIC, lambda topic, payload: seen.append((topic, payload)))

        progress = BatchProgress(job_id="j", current=1, total=2, message="x", status="IN_PROGRESS")
        bus.publish(BATCH_PROGRESS_TOPIC, progress)
        bus.publish("other", "ignored")

        assert seen == [(BATCH_PROGRESS_TOPIC, progress)]

    def test_unsubscribe(self) -> None:
        bus = EventBus()
        seen: list[Any] = []

        def handler(topic: str, payload: Any) -> None:
            seen.append(payload)

        bus.subscribe("t", handler)
        bus.unsubscribe("t", handler)
        bus.unsubscribe("t", handler)
        bus.publish("t", 1)
        assert seen == []

    def test_failing_subscriber_does_not_reach_publisher(self) -> None:
        bus = EventBus()
        seen: list[Any] = []

        def broken(topic: str, payload: Any) -> None:
            raise RuntimeError("subscriber bug")

        bus.subscribe("t", broken)
        bus.subscribe("t", lambda topic, payload: seen.append(payload))
        bus.publish("t", "hello")
        assert seen == ["hello"]

    def test_publish_without_subscribers(self) -> None:
        EventBus().publish("nobody", None)
