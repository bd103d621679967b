"""Tests for the in-process event bus."""

import threading
from dataclasses import FrozenInstanceError

import pytest

from autonome.events import (
    CoreStopped,
    DomainMastered,
    EventBus,
    HybridLearningComplete,
    Topic,
    event_to_dict,
)


def _mastered(domain="chemistry"):
    return DomainMastered(domain=domain, mastery_level=0.9, total_mastered_domains=1)


class TestSubscribe:
    def test_delivers_to_topic_subscribers_only(self):
        bus = EventBus(synchronous=True)
        mastered, stopped = [], []
        bus.subscribe(Topic.DOMAIN_MASTERED, mastered.append)
        bus.subscribe(Topic.CORE_STOPPED, stopped.append)

        bus.publish(_mastered())
        assert [e.domain for e in mastered] == ["chemistry"]
        assert stopped == []

    def test_subscribe_by_topic_name(self):
        bus = EventBus(synchronous=True)
        received = []
        bus.subscribe("domain_mastered", received.append)
        bus.publish(_mastered())
        assert len(received) == 1

    def test_unsubscribe(self):
        bus = EventBus(synchronous=True)
        received = []
        unsubscribe = bus.subscribe(Topic.DOMAIN_MASTERED, received.append)
        unsubscribe()
        bus.publish(_mastered())
        assert received == []
        assert bus.subscriber_count(Topic.DOMAIN_MASTERED) == 0

    def test_topic_names_are_stable(self):
        assert Topic.AUTONOMOUS_THOUGHT.value == "autonomousThought"
        assert Topic.AUTONOMOUS_DECISION.value == "autonomousDecision"
        assert Topic.HYBRID_LEARNING_COMPLETE.value == "hybrid_learning_complete"


class TestPublish:
    def test_rejects_unknown_payload(self):
        bus = EventBus(synchronous=True)
        with pytest.raises(TypeError):
            bus.publish({"topic": "domain_mastered"})

    def test_failing_subscriber_isolated(self, caplog):
        bus = EventBus(synchronous=True)
        received = []

        def broken(event):
            raise RuntimeError("observer crashed")

        bus.subscribe(Topic.DOMAIN_MASTERED, broken)
        bus.subscribe(Topic.DOMAIN_MASTERED, received.append)
        bus.publish(_mastered())

        assert len(received) == 1
        assert "Subscriber for domain_mastered failed" in caplog.text

    def test_async_delivery_preserves_order(self):
        bus = EventBus()
        received = []
        bus.subscribe(Topic.DOMAIN_MASTERED, lambda e: received.append(e.domain))
        for domain in ("a", "b", "c"):
            bus.publish(_mastered(domain))

        assert bus.drain(2.0)
        assert received == ["a", "b", "c"]
        bus.close()

    def test_publish_does_not_wait_for_subscribers(self):
        bus = EventBus()
        release = threading.Event()
        bus.subscribe(Topic.CORE_STOPPED, lambda e: release.wait(2.0))

        bus.publish(CoreStopped(core_id="c", uptime_seconds=1.0))
        # Publisher returned while the subscriber is still blocked
        assert bus.drain(0.05) is False
        release.set()
        assert bus.drain(2.0)
        bus.close()

    def test_events_after_close_dropped(self):
        bus = EventBus()
        received = []
        bus.subscribe(Topic.DOMAIN_MASTERED, received.append)
        bus.close()
        bus.publish(_mastered())
        assert received == []

    def test_publish_racing_close_leaves_nothing_pending(self):
        bus = EventBus()
        received = []
        bus.subscribe(Topic.DOMAIN_MASTERED, received.append)
        bus.publish(_mastered("warmup"))
        start = threading.Barrier(5)

        def publish_many():
            start.wait()
            for i in range(200):
                bus.publish(_mastered(f"d{i}"))

        publishers = [threading.Thread(target=publish_many) for _ in range(4)]
        for t in publishers:
            t.start()
        start.wait()
        bus.close(timeout=2.0)
        for t in publishers:
            t.join(timeout=5)

        # Every event accepted before close was delivered
        assert bus.drain(0.5) is True
        count = len(received)
        bus.publish(_mastered("late"))
        assert len(received) == count


class TestSerialization:
    def test_event_to_dict(self):
        event = HybridLearningComplete(
            interaction_id="i1",
            domain="chemistry",
            autonomy_used=0.0,
            processing_time_ms=12.5,
            learning_gained=0.5,
        )
        data = event_to_dict(event)
        assert data["topic"] == "hybrid_learning_complete"
        assert data["domain"] == "chemistry"

    def test_payloads_are_frozen(self):
        event = _mastered()
        with pytest.raises(FrozenInstanceError):
            event.domain = "physics"
