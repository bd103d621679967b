"""In-process event bus.

A closed set of topics, each with one frozen payload dataclass, so
publishers and subscribers agree on shape at import time rather than at
runtime. Delivery is fire-and-forget: ``publish()`` enqueues and returns,
a single dispatcher thread calls subscribers, and a failing subscriber is
logged without affecting the others or the publisher.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class Topic(str, Enum):
    HYBRID_LEARNING_COMPLETE = "hybrid_learning_complete"
    DOMAIN_MASTERED = "domain_mastered"
    AUTONOMOUS_THOUGHT = "autonomousThought"
    AUTONOMOUS_DECISION = "autonomousDecision"
    GLOBAL_AUTONOMY_INCREASED = "global_autonomy_increased"
    CORE_STARTED = "core_started"
    CORE_STOPPED = "core_stopped"


# =============================================================================
# PAYLOADS
# =============================================================================


@dataclass(frozen=True)
class HybridLearningComplete:
    topic: ClassVar[Topic] = Topic.HYBRID_LEARNING_COMPLETE

    interaction_id: str
    domain: str
    autonomy_used: float
    processing_time_ms: float
    learning_gained: float


@dataclass(frozen=True)
class DomainMastered:
    topic: ClassVar[Topic] = Topic.DOMAIN_MASTERED

    domain: str
    mastery_level: float
    total_mastered_domains: int


@dataclass(frozen=True)
class AutonomousThought:
    topic: ClassVar[Topic] = Topic.AUTONOMOUS_THOUGHT

    strategy: str
    confidence: float
    priority: float
    reasoning: str


@dataclass(frozen=True)
class AutonomousDecision:
    topic: ClassVar[Topic] = Topic.AUTONOMOUS_DECISION

    decision: str
    confidence: float
    strategy: str


@dataclass(frozen=True)
class GlobalAutonomyIncreased:
    topic: ClassVar[Topic] = Topic.GLOBAL_AUTONOMY_INCREASED

    previous_autonomy: float
    new_autonomy: float
    increment: float
    trigger: str


@dataclass(frozen=True)
class CoreStarted:
    topic: ClassVar[Topic] = Topic.CORE_STARTED

    core_id: str
    local_autonomy: float
    cloud_dependency: float
    mastered_domains: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CoreStopped:
    topic: ClassVar[Topic] = Topic.CORE_STOPPED

    core_id: str
    uptime_seconds: float


_PAYLOAD_TYPES = (
    HybridLearningComplete,
    DomainMastered,
    AutonomousThought,
    AutonomousDecision,
    GlobalAutonomyIncreased,
    CoreStarted,
    CoreStopped,
)

Handler = Callable[[Any], None]


def event_to_dict(event: Any) -> Dict[str, Any]:
    """Serialize a payload for observers that want plain dicts."""
    data = asdict(event)
    data["topic"] = event.topic.value
    return data


# =============================================================================
# BUS
# =============================================================================

_STOP = object()


class EventBus:
    """Typed publish/subscribe channel.

    Args:
        synchronous: Deliver inside ``publish()`` instead of on the
            dispatcher thread. Subscriber errors are still isolated.
    """

    def __init__(self, synchronous: bool = False) -> None:
        self._synchronous = synchronous
        self._subscribers: Dict[Topic, List[Handler]] = {topic: [] for topic in Topic}
        self._lock = threading.Lock()
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._pending = 0
        self._idle = threading.Condition()
        self._worker: Optional[threading.Thread] = None
        self._closed = False

    # ---- Subscription ----

    def subscribe(self, topic: Topic, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for ``topic``. Returns an unsubscribe callable."""
        topic = Topic(topic)
        with self._lock:
            self._subscribers[topic].append(handler)

        def _unsubscribe() -> None:
            with self._lock:
                handlers = self._subscribers[topic]
                if handler in handlers:
                    handlers.remove(handler)

        return _unsubscribe

    def subscriber_count(self, topic: Topic) -> int:
        with self._lock:
            return len(self._subscribers[Topic(topic)])

    # ---- Publishing ----

    def publish(self, event: Any) -> None:
        """Broadcast ``event`` to subscribers of its topic.

        Raises TypeError for objects outside the closed payload set.
        Events published after ``close()`` are dropped.
        """
        if not isinstance(event, _PAYLOAD_TYPES):
            raise TypeError(f"Unsupported event payload: {type(event).__name__}")

        if self._synchronous:
            if self._closed:
                logger.debug("Event bus closed, dropping %s", event.topic.value)
                return
            self._deliver(event)
            return

        # The closed check and the enqueue are atomic with respect to close()
        with self._idle:
            if self._closed:
                logger.debug("Event bus closed, dropping %s", event.topic.value)
                return
            self._ensure_worker()
            self._pending += 1
            self._queue.put(event)

    def drain(self, timeout: float = 5.0) -> bool:
        """Wait until every queued event has been delivered.

        Returns False if the timeout elapsed first.
        """
        deadline = time.monotonic() + timeout
        with self._idle:
            while self._pending:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._idle.wait(remaining)
        return True

    def close(self, timeout: float = 5.0) -> None:
        """Deliver what is queued, then stop the dispatcher thread."""
        if self._closed:
            return
        self.drain(timeout)
        with self._idle:
            if self._closed:
                return
            self._closed = True
            worker = self._worker
            if worker is not None:
                self._queue.put(_STOP)
        if worker is not None:
            worker.join(timeout)

    # ---- Internal ----

    def _ensure_worker(self) -> None:
        with self._lock:
            if self._worker is not None and self._worker.is_alive():
                return
            self._worker = threading.Thread(
                target=self._run, name="autonome-event-bus", daemon=True
            )
            self._worker.start()

    def _run(self) -> None:
        while True:
            event = self._queue.get()
            if event is _STOP:
                return
            try:
                self._deliver(event)
            finally:
                with self._idle:
                    self._pending -= 1
                    if self._pending == 0:
                        self._idle.notify_all()

    def _deliver(self, event: Any) -> None:
        with self._lock:
            handlers = list(self._subscribers[event.topic])
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception("Subscriber for %s failed", event.topic.value)
