"""
Pytest fixtures and test configuration for autonome tests.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from autonome.autonomy import AutonomyController
from autonome.config import Settings, get_settings
from autonome.core import AutonomyCore
from autonome.decision import DecisionEngine
from autonome.dispatcher import HybridDispatcher
from autonome.events import EventBus, Topic
from autonome.maintenance import MaintenanceJobs
from autonome.mastery import MasteryTracker
from autonome.protocols import ProviderResponse
from autonome.storage import Ledger
from autonome.types import (
    Interaction,
    InteractionType,
    LearningAttempt,
    MemoryRecord,
    TelemetrySample,
)


@pytest.fixture(autouse=True)
def autonome_home(tmp_path, monkeypatch):
    """Point AUTONOME_DATA_DIR at a temp dir so logs and ledgers never touch ~."""
    home = tmp_path / "home"
    monkeypatch.setenv("AUTONOME_DATA_DIR", str(home))
    for var in (
        "AUTONOME_PROVIDER",
        "AUTONOME_MODEL",
        "AUTONOME_CORE_ID",
        "ANTHROPIC_API_KEY",
        "CLAUDE_API_KEY",
        "OPENAI_API_KEY",
    ):
        monkeypatch.delenv(var, raising=False)
    get_settings.cache_clear()
    yield home
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def clean_autonome_logger():
    """Remove handlers added by setup_autonome_logging between tests."""
    logger = logging.getLogger("autonome")
    logger.handlers.clear()
    yield
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


class FakeProvider:
    """CloudReasoningProvider double with scripted answers."""

    def __init__(
        self,
        confidence: float = 0.9,
        learning_gained: float = 0.5,
        content: str = "Covalent bonds share electron pairs between atoms.",
        error: Optional[Exception] = None,
        model_id: str = "fake-model",
    ):
        self.confidence = confidence
        self.learning_gained = learning_gained
        self.content = content
        self.error = error
        self.model_id = model_id
        self.calls: List[Dict[str, Any]] = []

    def respond(self, domain, query, context=None):
        self.calls.append({"domain": domain, "query": query, "context": context})
        if self.error is not None:
            raise self.error
        return ProviderResponse(
            content=self.content,
            confidence=self.confidence,
            learning_gained=self.learning_gained,
            model_id=self.model_id,
        )


def make_sample(**overrides) -> TelemetrySample:
    """A fixed telemetry sample; strategy ADAPT, heap well under threshold."""
    values = dict(
        heap_used=100_000_000,
        heap_total=16 * 1024**3,
        cpu_time_user_us=1_000_000,
        load_avg_1m=0.5,
        thread_count=4,
        process_count=100,
        memory_percent=40.0,
        uptime_seconds=3600.0,
    )
    values.update(overrides)
    return TelemetrySample(**values)


def seed_attempts(
    ledger: Ledger,
    domain: str,
    count: int,
    mastery: float,
    success_rate: float,
    age_days: float = 0,
) -> None:
    """Append ``count`` learning attempts with fixed mastery and success rate."""
    base = datetime.now(timezone.utc) - timedelta(days=age_days)
    for i in range(count):
        ledger.append_learning_attempt(
            LearningAttempt(
                id=str(uuid.uuid4()),
                domain=domain,
                query=f"question {i}",
                cloud_response=f"answer {i}",
                success_rate=success_rate,
                mastery_level=mastery,
                attempts=i + 1,
                last_attempt=base - timedelta(seconds=count - i),
            )
        )


def seed_memory(ledger: Ledger, domain: str, **overrides) -> MemoryRecord:
    values = dict(
        id=str(uuid.uuid4()),
        domain=domain,
        content=f"Fact about {domain}",
        importance=0.5,
        confidence=0.8,
        created_at=datetime.now(timezone.utc),
    )
    values.update(overrides)
    record = MemoryRecord(**values)
    ledger.append_memory(record)
    return record


def seed_interaction(ledger: Ledger, domain: str, **overrides) -> Interaction:
    values = dict(
        id=str(uuid.uuid4()),
        type=InteractionType.CLOUD_ASSISTED,
        domain=domain,
        input_payload={"query": "q"},
        output_payload={"content": "a"},
        confidence=0.8,
        learning_gained=0.4,
        autonomy_used=0.0,
        timestamp=datetime.now(timezone.utc),
        success=True,
    )
    values.update(overrides)
    interaction = Interaction(**values)
    ledger.append_interaction(interaction)
    return interaction


@pytest.fixture
def settings(tmp_path):
    """Settings rooted in a temp dir, with timers slow enough to never fire in tests."""
    return Settings(
        _env_file=None,
        data_dir=tmp_path / "data",
        decision_interval_seconds=3600,
        prune_interval_seconds=3600,
        recalibrate_interval_seconds=3600,
        evolve_interval_seconds=3600,
        shutdown_grace_seconds=2,
    )


@pytest.fixture
def ledger(settings):
    ledger = Ledger(settings.resolved_db_path)
    yield ledger
    ledger.close()


@pytest.fixture
def bus():
    """Synchronous bus so assertions can run right after publish."""
    return EventBus(synchronous=True)


@pytest.fixture
def recorded_events(bus):
    """Every event published on ``bus``, in order."""
    events: List[Any] = []
    for topic in Topic:
        bus.subscribe(topic, events.append)
    return events


@pytest.fixture
def controller(ledger, bus, settings):
    return AutonomyController(ledger, bus, settings, core_id="test")


@pytest.fixture
def tracker(ledger, settings):
    return MasteryTracker(ledger, settings)


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def dispatcher(ledger, tracker, controller, bus, provider, settings):
    return HybridDispatcher(
        ledger, tracker, controller, bus, provider=provider, settings=settings, core_id="test"
    )


@pytest.fixture
def sample():
    return make_sample()


@pytest.fixture
def engine(ledger, bus, settings, sample):
    return DecisionEngine(ledger, bus, settings, core_id="test", sampler=lambda: sample)


@pytest.fixture
def maintenance(ledger, controller, settings):
    return MaintenanceJobs(ledger, controller, settings, core_id="test")


@pytest.fixture
def core(settings, provider, bus):
    core = AutonomyCore(settings, provider=provider, bus=bus, sampler=make_sample)
    yield core
    core.shutdown(grace=1)


# Factory fixtures


@pytest.fixture
def make_telemetry():
    return make_sample


@pytest.fixture
def fake_provider_cls():
    return FakeProvider


@pytest.fixture
def add_attempts(ledger):
    def _add(domain, count, mastery, success_rate, age_days=0):
        seed_attempts(ledger, domain, count, mastery, success_rate, age_days=age_days)

    return _add


@pytest.fixture
def add_memory(ledger):
    def _add(domain, **overrides):
        return seed_memory(ledger, domain, **overrides)

    return _add


@pytest.fixture
def add_interaction(ledger):
    def _add(domain, **overrides):
        return seed_interaction(ledger, domain, **overrides)

    return _add
