"""
autonome Core - hybrid learning and autonomous decisions.

This module provides AutonomyCore, the service object that owns the
ledger, event bus, autonomy controller, dispatcher, decision engine and
maintenance scheduler. Construct one per process and pass it around;
nothing here is a module-level singleton.
"""

import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from autonome.autonomy import AutonomyController
from autonome.config import Settings, get_settings
from autonome.decision import DecisionEngine
from autonome.dispatcher import DispatchResult, HybridDispatcher
from autonome.events import CoreStarted, CoreStopped, EventBus
from autonome.logging_config import log_core_event
from autonome.maintenance import MaintenanceJobs
from autonome.mastery import MasteryTracker
from autonome.protocols import AutonomeError, CloudReasoningProvider
from autonome.scheduler import Scheduler
from autonome.storage import Ledger
from autonome.telemetry import sample_telemetry
from autonome.types import Decision, DomainState, TelemetrySample

logger = logging.getLogger(__name__)

STATUS_WINDOW_DAYS = 7
MASTERY_BONUS = 0.05


def compute_autonomy_score(metrics: Dict[str, Any], mastered_count: int) -> float:
    """Share of recent work done without the cloud, plus a bonus per mastered domain.

    score = independent_ratio * 0.6 + insight_ratio * 0.4 + 0.05 * mastered, capped at 1.0
    where insight_ratio is the share of interactions that produced learning.
    """
    local = metrics.get("local_interactions", 0)
    cloud = metrics.get("cloud_interactions", 0)
    total = metrics.get("total_interactions", 0)
    independent_ratio = local / max(1, local + cloud)
    insight_ratio = metrics.get("successful_learnings", 0) / max(1, total)
    score = independent_ratio * 0.6 + insight_ratio * 0.4
    return min(1.0, score + mastered_count * MASTERY_BONUS)


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def validate_core_id(core_id: str) -> str:
    """Validate a core id and return it sanitized; it becomes a directory name."""
    if not core_id or not core_id.strip():
        raise ValueError("Core ID cannot be empty")
    stripped = core_id.strip()
    if "/" in stripped or "\\" in stripped:
        raise ValueError("Core ID must not contain path separators")
    if stripped in (".", "..") or ".." in stripped.split("."):
        raise ValueError("Core ID must not contain path traversal sequences")
    sanitized = "".join(c for c in stripped if c.isalnum() or c in "-_.")
    if not sanitized:
        raise ValueError("Core ID must contain alphanumeric characters")
    if len(sanitized) > 100:
        raise ValueError("Core ID too long (max 100 characters)")
    return sanitized


class AutonomyCore:
    """Main interface: serve queries, make decisions, report status.

    Examples:
        core = AutonomyCore(provider=auto_configure_provider())
        core.start()
        result = core.process_query("chemistry", "What is a covalent bond?")
        core.shutdown()

        # Or as a context manager
        with AutonomyCore(provider=provider) as core:
            core.make_decision()
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        provider: Optional[CloudReasoningProvider] = None,
        *,
        ledger: Optional[Ledger] = None,
        bus: Optional[EventBus] = None,
        sampler: Callable[[], TelemetrySample] = sample_telemetry,
    ):
        """Initialize the core.

        Args:
            settings: Configuration. Defaults to ``get_settings()``.
            provider: Cloud reasoning provider. Without one, queries for
                unmastered domains fail with ProviderError.
            ledger: Pre-built ledger. If None, one is opened at the
                configured path; failure raises LedgerError.
            bus: Event bus. If None, an asynchronous bus is created.
            sampler: Telemetry source for the decision engine.
        """
        self.settings = settings or get_settings()
        self.core_id = validate_core_id(self.settings.core_id)

        if ledger is None:
            db_path = self.settings.db_path or (
                self.settings.resolved_data_dir / self.core_id / "ledger.db"
            )
            ledger = Ledger(db_path)
        self.ledger = ledger
        self.bus = bus if bus is not None else EventBus()

        self.tracker = MasteryTracker(self.ledger, self.settings)
        self.controller = AutonomyController(
            self.ledger, self.bus, self.settings, core_id=self.core_id
        )
        self.dispatcher = HybridDispatcher(
            self.ledger,
            self.tracker,
            self.controller,
            self.bus,
            provider=provider,
            settings=self.settings,
            core_id=self.core_id,
        )
        self.decisions = DecisionEngine(
            self.ledger, self.bus, self.settings, core_id=self.core_id, sampler=sampler
        )
        self.maintenance = MaintenanceJobs(
            self.ledger, self.controller, self.settings, core_id=self.core_id
        )
        self.scheduler = Scheduler()

        self._started_at: Optional[float] = None
        self._stopped = False

        self.controller.restore()
        self.maintenance.restore()

        logger.debug(
            f"AutonomyCore initialized: core={self.core_id}, ledger={self.ledger.db_path}, "
            f"provider={type(provider).__name__ if provider else None}"
        )

    # ---- Lifecycle ----

    @property
    def running(self) -> bool:
        return self._started_at is not None and not self._stopped

    @property
    def uptime_seconds(self) -> float:
        if self._started_at is None:
            return 0.0
        return time.monotonic() - self._started_at

    def start(self) -> None:
        """Start the decision loop and the maintenance timers."""
        if self._stopped:
            raise AutonomeError("AutonomyCore has been shut down")
        if self._started_at is not None:
            return

        s = self.settings
        self.scheduler.add_job("decision_tick", s.decision_interval_seconds, self.decisions.tick)
        self.scheduler.add_job(
            "prune_memories", s.prune_interval_seconds, self.maintenance.prune_memories
        )
        self.scheduler.add_job(
            "recalibrate_learning_rate",
            s.recalibrate_interval_seconds,
            self.maintenance.recalibrate_learning_rate,
        )
        self.scheduler.add_job(
            "evolve_consciousness",
            s.evolve_interval_seconds,
            self.maintenance.evolve_consciousness,
        )
        self.scheduler.start()
        self._started_at = time.monotonic()

        snapshot = self.controller.snapshot()
        self.bus.publish(
            CoreStarted(
                core_id=self.core_id,
                local_autonomy=snapshot["local_autonomy"],
                cloud_dependency=snapshot["cloud_dependency"],
                mastered_domains=tuple(snapshot["mastered_domains"]),
            )
        )
        log_core_event(
            "start",
            f"local_autonomy={snapshot['local_autonomy']:.3f}, "
            f"mastered={len(snapshot['mastered_domains'])}",
            core_id=self.core_id,
        )
        logger.info(f"AutonomyCore {self.core_id} started")

    def shutdown(self, grace: Optional[float] = None) -> bool:
        """Stop timers, drain events, close the ledger.

        Pending timer runs are cancelled immediately; in-flight runs get up
        to ``grace`` seconds to finish. Returns True on a clean stop.
        Calling it again is a no-op.
        """
        if self._stopped:
            return True
        grace = self.settings.shutdown_grace_seconds if grace is None else grace
        deadline = time.monotonic() + grace
        self._stopped = True

        clean = self.scheduler.stop(grace)
        uptime = self.uptime_seconds
        self.bus.publish(CoreStopped(core_id=self.core_id, uptime_seconds=uptime))
        remaining = max(0.0, deadline - time.monotonic())
        if not self.bus.drain(remaining):
            clean = False
            logger.warning("Event bus did not drain within the grace period")
        self.bus.close(timeout=max(0.0, deadline - time.monotonic()))
        self.ledger.close()

        log_core_event("stop", f"uptime={uptime:.1f}s, clean={clean}", core_id=self.core_id)
        logger.info(f"AutonomyCore {self.core_id} stopped (clean={clean})")
        return clean

    def __enter__(self) -> "AutonomyCore":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    # ---- Operations ----

    def _ensure_open(self) -> None:
        if self._stopped:
            raise AutonomeError("AutonomyCore has been shut down")

    def process_query(
        self, domain: str, query: str, context: Optional[Dict[str, Any]] = None
    ) -> DispatchResult:
        """Answer a query, locally if the domain is mastered, else via the provider."""
        self._ensure_open()
        return self.dispatcher.dispatch(domain, query, context)

    def make_decision(self, context: Optional[Dict[str, Any]] = None) -> Decision:
        self._ensure_open()
        return self.decisions.make_autonomous_decision(context)

    def record_decision_outcome(self, decision_id: str, success: bool) -> bool:
        """Entry point for the out-of-band evaluator."""
        self._ensure_open()
        return self.ledger.record_decision_outcome(decision_id, success)

    def domain_state(self, domain: str) -> DomainState:
        return self.dispatcher.domain_state(domain)

    # ---- Status ----

    def get_status(self) -> Dict[str, Any]:
        """Snapshot of everything an operator would want to see."""
        self._ensure_open()
        counts = self.ledger.count_records()
        metrics = self.ledger.query_aggregate_metrics(window_days=STATUS_WINDOW_DAYS)
        autonomy = self.controller.snapshot()
        consciousness = self.maintenance.consciousness
        mastered: List[str] = autonomy["mastered_domains"]

        return {
            "core_id": self.core_id,
            "running": self.running,
            "uptime_seconds": self.uptime_seconds,
            "memories": counts["memories"],
            "learning_attempts": counts["learning_attempts"],
            "mastered_domains": len(mastered),
            "mastered_domain_names": mastered,
            "interactions": counts["interactions"],
            "local_autonomy": autonomy["local_autonomy"],
            "cloud_dependency": autonomy["cloud_dependency"],
            "learning_rate": autonomy["learning_rate"],
            "consciousness": {
                "reflection_depth": consciousness.reflection_depth,
                "awareness_level": consciousness.awareness_level,
            },
            "metrics_7d": metrics,
            "autonomy_score": compute_autonomy_score(metrics, len(mastered)),
            "average_decision_confidence": self.decisions.average_confidence,
            "recent_decisions": [
                {
                    "id": d.id,
                    "decision": d.decision.value,
                    "strategy": d.strategy.value,
                    "confidence": d.confidence,
                    "timestamp": _iso(d.timestamp),
                }
                for d in self.decisions.recent_decisions(5)
            ],
            "recent_thoughts": [
                {
                    "id": t.id,
                    "strategy": t.strategy.value,
                    "confidence": t.confidence,
                    "priority": t.priority,
                    "timestamp": _iso(t.timestamp),
                }
                for t in self.decisions.recent_thoughts(5)
            ],
            "jobs": [job.status() for job in self.scheduler.jobs()],
        }
