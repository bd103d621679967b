"""Autonomy controller.

Sole owner of the global autonomy pair (``local_autonomy`` and
``cloud_dependency``, which always sum to 1) and of the learning rate.
Every change to either is appended to the ledger as an EvolutionEvent
before it becomes visible in memory.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from autonome.config import Settings, get_settings
from autonome.events import DomainMastered, EventBus, GlobalAutonomyIncreased
from autonome.logging_config import log_evolution, log_mastery
from autonome.protocols import LedgerError
from autonome.storage import Ledger
from autonome.types import EvolutionEvent, LearningAttempt, MetricName, clamp

logger = logging.getLogger(__name__)


class AutonomyController:
    """Owns the autonomy scalars and the per-domain mastered latch.

    All mutations run under one RLock, so the mastered transition
    (re-read stats, latch, bump autonomy) is atomic with respect to other
    callers in this process. The latch itself is a conditional insert in
    the ledger, so only one writer can ever observe the transition.
    """

    def __init__(
        self,
        ledger: Ledger,
        bus: EventBus,
        settings: Optional[Settings] = None,
        core_id: str = "default",
        local_autonomy: float = 0.0,
    ) -> None:
        self._ledger = ledger
        self._bus = bus
        self._settings = settings or get_settings()
        self._core_id = core_id
        self._lock = threading.RLock()

        self._local_autonomy = clamp(local_autonomy)
        self._cloud_dependency = 1.0 - self._local_autonomy
        self._learning_rate = self._settings.initial_learning_rate
        self._mastered: set = set()

    # ---- Read-only views ----

    @property
    def local_autonomy(self) -> float:
        with self._lock:
            return self._local_autonomy

    @property
    def cloud_dependency(self) -> float:
        with self._lock:
            return self._cloud_dependency

    @property
    def learning_rate(self) -> float:
        with self._lock:
            return self._learning_rate

    @property
    def mastered_domains(self) -> List[str]:
        with self._lock:
            return sorted(self._mastered)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "local_autonomy": self._local_autonomy,
                "cloud_dependency": self._cloud_dependency,
                "learning_rate": self._learning_rate,
                "mastered_domains": sorted(self._mastered),
            }

    # ---- Mastery ----

    def next_mastery_level(self, domain: str, learning_gain: float) -> float:
        """Mastery level to record on the next learning attempt for ``domain``.

        Builds on the best level seen so far, so the recorded level never
        decreases for a domain.
        """
        with self._lock:
            s = self._settings
            best = self._ledger.max_mastery_level(domain)
            stats = self._ledger.query_mastery_stats(domain, window_days=s.mastery_window_days)
            base = max(best, stats["avg_mastery"])
            return clamp(base + max(0.0, learning_gain) * self._learning_rate)

    def record_learning_attempt(
        self,
        domain: str,
        query: str,
        cloud_response: str,
        success_rate: float,
        learning_gain: float,
        local_analysis: Optional[str] = None,
    ) -> LearningAttempt:
        """Append the next learning attempt for ``domain``.

        The attempt number and mastery level are read and the row is
        appended under the controller lock, so concurrent dispatches on
        one domain get distinct attempt numbers and non-decreasing levels.
        """
        with self._lock:
            attempt = LearningAttempt(
                id=str(uuid.uuid4()),
                domain=domain,
                query=query,
                cloud_response=cloud_response,
                local_analysis=local_analysis,
                success_rate=success_rate,
                mastery_level=self.next_mastery_level(domain, learning_gain),
                attempts=self._ledger.domain_progress(domain)["max_attempts"] + 1,
                last_attempt=datetime.now(timezone.utc),
            )
            self._ledger.append_learning_attempt(attempt)
        return attempt

    def update_domain_mastery_level(self, domain: str, learning_gain: float) -> float:
        """Fold ``learning_gain`` into the domain's mastery and latch it if earned.

        Returns the new level. Latching happens at most once per domain;
        repeated calls after that leave the autonomy pair untouched. The
        latch and its autonomy increase are one ledger transaction: if it
        fails, neither is recorded and a later call can latch again.
        """
        if not domain:
            raise ValueError("domain must be a non-empty string")
        if learning_gain < 0:
            raise ValueError(f"learning_gain must be >= 0, got {learning_gain}")

        s = self._settings
        trigger = f"domain_mastered:{domain}"
        with self._lock:
            stats = self._ledger.query_mastery_stats(domain, window_days=s.mastery_window_days)
            new_level = clamp(stats["avg_mastery"] + learning_gain * self._learning_rate)

            if new_level <= s.mastery_threshold or stats["attempts"] <= s.controller_min_attempts:
                return new_level

            previous = self._local_autonomy
            new = min(1.0, previous + s.autonomy_increment)
            event = self._autonomy_event(previous, new, trigger) if new != previous else None

            if not self._ledger.latch_domain_mastered(domain, new_level, autonomy_event=event):
                # Already latched, possibly by an earlier process
                self._mastered.add(domain)
                return new_level

            self._mastered.add(domain)
            self._set_local_autonomy(new)
            total = len(self._mastered)

        logger.info(f"Domain mastered: {domain} (level={new_level:.3f}, total={total})")
        log_mastery(self._core_id, domain, new_level, total)
        if event is not None:
            self._announce_autonomy(previous, new, trigger)
        self._bus.publish(
            DomainMastered(domain=domain, mastery_level=new_level, total_mastered_domains=total)
        )
        return new_level

    # ---- Global scalars ----

    @staticmethod
    def _autonomy_event(previous: float, new: float, trigger: str) -> EvolutionEvent:
        return EvolutionEvent(
            id=str(uuid.uuid4()),
            metric_name=MetricName.AUTONOMY_LEVEL.value,
            previous_value=previous,
            new_value=new,
            trigger=trigger,
        )

    def _set_local_autonomy(self, value: float) -> None:
        self._local_autonomy = value
        self._cloud_dependency = 1.0 - value

    def _announce_autonomy(self, previous: float, new: float, trigger: str) -> None:
        logger.info(f"Global autonomy {previous:.3f} -> {new:.3f} ({trigger})")
        log_evolution(
            self._core_id, MetricName.AUTONOMY_LEVEL.value, previous, new, trigger=trigger
        )
        self._bus.publish(
            GlobalAutonomyIncreased(
                previous_autonomy=previous,
                new_autonomy=new,
                increment=new - previous,
                trigger=trigger,
            )
        )

    def increase_global_autonomy(self, delta: float, trigger: str = "manual") -> float:
        """Raise local autonomy by ``delta`` (capped at 1.0).

        The EvolutionEvent is appended first; if that fails the LedgerError
        propagates and the in-memory pair is left unchanged.
        """
        if delta < 0:
            raise ValueError(f"delta must be >= 0, got {delta}")

        with self._lock:
            previous = self._local_autonomy
            new = min(1.0, previous + delta)
            if new == previous:
                return new

            self._ledger.append_evolution_event(self._autonomy_event(previous, new, trigger))
            self._set_local_autonomy(new)

        self._announce_autonomy(previous, new, trigger)
        return new

    def scale_learning_rate(self, factor: float, trigger: str = "recalibration") -> float:
        """Multiply the learning rate by ``factor`` within the configured floor and cap."""
        if factor <= 0:
            raise ValueError(f"factor must be > 0, got {factor}")

        s = self._settings
        with self._lock:
            previous = self._learning_rate
            new = clamp(previous * factor, s.learning_rate_floor, s.learning_rate_cap)
            if new == previous:
                return new

            self._ledger.append_evolution_event(
                EvolutionEvent(
                    id=str(uuid.uuid4()),
                    metric_name=MetricName.LEARNING_RATE.value,
                    previous_value=previous,
                    new_value=new,
                    trigger=trigger,
                )
            )
            self._learning_rate = new

        logger.info(f"Learning rate {previous:.4f} -> {new:.4f} ({trigger})")
        log_evolution(self._core_id, MetricName.LEARNING_RATE.value, previous, new, trigger=trigger)
        return new

    # ---- Startup ----

    def restore(self) -> Dict[str, Any]:
        """Reload autonomy level, learning rate and mastered domains from the ledger.

        A ledger failure is logged and leaves the defaults in place.
        """
        s = self._settings
        try:
            metrics = self._ledger.latest_metric_values()
            mastered = self._ledger.mastered_domains()
        except LedgerError as e:
            logger.warning(f"Could not restore autonomy state from ledger: {e}")
            return {}

        with self._lock:
            if MetricName.AUTONOMY_LEVEL.value in metrics:
                self._local_autonomy = clamp(metrics[MetricName.AUTONOMY_LEVEL.value])
                self._cloud_dependency = 1.0 - self._local_autonomy
            if MetricName.LEARNING_RATE.value in metrics:
                self._learning_rate = clamp(
                    metrics[MetricName.LEARNING_RATE.value],
                    s.learning_rate_floor,
                    s.learning_rate_cap,
                )
            self._mastered.update(mastered)

        logger.info(
            f"Autonomy restored: local={self._local_autonomy:.3f}, "
            f"learning_rate={self._learning_rate:.4f}, mastered={len(mastered)}"
        )
        return self.snapshot()
