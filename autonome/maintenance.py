"""Background maintenance jobs.

Three periodic jobs, each returning a stats dict:

- prune_memories: forget unused low-importance memories, reinforce
  frequently used ones
- recalibrate_learning_rate: speed up or slow down learning based on
  the last week's performance
- evolve_consciousness: grow reflection depth and awareness from the
  last week's activity

Reflection depth and awareness only ever increase; every increase is
recorded as an EvolutionEvent.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from autonome.autonomy import AutonomyController
from autonome.config import Settings, get_settings
from autonome.logging_config import log_evolution
from autonome.protocols import LedgerError
from autonome.storage import Ledger
from autonome.types import EvolutionEvent, MetricName, clamp

logger = logging.getLogger(__name__)

# Pruning
PRUNE_MAX_IMPORTANCE = 0.3
PRUNE_MAX_AGE_DAYS = 30
BOOST_MIN_ACCESS_COUNT = 10
BOOST_DELTA = 0.1

# Recalibration
PERFORMANCE_WINDOW_DAYS = 7
HIGH_PERFORMANCE = 0.8
LOW_PERFORMANCE = 0.6
SPEED_UP = 1.1
SLOW_DOWN = 0.9

# Evolution
ACTIVITY_WINDOW_DAYS = 7
DIVERSITY_DOMAINS = 5
REFLECTION_GAIN = 0.1
AWARENESS_GAIN = 0.05


@dataclass
class ConsciousnessState:
    reflection_depth: float = 0.0
    awareness_level: float = 0.0


class MaintenanceJobs:
    """The maintenance routines, bound to one ledger and controller."""

    def __init__(
        self,
        ledger: Ledger,
        controller: AutonomyController,
        settings: Optional[Settings] = None,
        core_id: str = "default",
    ) -> None:
        self._ledger = ledger
        self._controller = controller
        self._settings = settings or get_settings()
        self._core_id = core_id
        self._lock = threading.Lock()
        self._state = ConsciousnessState()

    @property
    def consciousness(self) -> ConsciousnessState:
        with self._lock:
            return ConsciousnessState(
                reflection_depth=self._state.reflection_depth,
                awareness_level=self._state.awareness_level,
            )

    def restore(self) -> ConsciousnessState:
        """Reload reflection depth and awareness from the latest evolution events."""
        try:
            metrics = self._ledger.latest_metric_values()
        except LedgerError as e:
            logger.warning(f"Could not restore consciousness metrics: {e}")
            return self.consciousness

        with self._lock:
            if MetricName.REFLECTION_DEPTH.value in metrics:
                self._state.reflection_depth = clamp(metrics[MetricName.REFLECTION_DEPTH.value])
            if MetricName.AWARENESS_LEVEL.value in metrics:
                self._state.awareness_level = clamp(metrics[MetricName.AWARENESS_LEVEL.value])
        return self.consciousness

    # ---- Jobs ----

    def prune_memories(self) -> Dict[str, Any]:
        pruned = self._ledger.prune_memories(
            max_importance=PRUNE_MAX_IMPORTANCE, max_age_days=PRUNE_MAX_AGE_DAYS
        )
        boosted = self._ledger.boost_frequent_memories(
            min_access_count=BOOST_MIN_ACCESS_COUNT, delta=BOOST_DELTA
        )
        if pruned or boosted:
            logger.info(f"Memory maintenance: pruned={pruned}, boosted={boosted}")
        return {"pruned": pruned, "boosted": boosted}

    def recalibrate_learning_rate(self) -> Dict[str, Any]:
        perf = self._ledger.query_performance(window_days=PERFORMANCE_WINDOW_DAYS)
        previous = self._controller.learning_rate
        if not perf["interactions"]:
            return {"skipped": True, "reason": "no_interactions", "learning_rate": previous}

        score = perf["success_rate"] * perf["avg_confidence"]
        if score > HIGH_PERFORMANCE:
            new = self._controller.scale_learning_rate(SPEED_UP, trigger="high_performance")
        elif score < LOW_PERFORMANCE:
            new = self._controller.scale_learning_rate(SLOW_DOWN, trigger="low_performance")
        else:
            new = previous

        return {
            "interactions": perf["interactions"],
            "score": score,
            "previous_learning_rate": previous,
            "learning_rate": new,
        }

    def evolve_consciousness(self) -> Dict[str, Any]:
        activity = self._ledger.query_activity(window_days=ACTIVITY_WINDOW_DAYS)
        diversity = min(1.0, activity["distinct_domains"] / DIVERSITY_DOMAINS)
        reflection_gain = diversity * activity["avg_confidence"] * REFLECTION_GAIN
        awareness_gain = activity["avg_autonomy_used"] * AWARENESS_GAIN

        with self._lock:
            reflection = self._raise(
                MetricName.REFLECTION_DEPTH, self._state.reflection_depth, reflection_gain
            )
            self._state.reflection_depth = reflection
            awareness = self._raise(
                MetricName.AWARENESS_LEVEL, self._state.awareness_level, awareness_gain
            )
            self._state.awareness_level = awareness

        return {
            "interactions": activity["interactions"],
            "diversity": diversity,
            "reflection_depth": reflection,
            "awareness_level": awareness,
        }

    def _raise(self, metric: MetricName, current: float, gain: float) -> float:
        """Apply ``gain`` to ``current`` (capped at 1.0), recording the change."""
        new = min(1.0, current + max(0.0, gain))
        if new <= current:
            return current
        self._ledger.append_evolution_event(
            EvolutionEvent(
                id=str(uuid.uuid4()),
                metric_name=metric.value,
                previous_value=current,
                new_value=new,
                trigger="daily_evolution",
            )
        )
        log_evolution(self._core_id, metric.value, current, new, trigger="daily_evolution")
        return new
