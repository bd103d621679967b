"""Autonomous decision engine.

Two outputs, both derived from a live telemetry sample:

- Thoughts: produced on every tick of the autonomous loop. A strategy is
  picked by hashing the sample, scored, kept in a bounded in-memory
  history and appended to the ledger.
- Decisions: produced on request. Urgency, complexity and opportunity
  are read from the sample (or supplied by the caller) and run through
  a fixed cascade.

Given the same sample and history size the engine always produces the
same strategy, confidence and decision; only identifiers are random.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Optional

from autonome.config import Settings, get_settings
from autonome.events import AutonomousDecision, AutonomousThought, EventBus
from autonome.logging_config import log_decision
from autonome.protocols import LedgerError, PayloadError
from autonome.storage import Ledger
from autonome.telemetry import sample_telemetry
from autonome.types import (
    Decision,
    DecisionKind,
    Strategy,
    TelemetrySample,
    Thought,
    clamp,
)

logger = logging.getLogger(__name__)

STRATEGIES = list(Strategy)

PRIORITIES: Dict[Strategy, float] = {
    Strategy.OPTIMIZE: 0.8,
    Strategy.ADAPT: 0.6,
    Strategy.INNOVATE: 0.4,
    Strategy.EXPLORE: 0.3,
}

PLANNED_ACTIONS: Dict[Strategy, List[str]] = {
    Strategy.EXPLORE: ["survey_unmastered_domains", "sample_new_queries"],
    Strategy.OPTIMIZE: ["prune_low_value_memories", "reinforce_frequent_memories"],
    Strategy.ADAPT: ["recalibrate_learning_rate", "review_recent_failures"],
    Strategy.INNOVATE: ["combine_mastered_domains", "propose_new_domains"],
}

PREDICTED_OUTCOMES: Dict[DecisionKind, str] = {
    DecisionKind.IMMEDIATE_ACTION: "memory pressure relieved before it degrades service",
    DecisionKind.CAREFUL_ANALYSIS: "workload understood before committing resources",
    DecisionKind.SEIZE_OPPORTUNITY: "stable uptime window used for improvement",
    DecisionKind.CONTINUE_MONITORING: "steady state maintained",
}

# Cascade thresholds
URGENCY_THRESHOLD = 0.8
COMPLEXITY_THRESHOLD = 0.6
OPPORTUNITY_THRESHOLD = 0.7

# Normalizers for the sampled decision context
PROCESS_COUNT_SCALE = 400
UPTIME_SCALE_SECONDS = 86400.0

# Confidence bonus applies once the engine has produced this many outputs
EXPERIENCE_THRESHOLD = 10


def select_strategy(sample: TelemetrySample) -> Strategy:
    """Map a telemetry sample onto one of the four strategies.

    Index = floor(((cpu_user_us + heap_used + load_1m * 1000) mod 1000) / 250).
    """
    mixed = (sample.cpu_time_user_us + sample.heap_used + sample.load_avg_1m * 1000) % 1000
    index = min(int(mixed // 250), len(STRATEGIES) - 1)
    return STRATEGIES[index]


def compute_confidence(sample: TelemetrySample, history_size: int, heap_threshold: int) -> float:
    confidence = 0.7
    if history_size > EXPERIENCE_THRESHOLD:
        confidence += 0.1
    confidence += 0.1 if sample.heap_used < heap_threshold else -0.1
    return clamp(confidence, 0.1, 1.0)


def _context_factor(context: Dict[str, Any], key: str, sampled: float) -> float:
    if key not in context or context[key] is None:
        return clamp(sampled)
    value = context[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number in [0, 1], got {value!r}")
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{key} must be in [0, 1], got {value}")
    return float(value)


def _jsonable(data: Dict[str, Any]) -> Dict[str, Any]:
    return json.loads(json.dumps(data, default=str))


class DecisionEngine:
    """Produces thoughts on a tick and decisions on request.

    Persistence is best-effort: a ledger failure is logged, and the
    thought or decision is still returned and published.
    """

    def __init__(
        self,
        ledger: Ledger,
        bus: EventBus,
        settings: Optional[Settings] = None,
        core_id: str = "default",
        sampler: Callable[[], TelemetrySample] = sample_telemetry,
    ) -> None:
        self._ledger = ledger
        self._bus = bus
        self._settings = settings or get_settings()
        self._core_id = core_id
        self._sampler = sampler
        self._lock = threading.Lock()

        size = self._settings.thought_history_size
        self._thoughts: Deque[Thought] = deque(maxlen=size)
        self._decisions: Deque[Decision] = deque(maxlen=size)
        self._history_size = 0
        self._decision_count = 0
        self._confidence_total = 0.0

    # ---- Views ----

    @property
    def history_size(self) -> int:
        """Thoughts and decisions produced since construction."""
        with self._lock:
            return self._history_size

    @property
    def average_confidence(self) -> float:
        """Running average confidence over every decision made."""
        with self._lock:
            if not self._decision_count:
                return 0.0
            return self._confidence_total / self._decision_count

    def recent_thoughts(self, limit: int = 10) -> List[Thought]:
        """Newest first."""
        with self._lock:
            return list(self._thoughts)[::-1][:limit]

    def recent_decisions(self, limit: int = 10) -> List[Decision]:
        """Newest first."""
        with self._lock:
            return list(self._decisions)[::-1][:limit]

    # ---- Thoughts ----

    def tick(self) -> Thought:
        """One iteration of the autonomous loop."""
        sample = self._sampler()
        strategy = select_strategy(sample)

        with self._lock:
            confidence = compute_confidence(
                sample, self._history_size, self._settings.heap_threshold_bytes
            )
            self._history_size += 1

        thought = Thought(
            id=str(uuid.uuid4()),
            strategy=strategy,
            confidence=confidence,
            priority=PRIORITIES[strategy],
            reasoning=self._thought_reasoning(strategy, sample),
            planned_actions=list(PLANNED_ACTIONS[strategy]),
            context_snapshot=sample,
            timestamp=datetime.now(timezone.utc),
        )

        try:
            self._ledger.append_thought(thought)
        except (LedgerError, PayloadError) as e:
            logger.warning(f"Could not persist thought {thought.id}: {e}")

        with self._lock:
            self._thoughts.append(thought)

        self._bus.publish(
            AutonomousThought(
                strategy=strategy.value,
                confidence=thought.confidence,
                priority=thought.priority,
                reasoning=thought.reasoning,
            )
        )
        logger.debug(f"Thought: {strategy.value} (confidence={confidence:.2f})")
        return thought

    def _thought_reasoning(self, strategy: Strategy, sample: TelemetrySample) -> str:
        heap_mb = sample.heap_used / (1024 * 1024)
        return (
            f"{strategy.value}: heap {heap_mb:.1f} MiB, load {sample.load_avg_1m:.2f}, "
            f"{sample.thread_count} threads, {sample.process_count} processes"
        )

    # ---- Decisions ----

    def make_autonomous_decision(self, context: Optional[Dict[str, Any]] = None) -> Decision:
        """Decide what the core should do next.

        ``context`` may carry ``urgency``, ``complexity`` and ``opportunity``
        in [0, 1] to override the sampled values; any other keys are kept
        in the snapshot as ``extra``.
        """
        context = dict(context or {})
        sample = self._sampler()

        urgency = _context_factor(context, "urgency", sample.memory_percent / 100.0)
        complexity = _context_factor(
            context, "complexity", sample.process_count / PROCESS_COUNT_SCALE
        )
        opportunity = _context_factor(
            context, "opportunity", sample.uptime_seconds / UPTIME_SCALE_SECONDS
        )
        extra = {
            k: v for k, v in context.items() if k not in ("urgency", "complexity", "opportunity")
        }

        if urgency > URGENCY_THRESHOLD:
            kind = DecisionKind.IMMEDIATE_ACTION
            reasoning = f"urgency {urgency:.2f} exceeds {URGENCY_THRESHOLD}"
        elif complexity > COMPLEXITY_THRESHOLD:
            kind = DecisionKind.CAREFUL_ANALYSIS
            reasoning = f"complexity {complexity:.2f} exceeds {COMPLEXITY_THRESHOLD}"
        elif opportunity > OPPORTUNITY_THRESHOLD:
            kind = DecisionKind.SEIZE_OPPORTUNITY
            reasoning = f"opportunity {opportunity:.2f} exceeds {OPPORTUNITY_THRESHOLD}"
        else:
            kind = DecisionKind.CONTINUE_MONITORING
            reasoning = "no factor above its threshold"

        strategy = select_strategy(sample)
        with self._lock:
            confidence = compute_confidence(
                sample, self._history_size, self._settings.heap_threshold_bytes
            )
            self._history_size += 1

        decision = Decision(
            id=str(uuid.uuid4()),
            decision=kind,
            confidence=confidence,
            reasoning=reasoning,
            strategy=strategy,
            context_snapshot={
                "urgency": urgency,
                "complexity": complexity,
                "opportunity": opportunity,
                "telemetry": sample.to_dict(),
                "extra": _jsonable(extra),
            },
            predicted_outcome=PREDICTED_OUTCOMES[kind],
            timestamp=datetime.now(timezone.utc),
        )

        try:
            self._ledger.append_decision(decision)
        except (LedgerError, PayloadError) as e:
            logger.warning(f"Could not persist decision {decision.id}: {e}")

        with self._lock:
            self._decisions.append(decision)
            self._decision_count += 1
            self._confidence_total += confidence

        log_decision(self._core_id, kind.value, strategy.value, confidence)
        self._bus.publish(
            AutonomousDecision(decision=kind.value, confidence=confidence, strategy=strategy.value)
        )
        logger.info(f"Decision: {kind.value} ({reasoning})")
        return decision
