"""
Shared record types for autonome.

All ledger records are plain dataclasses. The ledger writes them, the
dispatcher, controller and decision engine produce them, and the status
surface reads them back. The types are the contract between them.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

# === Shared Utility Functions ===


def iso_utc(dt: datetime) -> str:
    """Format ``dt`` as a fixed-width UTC ISO string.

    Fixed width keeps lexical order equal to time order, which the ledger
    relies on for its window queries.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def utc_now() -> str:
    """Get current timestamp as ISO string in UTC."""
    return iso_utc(datetime.now(timezone.utc))


def parse_datetime(s: Optional[str]) -> Optional[datetime]:
    """Parse ISO datetime string. Naive values are taken as UTC."""
    if not s:
        return None
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp ``value`` into ``[low, high]``."""
    return max(low, min(high, value))


# === Enums ===


class Strategy(str, Enum):
    """Autonomous loop strategies.

    Declaration order is the strategy index produced by the decision
    engine's telemetry hash, so it must not be reordered.
    """

    EXPLORE = "explore"
    OPTIMIZE = "optimize"
    ADAPT = "adapt"
    INNOVATE = "innovate"


class DecisionKind(str, Enum):
    """Outcomes of an explicit autonomous decision request."""

    IMMEDIATE_ACTION = "immediate_action"
    CAREFUL_ANALYSIS = "careful_analysis"
    SEIZE_OPPORTUNITY = "seize_opportunity"
    CONTINUE_MONITORING = "continue_monitoring"


class InteractionType(str, Enum):
    """How a request was served."""

    AUTONOMOUS_LOCAL = "autonomous_local"
    CLOUD_ASSISTED = "cloud_assisted"


class DomainState(str, Enum):
    """Per-domain learning state. Transitions only move forward."""

    UNKNOWN = "unknown"
    LEARNING = "learning"
    MASTERED = "mastered"


class MetricName(str, Enum):
    """Scalars tracked through evolution events."""

    AUTONOMY_LEVEL = "autonomy_level"
    LEARNING_RATE = "learning_rate"
    REFLECTION_DEPTH = "reflection_depth"
    AWARENESS_LEVEL = "awareness_level"


# === Ledger Records ===


@dataclass
class MemoryRecord:
    """A piece of domain knowledge retained from a cloud-assisted answer."""

    id: str
    domain: str
    content: str
    importance: float = 0.5  # 0.0 (disposable) to 1.0 (core knowledge)
    confidence: float = 0.5
    access_count: int = 0
    last_accessed: Optional[datetime] = None
    created_at: Optional[datetime] = None
    source: str = "cloud"


@dataclass
class LearningAttempt:
    """One cloud-assisted interaction, seen as a learning step for a domain."""

    id: str
    domain: str
    query: str
    cloud_response: str
    local_analysis: Optional[str] = None
    success_rate: float = 0.0
    mastery_level: float = 0.0  # Monotonic per domain
    attempts: int = 1  # Running attempt count for the domain, this row included
    last_attempt: Optional[datetime] = None
    mastered: bool = False  # One-way latch


@dataclass
class EvolutionEvent:
    """Immutable audit entry for a tracked scalar transition."""

    id: str
    metric_name: str
    previous_value: float
    new_value: float
    trigger: str
    timestamp: Optional[datetime] = None

    @property
    def significance(self) -> float:
        return abs(self.new_value - self.previous_value)


@dataclass
class Interaction:
    """A served request."""

    id: str
    type: InteractionType
    domain: str
    input_payload: Dict[str, Any] = field(default_factory=dict)
    output_payload: Dict[str, Any] = field(default_factory=dict)
    confidence: float = 0.0
    learning_gained: float = 0.0
    autonomy_used: float = 0.0
    timestamp: Optional[datetime] = None
    success: bool = False


@dataclass
class TelemetrySample:
    """A snapshot of live process telemetry."""

    heap_used: int  # Resident set size of this process, bytes
    heap_total: int  # Total physical memory, bytes
    cpu_time_user_us: int  # Process user CPU time, microseconds
    load_avg_1m: float
    thread_count: int
    process_count: int
    memory_percent: float  # System memory in use, 0-100
    uptime_seconds: float
    sampled_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "heap_used": self.heap_used,
            "heap_total": self.heap_total,
            "cpu_time_user_us": self.cpu_time_user_us,
            "load_avg_1m": self.load_avg_1m,
            "thread_count": self.thread_count,
            "process_count": self.process_count,
            "memory_percent": self.memory_percent,
            "uptime_seconds": self.uptime_seconds,
            "sampled_at": self.sampled_at.isoformat() if self.sampled_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TelemetrySample":
        return cls(
            heap_used=int(data["heap_used"]),
            heap_total=int(data["heap_total"]),
            cpu_time_user_us=int(data["cpu_time_user_us"]),
            load_avg_1m=float(data["load_avg_1m"]),
            thread_count=int(data["thread_count"]),
            process_count=int(data["process_count"]),
            memory_percent=float(data["memory_percent"]),
            uptime_seconds=float(data["uptime_seconds"]),
            sampled_at=parse_datetime(data.get("sampled_at")),
        )


@dataclass
class Thought:
    """Unsolicited, periodic output of the autonomous loop."""

    id: str
    strategy: Strategy
    confidence: float
    priority: float
    reasoning: str
    planned_actions: List[str] = field(default_factory=list)
    context_snapshot: Optional[TelemetrySample] = None
    timestamp: Optional[datetime] = None


@dataclass
class Decision:
    """Output of an explicit decision request.

    ``success`` is filled in later by an out-of-band evaluator.
    """

    id: str
    decision: DecisionKind
    confidence: float
    reasoning: str
    strategy: Strategy
    context_snapshot: Dict[str, Any] = field(default_factory=dict)
    predicted_outcome: str = ""
    success: Optional[bool] = None
    timestamp: Optional[datetime] = None


@dataclass
class MasterySnapshot:
    """Point-in-time view of a domain's mastery statistics."""

    domain: str
    avg_mastery: float = 0.0
    attempts: int = 0
    avg_success_rate: float = 0.0
    mastered: bool = False
    latched: bool = False  # Whether the one-way mastered latch has fired

    @property
    def state(self) -> DomainState:
        if self.mastered or self.latched:
            return DomainState.MASTERED
        if self.attempts > 0:
            return DomainState.LEARNING
        return DomainState.UNKNOWN
