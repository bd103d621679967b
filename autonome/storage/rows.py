"""Row-to-record converters for the learning ledger.

Free functions so that the ledger, the ops modules and tests can share
them without importing the Ledger class.
"""

import sqlite3
from datetime import datetime
from typing import Any, Optional

from autonome.types import (
    Decision,
    DecisionKind,
    EvolutionEvent,
    Interaction,
    InteractionType,
    LearningAttempt,
    MemoryRecord,
    Strategy,
    TelemetrySample,
    Thought,
    parse_datetime,
)

from .payloads import decode_payload


def _parse_dt(s: Optional[str]) -> Optional[datetime]:
    return parse_datetime(s)


def _safe_get(row: sqlite3.Row, key: str, default: Any = None) -> Any:
    """Read a column that may be missing from older databases."""
    try:
        value = row[key]
    except (IndexError, KeyError):
        return default
    return default if value is None else value


def row_to_memory(row: sqlite3.Row) -> MemoryRecord:
    """Convert a row to a MemoryRecord."""
    return MemoryRecord(
        id=row["id"],
        domain=row["domain"],
        content=row["content"],
        importance=float(row["importance"]),
        confidence=float(row["confidence"]),
        access_count=int(row["access_count"]),
        last_accessed=_parse_dt(row["last_accessed"]),
        created_at=_parse_dt(row["created_at"]),
        source=row["source"],
    )


def row_to_learning_attempt(row: sqlite3.Row) -> LearningAttempt:
    """Convert a row to a LearningAttempt."""
    return LearningAttempt(
        id=row["id"],
        domain=row["domain"],
        query=row["question"],
        cloud_response=row["cloud_response"],
        local_analysis=row["local_analysis"],
        success_rate=float(row["success_rate"]),
        mastery_level=float(row["mastery_level"]),
        attempts=int(row["attempts"]),
        last_attempt=_parse_dt(row["last_attempt"]),
        mastered=bool(row["mastered"]),
    )


def row_to_evolution_event(row: sqlite3.Row) -> EvolutionEvent:
    """Convert a row to an EvolutionEvent."""
    return EvolutionEvent(
        id=row["id"],
        metric_name=row["metric_name"],
        previous_value=float(row["previous_value"]),
        new_value=float(row["new_value"]),
        trigger=row["trigger"],
        timestamp=_parse_dt(row["timestamp"]),
    )


def row_to_interaction(row: sqlite3.Row) -> Interaction:
    """Convert a row to an Interaction."""
    return Interaction(
        id=row["id"],
        type=InteractionType(row["type"]),
        domain=_safe_get(row, "domain", ""),
        input_payload=decode_payload("interaction_input", row["input"]),
        output_payload=decode_payload("interaction_output", row["output"]),
        confidence=float(row["confidence"]),
        learning_gained=float(row["learning_gained"]),
        autonomy_used=float(row["autonomy_used"]),
        timestamp=_parse_dt(row["timestamp"]),
        success=bool(row["success"]),
    )


def row_to_thought(row: sqlite3.Row) -> Thought:
    """Convert a row to a Thought."""
    return Thought(
        id=row["id"],
        strategy=Strategy(row["strategy"]),
        confidence=float(row["confidence"]),
        priority=float(row["priority"]),
        reasoning=row["reasoning"],
        planned_actions=list(decode_payload("thought_actions", row["actions"])),
        context_snapshot=TelemetrySample.from_dict(decode_payload("telemetry", row["context"])),
        timestamp=_parse_dt(row["timestamp"]),
    )


def row_to_decision(row: sqlite3.Row) -> Decision:
    """Convert a row to a Decision."""
    success = row["success"]
    return Decision(
        id=row["id"],
        decision=DecisionKind(row["decision"]),
        confidence=float(row["confidence"]),
        reasoning=row["reasoning"],
        strategy=Strategy(row["strategy"]),
        context_snapshot=decode_payload("decision_context", row["context"]),
        predicted_outcome=row["predicted_outcome"],
        success=None if success is None else bool(success),
        timestamp=_parse_dt(row["timestamp"]),
    )
