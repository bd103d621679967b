"""SQLite learning ledger.

Append-only persistent store of every interaction, learning attempt,
evolution event, thought and decision. Source of truth for all derived
statistics.

Concurrency model:
- One short-lived connection per operation (no shared connection)
- WAL journal plus a busy timeout so readers never wait on writers
- A process-wide RLock serializes writers, so the request path and the
  background jobs can append concurrently without "database is locked"
"""

import contextlib
import logging
import sqlite3
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar

from autonome.protocols import LedgerError
from autonome.types import (
    Decision,
    EvolutionEvent,
    Interaction,
    LearningAttempt,
    MemoryRecord,
    Thought,
    iso_utc,
    utc_now,
)

from . import memory_ops, stats_ops
from .payloads import encode_payload
from .rows import (
    row_to_decision,
    row_to_evolution_event,
    row_to_interaction,
    row_to_learning_attempt,
    row_to_memory,
    row_to_thought,
)
from .schema import init_db

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _iso_or_now(value: Optional[datetime]) -> str:
    return iso_utc(value) if value is not None else utc_now()


def _insert_evolution_event(conn: sqlite3.Connection, event: EvolutionEvent) -> str:
    conn.execute(
        """INSERT INTO evolution_event
           (id, metric_name, previous_value, new_value, trigger, timestamp, significance)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (
            event.id,
            event.metric_name,
            event.previous_value,
            event.new_value,
            event.trigger,
            _iso_or_now(event.timestamp),
            event.significance,
        ),
    )
    return event.id


class Ledger:
    """Append-only SQLite store backing every other component.

    A failed append raises LedgerError; whether that is fatal is the
    caller's decision. Construction failures (schema creation) always
    propagate.
    """

    # Seconds a connection waits on a locked database before failing
    BUSY_TIMEOUT = 5.0

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._write_lock = threading.RLock()
        self._closed = False

        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with self._connect() as conn:
                conn.execute("PRAGMA journal_mode=WAL")
                init_db(conn, self.db_path)
        except (sqlite3.Error, OSError) as e:
            raise LedgerError(f"Could not initialize ledger at {self.db_path}: {e}") from e

        logger.debug(f"Ledger ready at {self.db_path}")

    # === Connection Handling ===

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.BUSY_TIMEOUT, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    @contextlib.contextmanager
    def _connect(self):
        """Context manager that handles transactions AND closes connection.

        - Transaction commit on success
        - Transaction rollback on exception
        - Connection close in all cases
        """
        conn = self._get_conn()
        try:
            yield conn
            conn.commit()
        except Exception as e:
            logger.debug(f"Transaction failed, rolling back: {e}")
            conn.rollback()
            raise
        finally:
            conn.close()

    def _write(self, what: str, fn: Callable[[sqlite3.Connection], T]) -> T:
        with self._write_lock:
            if self._closed:
                raise LedgerError(f"{what} failed: ledger is closed")
            try:
                with self._connect() as conn:
                    return fn(conn)
            except sqlite3.Error as e:
                raise LedgerError(f"{what} failed: {e}") from e

    def _read(self, what: str, fn: Callable[[sqlite3.Connection], T]) -> T:
        if self._closed:
            raise LedgerError(f"{what} failed: ledger is closed")
        try:
            with self._connect() as conn:
                return fn(conn)
        except sqlite3.Error as e:
            raise LedgerError(f"{what} failed: {e}") from e

    @staticmethod
    def _since(window_days: float) -> str:
        return iso_utc(datetime.now(timezone.utc) - timedelta(days=window_days))

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Refuse further operations.

        Connections are per-operation, so waiting for the write lock is
        enough to let an in-flight append finish first.
        """
        with self._write_lock:
            self._closed = True
        logger.debug("Ledger closed")

    # === Appends ===

    def append_memory(self, record: MemoryRecord) -> str:
        def _insert(conn: sqlite3.Connection) -> str:
            conn.execute(
                """INSERT INTO memory
                   (id, domain, content, importance, confidence, access_count,
                    last_accessed, created_at, source)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    record.id,
                    record.domain,
                    record.content,
                    record.importance,
                    record.confidence,
                    record.access_count,
                    iso_utc(record.last_accessed) if record.last_accessed else None,
                    _iso_or_now(record.created_at),
                    record.source,
                ),
            )
            return record.id

        return self._write("append_memory", _insert)

    def append_learning_attempt(self, attempt: LearningAttempt) -> str:
        """Insert a learning attempt. Rows for an already mastered domain inherit the latch."""

        def _insert(conn: sqlite3.Connection) -> str:
            conn.execute(
                """INSERT INTO learning_attempt
                   (id, domain, question, cloud_response, local_analysis, success_rate,
                    mastery_level, attempts, last_attempt, mastered)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?,
                           CASE WHEN EXISTS (SELECT 1 FROM domain_mastery WHERE domain = ?)
                                THEN 1 ELSE ? END)""",
                (
                    attempt.id,
                    attempt.domain,
                    attempt.query,
                    attempt.cloud_response,
                    attempt.local_analysis,
                    attempt.success_rate,
                    attempt.mastery_level,
                    attempt.attempts,
                    _iso_or_now(attempt.last_attempt),
                    attempt.domain,
                    int(attempt.mastered),
                ),
            )
            return attempt.id

        return self._write("append_learning_attempt", _insert)

    def append_evolution_event(self, event: EvolutionEvent) -> str:
        return self._write(
            "append_evolution_event", lambda conn: _insert_evolution_event(conn, event)
        )

    def append_interaction(self, interaction: Interaction) -> str:
        input_blob = encode_payload("interaction_input", interaction.input_payload)
        output_blob = encode_payload("interaction_output", interaction.output_payload)

        def _insert(conn: sqlite3.Connection) -> str:
            conn.execute(
                """INSERT INTO interaction
                   (id, type, domain, input, output, confidence, learning_gained,
                    autonomy_used, timestamp, success)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    interaction.id,
                    interaction.type.value,
                    interaction.domain,
                    input_blob,
                    output_blob,
                    interaction.confidence,
                    interaction.learning_gained,
                    interaction.autonomy_used,
                    _iso_or_now(interaction.timestamp),
                    int(interaction.success),
                ),
            )
            return interaction.id

        return self._write("append_interaction", _insert)

    def append_thought(self, thought: Thought) -> str:
        if thought.context_snapshot is None:
            raise ValueError("Thought requires a telemetry context snapshot")
        actions_blob = encode_payload("thought_actions", list(thought.planned_actions))
        context_blob = encode_payload("telemetry", thought.context_snapshot.to_dict())

        def _insert(conn: sqlite3.Connection) -> str:
            conn.execute(
                """INSERT INTO thought
                   (id, timestamp, strategy, confidence, priority, reasoning, actions, context)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    thought.id,
                    _iso_or_now(thought.timestamp),
                    thought.strategy.value,
                    thought.confidence,
                    thought.priority,
                    thought.reasoning,
                    actions_blob,
                    context_blob,
                ),
            )
            return thought.id

        return self._write("append_thought", _insert)

    def append_decision(self, decision: Decision) -> str:
        context_blob = encode_payload("decision_context", decision.context_snapshot)

        def _insert(conn: sqlite3.Connection) -> str:
            conn.execute(
                """INSERT INTO decision
                   (id, timestamp, decision, strategy, confidence, reasoning, context,
                    predicted_outcome, success)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    decision.id,
                    _iso_or_now(decision.timestamp),
                    decision.decision.value,
                    decision.strategy.value,
                    decision.confidence,
                    decision.reasoning,
                    context_blob,
                    decision.predicted_outcome,
                    None if decision.success is None else int(decision.success),
                ),
            )
            return decision.id

        return self._write("append_decision", _insert)

    # === Conditional Writes ===

    def latch_domain_mastered(
        self,
        domain: str,
        mastery_level: float,
        autonomy_event: Optional[EvolutionEvent] = None,
    ) -> bool:
        """Flip the one-way mastered latch for ``domain``.

        Returns True only for the call that actually flipped it; any later
        or concurrent call is a no-op returning False. ``autonomy_event``,
        if given, is appended in the same transaction, so the latch and
        the autonomy increase it earns commit or roll back together.
        """

        def _latch(conn: sqlite3.Connection) -> bool:
            cur = conn.execute(
                """INSERT OR IGNORE INTO domain_mastery (domain, mastery_level, mastered_at)
                   VALUES (?, ?, ?)""",
                (domain, mastery_level, utc_now()),
            )
            if cur.rowcount != 1:
                return False
            conn.execute(
                "UPDATE learning_attempt SET mastered = 1 WHERE domain = ? AND mastered = 0",
                (domain,),
            )
            if autonomy_event is not None:
                _insert_evolution_event(conn, autonomy_event)
            return True

        return self._write("latch_domain_mastered", _latch)

    def record_decision_outcome(self, decision_id: str, success: bool) -> bool:
        """Fill in a decision's outcome once. Returns False if already evaluated or unknown."""

        def _update(conn: sqlite3.Connection) -> bool:
            cur = conn.execute(
                "UPDATE decision SET success = ? WHERE id = ? AND success IS NULL",
                (int(success), decision_id),
            )
            return cur.rowcount == 1

        return self._write("record_decision_outcome", _update)

    def touch_memories(self, memory_ids: Iterable[str]) -> int:
        ids = list(memory_ids)
        return self._write(
            "touch_memories", lambda conn: memory_ops.touch_memories(conn, ids, utc_now())
        )

    def prune_memories(self, max_importance: float = 0.3, max_age_days: float = 30) -> int:
        cutoff = self._since(max_age_days)
        return self._write(
            "prune_memories",
            lambda conn: memory_ops.prune_memories(conn, max_importance, cutoff),
        )

    def boost_frequent_memories(self, min_access_count: int = 10, delta: float = 0.1) -> int:
        return self._write(
            "boost_frequent_memories",
            lambda conn: memory_ops.boost_frequent_memories(conn, min_access_count, delta),
        )

    # === Queries ===

    def query_mastery_stats(self, domain: str, window_days: float = 30) -> Dict[str, Any]:
        since = self._since(window_days)
        return self._read(
            "query_mastery_stats", lambda conn: stats_ops.query_mastery_stats(conn, domain, since)
        )

    def domain_progress(self, domain: str) -> Dict[str, Any]:
        return self._read(
            "domain_progress", lambda conn: stats_ops.query_domain_progress(conn, domain)
        )

    def max_mastery_level(self, domain: str) -> float:
        """Highest mastery level ever recorded for ``domain`` (0.0 if none)."""
        return self.domain_progress(domain)["max_mastery"]

    def query_recent_memories(self, domain: str, limit: int = 10) -> List[MemoryRecord]:
        """Top memories for ``domain`` by importance, then access count."""

        def _query(conn: sqlite3.Connection) -> List[MemoryRecord]:
            rows = conn.execute(
                """SELECT * FROM memory WHERE domain = ?
                   ORDER BY importance DESC, access_count DESC, created_at DESC
                   LIMIT ?""",
                (domain, limit),
            ).fetchall()
            return [row_to_memory(row) for row in rows]

        return self._read("query_recent_memories", _query)

    def query_aggregate_metrics(self, window_days: float = 7) -> Dict[str, Any]:
        since = self._since(window_days)
        return self._read(
            "query_aggregate_metrics", lambda conn: stats_ops.query_aggregate_metrics(conn, since)
        )

    def query_performance(self, window_days: float = 7) -> Dict[str, Any]:
        since = self._since(window_days)
        return self._read(
            "query_performance", lambda conn: stats_ops.query_performance(conn, since)
        )

    def query_activity(self, window_days: float = 7) -> Dict[str, Any]:
        since = self._since(window_days)
        return self._read("query_activity", lambda conn: stats_ops.query_activity(conn, since))

    def latest_metric_values(self) -> Dict[str, float]:
        return self._read("latest_metric_values", stats_ops.latest_metric_values)

    def count_records(self) -> Dict[str, int]:
        return self._read("count_records", stats_ops.count_records)

    def mastered_domains(self) -> List[str]:
        def _query(conn: sqlite3.Connection) -> List[str]:
            rows = conn.execute("SELECT domain FROM domain_mastery ORDER BY mastered_at").fetchall()
            return [row[0] for row in rows]

        return self._read("mastered_domains", _query)

    def get_memory(self, memory_id: str) -> Optional[MemoryRecord]:
        def _query(conn: sqlite3.Connection) -> Optional[MemoryRecord]:
            row = conn.execute("SELECT * FROM memory WHERE id = ?", (memory_id,)).fetchone()
            return row_to_memory(row) if row else None

        return self._read("get_memory", _query)

    def list_learning_attempts(self, domain: str) -> List[LearningAttempt]:
        """All attempts for ``domain``, oldest first."""

        def _query(conn: sqlite3.Connection) -> List[LearningAttempt]:
            rows = conn.execute(
                """SELECT * FROM learning_attempt WHERE domain = ?
                   ORDER BY last_attempt ASC, attempts ASC""",
                (domain,),
            ).fetchall()
            return [row_to_learning_attempt(row) for row in rows]

        return self._read("list_learning_attempts", _query)

    def list_evolution_events(
        self, metric_name: Optional[str] = None, limit: Optional[int] = None
    ) -> List[EvolutionEvent]:
        """Evolution events, newest first."""

        def _query(conn: sqlite3.Connection) -> List[EvolutionEvent]:
            sql = "SELECT * FROM evolution_event"
            params: List[Any] = []
            if metric_name:
                sql += " WHERE metric_name = ?"
                params.append(metric_name)
            sql += " ORDER BY timestamp DESC"
            if limit is not None:
                sql += " LIMIT ?"
                params.append(limit)
            return [row_to_evolution_event(row) for row in conn.execute(sql, params).fetchall()]

        return self._read("list_evolution_events", _query)

    def recent_evolution_events(self, limit: int = 10) -> List[EvolutionEvent]:
        return self.list_evolution_events(limit=limit)

    def recent_interactions(self, limit: int = 20) -> List[Interaction]:
        def _query(conn: sqlite3.Connection) -> List[Interaction]:
            rows = conn.execute(
                "SELECT * FROM interaction ORDER BY timestamp DESC LIMIT ?", (limit,)
            ).fetchall()
            return [row_to_interaction(row) for row in rows]

        return self._read("recent_interactions", _query)

    def recent_thoughts(self, limit: int = 20) -> List[Thought]:
        def _query(conn: sqlite3.Connection) -> List[Thought]:
            rows = conn.execute(
                "SELECT * FROM thought ORDER BY timestamp DESC LIMIT ?", (limit,)
            ).fetchall()
            return [row_to_thought(row) for row in rows]

        return self._read("recent_thoughts", _query)

    def recent_decisions(self, limit: int = 20) -> List[Decision]:
        def _query(conn: sqlite3.Connection) -> List[Decision]:
            rows = conn.execute(
                "SELECT * FROM decision ORDER BY timestamp DESC LIMIT ?", (limit,)
            ).fetchall()
            return [row_to_decision(row) for row in rows]

        return self._read("recent_decisions", _query)
