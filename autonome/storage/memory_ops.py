"""Memory lifecycle operations: access tracking, pruning, reinforcement.

These are the only statements that mutate rows after insert, and they
only ever touch the ``memory`` table.
"""

import logging
import sqlite3
from typing import Iterable

logger = logging.getLogger(__name__)


def touch_memories(conn: sqlite3.Connection, memory_ids: Iterable[str], now: str) -> int:
    """Record an access on each memory. Returns the number of rows updated."""
    ids = list(memory_ids)
    if not ids:
        return 0
    placeholders = ",".join("?" for _ in ids)
    cur = conn.execute(
        f"""UPDATE memory
            SET access_count = access_count + 1, last_accessed = ?
            WHERE id IN ({placeholders})""",
        (now, *ids),
    )
    return cur.rowcount


def prune_memories(conn: sqlite3.Connection, max_importance: float, created_before: str) -> int:
    """Delete unused, unimportant memories older than ``created_before``."""
    cur = conn.execute(
        """DELETE FROM memory
           WHERE importance < ? AND access_count = 0 AND created_at < ?""",
        (max_importance, created_before),
    )
    if cur.rowcount:
        logger.debug(f"Pruned {cur.rowcount} memories (importance < {max_importance})")
    return cur.rowcount


def boost_frequent_memories(conn: sqlite3.Connection, min_access_count: int, delta: float) -> int:
    """Raise importance of frequently accessed memories, capped at 1.0."""
    cur = conn.execute(
        """UPDATE memory
           SET importance = MIN(1.0, importance + ?)
           WHERE access_count > ? AND importance < 1.0""",
        (delta, min_access_count),
    )
    return cur.rowcount
