"""Read-only aggregations over the learning ledger.

All functions receive an open connection and an ISO ``since`` cutoff,
and return plain dicts with zero defaults so callers never have to
special-case an empty window.
"""

import logging
import sqlite3
from typing import Any, Dict

from autonome.types import InteractionType

logger = logging.getLogger(__name__)


def query_mastery_stats(conn: sqlite3.Connection, domain: str, since: str) -> Dict[str, Any]:
    """Average mastery, attempt count and success rate for ``domain`` since ``since``."""
    row = conn.execute(
        """SELECT AVG(mastery_level), COUNT(*), AVG(success_rate), MAX(mastered)
           FROM learning_attempt
           WHERE domain = ? AND last_attempt > ?""",
        (domain, since),
    ).fetchone()
    latched = conn.execute(
        "SELECT 1 FROM domain_mastery WHERE domain = ?", (domain,)
    ).fetchone()
    return {
        "avg_mastery": float(row[0] or 0.0),
        "attempts": int(row[1] or 0),
        "avg_success_rate": float(row[2] or 0.0),
        "latched": latched is not None or bool(row[3]),
    }


def query_domain_progress(conn: sqlite3.Connection, domain: str) -> Dict[str, Any]:
    """All-time attempt count and highest mastery level recorded for ``domain``."""
    row = conn.execute(
        "SELECT COUNT(*), MAX(mastery_level), MAX(attempts) FROM learning_attempt WHERE domain = ?",
        (domain,),
    ).fetchone()
    return {
        "rows": int(row[0] or 0),
        "max_mastery": float(row[1] or 0.0),
        "max_attempts": int(row[2] or 0),
    }


def query_aggregate_metrics(conn: sqlite3.Connection, since: str) -> Dict[str, Any]:
    """Interaction counters over a window.

    ``successful_learnings`` counts successful interactions that gained
    something; ``local_interactions`` counts requests served without the
    cloud.
    """
    row = conn.execute(
        """SELECT COUNT(*),
                  SUM(CASE WHEN success = 1 AND learning_gained > 0 THEN 1 ELSE 0 END),
                  SUM(CASE WHEN success = 1 THEN 1 ELSE 0 END),
                  AVG(confidence),
                  AVG(autonomy_used),
                  SUM(CASE WHEN type = ? THEN 1 ELSE 0 END),
                  COUNT(DISTINCT domain),
                  MAX(timestamp)
           FROM interaction
           WHERE timestamp > ?""",
        (InteractionType.AUTONOMOUS_LOCAL.value, since),
    ).fetchone()
    total = int(row[0] or 0)
    successes = int(row[2] or 0)
    local = int(row[5] or 0)
    return {
        "total_interactions": total,
        "successful_learnings": int(row[1] or 0),
        "success_rate": successes / total if total else 0.0,
        "avg_confidence": float(row[3] or 0.0),
        "avg_autonomy_used": float(row[4] or 0.0),
        "local_interactions": local,
        "cloud_interactions": total - local,
        "distinct_domains": int(row[6] or 0),
        "last_interaction_at": row[7],
    }


def query_performance(conn: sqlite3.Connection, since: str) -> Dict[str, Any]:
    """Rolling success rate and confidence used to recalibrate the learning rate."""
    row = conn.execute(
        """SELECT COUNT(*), AVG(CAST(success AS REAL)), AVG(confidence)
           FROM interaction WHERE timestamp > ?""",
        (since,),
    ).fetchone()
    return {
        "interactions": int(row[0] or 0),
        "success_rate": float(row[1] or 0.0),
        "avg_confidence": float(row[2] or 0.0),
    }


def query_activity(conn: sqlite3.Connection, since: str) -> Dict[str, Any]:
    """Domain diversity and confidence used to evolve consciousness metrics."""
    row = conn.execute(
        """SELECT COUNT(*), COUNT(DISTINCT domain), AVG(confidence), AVG(autonomy_used)
           FROM interaction WHERE timestamp > ?""",
        (since,),
    ).fetchone()
    return {
        "interactions": int(row[0] or 0),
        "distinct_domains": int(row[1] or 0),
        "avg_confidence": float(row[2] or 0.0),
        "avg_autonomy_used": float(row[3] or 0.0),
    }


def latest_metric_values(conn: sqlite3.Connection) -> Dict[str, float]:
    """Most recent ``new_value`` per evolution metric."""
    rows = conn.execute(
        """SELECT e.metric_name, e.new_value
           FROM evolution_event e
           JOIN (SELECT metric_name, MAX(timestamp) AS ts
                 FROM evolution_event GROUP BY metric_name) latest
             ON latest.metric_name = e.metric_name AND latest.ts = e.timestamp"""
    ).fetchall()
    return {row[0]: float(row[1]) for row in rows}


def count_records(conn: sqlite3.Connection) -> Dict[str, int]:
    """Get counts of each record type."""
    stats = {}
    for table, key in [
        ("memory", "memories"),
        ("learning_attempt", "learning_attempts"),
        ("domain_mastery", "mastered_domains"),
        ("interaction", "interactions"),
        ("evolution_event", "evolution_events"),
        ("thought", "thoughts"),
        ("decision", "decisions"),
    ]:
        stats[key] = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
    return stats
