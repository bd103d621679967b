"""Database schema and migration logic for the learning ledger.

Contains:
- Schema DDL (SCHEMA)
- Schema version tracking (SCHEMA_VERSION)
- Table allowlist (ALLOWED_TABLES, validate_table_name)
- Database initialization (init_db)
- Schema migration (migrate_schema)
"""

import logging
import os
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

# Schema version for migrations
SCHEMA_VERSION = 2  # v2: interaction.domain column

# Allowed table names for SQL queries (security: prevents SQL injection via table names)
ALLOWED_TABLES = frozenset(
    {
        "memory",
        "learning_attempt",
        "evolution_event",
        "interaction",
        "thought",
        "decision",
        "domain_mastery",
        "schema_version",
    }
)


def validate_table_name(table: str) -> str:
    """Validate table name against allowlist to prevent SQL injection.

    Raises:
        ValueError: If table name is not in allowlist
    """
    if table not in ALLOWED_TABLES:
        raise ValueError(f"Invalid table name: {table}")
    return table


SCHEMA = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

-- Retained domain knowledge (mutable counters: access_count, importance)
CREATE TABLE IF NOT EXISTS memory (
    id TEXT PRIMARY KEY,
    domain TEXT NOT NULL,
    content TEXT NOT NULL,
    importance REAL NOT NULL DEFAULT 0.5,
    confidence REAL NOT NULL DEFAULT 0.5,
    access_count INTEGER NOT NULL DEFAULT 0,
    last_accessed TEXT,
    created_at TEXT NOT NULL,
    source TEXT NOT NULL DEFAULT 'cloud'
);
CREATE INDEX IF NOT EXISTS idx_memory_domain ON memory(domain);
CREATE INDEX IF NOT EXISTS idx_memory_rank ON memory(domain, importance DESC, access_count DESC);
CREATE INDEX IF NOT EXISTS idx_memory_created ON memory(created_at);

-- One row per cloud-assisted interaction
CREATE TABLE IF NOT EXISTS learning_attempt (
    id TEXT PRIMARY KEY,
    domain TEXT NOT NULL,
    question TEXT NOT NULL,
    cloud_response TEXT NOT NULL,
    local_analysis TEXT,
    success_rate REAL NOT NULL,
    mastery_level REAL NOT NULL,
    attempts INTEGER NOT NULL,
    last_attempt TEXT NOT NULL,
    mastered INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_learning_domain ON learning_attempt(domain, last_attempt);

-- Immutable audit trail for tracked scalars
CREATE TABLE IF NOT EXISTS evolution_event (
    id TEXT PRIMARY KEY,
    metric_name TEXT NOT NULL,
    previous_value REAL NOT NULL,
    new_value REAL NOT NULL,
    trigger TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    significance REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_evolution_metric ON evolution_event(metric_name, timestamp);

CREATE TRIGGER IF NOT EXISTS evolution_event_no_update
BEFORE UPDATE ON evolution_event
BEGIN
    SELECT RAISE(ABORT, 'evolution_event rows are immutable');
END;

CREATE TRIGGER IF NOT EXISTS evolution_event_no_delete
BEFORE DELETE ON evolution_event
BEGIN
    SELECT RAISE(ABORT, 'evolution_event rows are immutable');
END;

-- Every served request
CREATE TABLE IF NOT EXISTS interaction (
    id TEXT PRIMARY KEY,
    type TEXT NOT NULL,
    domain TEXT NOT NULL DEFAULT '',
    input TEXT NOT NULL,   -- versioned payload envelope
    output TEXT NOT NULL,  -- versioned payload envelope
    confidence REAL NOT NULL,
    learning_gained REAL NOT NULL DEFAULT 0.0,
    autonomy_used REAL NOT NULL,
    timestamp TEXT NOT NULL,
    success INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_interaction_timestamp ON interaction(timestamp);

-- Periodic autonomous loop output
CREATE TABLE IF NOT EXISTS thought (
    id TEXT PRIMARY KEY,
    timestamp TEXT NOT NULL,
    strategy TEXT NOT NULL,
    confidence REAL NOT NULL,
    priority REAL NOT NULL,
    reasoning TEXT NOT NULL,
    actions TEXT NOT NULL,  -- versioned payload envelope
    context TEXT NOT NULL   -- versioned payload envelope
);
CREATE INDEX IF NOT EXISTS idx_thought_timestamp ON thought(timestamp);

-- Explicit decisions; success is filled by an out-of-band evaluator
CREATE TABLE IF NOT EXISTS decision (
    id TEXT PRIMARY KEY,
    timestamp TEXT NOT NULL,
    decision TEXT NOT NULL,
    strategy TEXT NOT NULL,
    confidence REAL NOT NULL,
    reasoning TEXT NOT NULL,
    context TEXT NOT NULL,  -- versioned payload envelope
    predicted_outcome TEXT NOT NULL,
    success INTEGER
);
CREATE INDEX IF NOT EXISTS idx_decision_timestamp ON decision(timestamp);

-- One-way mastered latch, one row per mastered domain
CREATE TABLE IF NOT EXISTS domain_mastery (
    domain TEXT PRIMARY KEY,
    mastery_level REAL NOT NULL,
    mastered_at TEXT NOT NULL
);
"""


def init_db(conn: sqlite3.Connection, db_path: Path) -> None:
    """Initialize the database schema.

    Args:
        conn: Database connection.
        db_path: Path to the database file (for permissions).
    """
    migrate_schema(conn)

    conn.executescript(SCHEMA)

    row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
    if row is None:
        conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
    else:
        conn.execute("UPDATE schema_version SET version = ?", (SCHEMA_VERSION,))

    conn.commit()

    # Owner read/write only
    try:
        os.chmod(db_path, 0o600)
    except OSError as e:
        logger.warning(f"Could not set secure permissions: {e}")


def migrate_schema(conn: sqlite3.Connection) -> None:
    """Run schema migrations for existing databases.

    Handles adding new columns to existing tables. Fresh databases have no
    tables yet and are left to SCHEMA.
    """
    tables = {
        row[0]
        for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    }
    if "schema_version" not in tables:
        return

    row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
    current = row[0] if row else 0
    if current >= SCHEMA_VERSION:
        return

    logger.info(f"Migrating ledger schema from v{current} to v{SCHEMA_VERSION}")

    if "interaction" in tables:
        columns = {r[1] for r in conn.execute("PRAGMA table_info(interaction)").fetchall()}
        if "domain" not in columns:
            conn.execute("ALTER TABLE interaction ADD COLUMN domain TEXT NOT NULL DEFAULT ''")
            logger.info("Added interaction.domain column")

    conn.commit()
