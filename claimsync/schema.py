"""
Centralized SQLite Schema Initialization.

Defines the canonical schema for the local document store and provides a
single entry-point -- :func:`initialize_schema` -- that creates all required
tables idempotently.  A single-row ``schema_version`` table records the
applied version.

Tables:
    - ``users``: one profile document per identity.  Array fields are
      stored as JSON text.
    - ``system_metadata``: the singleton counter record (key ``metadata``).
    - ``trigger_events``: inbox of identity and document events awaiting
      dispatch to the triggers.
    - ``audit_log``: queryable persistence for audit events.

Usage::

    from claimsync.schema import initialize_schema

    initialize_schema(db.sqlite, StructuredLogger(name="schema"))
"""

from __future__ import annotations

import sqlite3

from claimsync.logger import StructuredLogger

__all__ = ["CURRENT_SCHEMA_VERSION", "initialize_schema"]

CURRENT_SCHEMA_VERSION: int = 1

_TABLE_DEFINITIONS: list[str] = [
    # -- single-row version tracker -------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS schema_version (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        version INTEGER NOT NULL,
        applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    # -- profile documents ----------------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS users (
        uid TEXT PRIMARY KEY,
        first_name TEXT NOT NULL DEFAULT '',
        last_name TEXT NOT NULL DEFAULT '',
        email TEXT NOT NULL DEFAULT '',
        role TEXT NOT NULL DEFAULT 'viewer'
             CHECK (role IN ('admin', 'project_manager', 'viewer')),
        status TEXT NOT NULL DEFAULT 'pending'
             CHECK (status IN ('pending', 'active', 'invited', 'rejected')),
        assigned_modules TEXT NOT NULL DEFAULT '[]',
        assigned_projects TEXT NOT NULL DEFAULT '[]',
        created_at TEXT,
        updated_at TEXT
    )
    """,
    # -- singleton counter record ---------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS system_metadata (
        key TEXT PRIMARY KEY,
        user_count INTEGER NOT NULL DEFAULT 0 CHECK (user_count >= 0),
        updated_at TEXT
    )
    """,
    # -- trigger event inbox --------------------------------------------------
    """
    CREATE TABLE IF NOT EXISTS trigger_events (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        event_type TEXT NOT NULL,
        payload TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending'
             CHECK (status IN ('pending', 'processed', 'failed')),
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        processed_at TIMESTAMP,
        error_message TEXT
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_trigger_events_status
        ON trigger_events (status, id)
    """,
    # -- persistent structured audit trail ------------------------------------
    """
    CREATE TABLE IF NOT EXISTS audit_log (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        timestamp TEXT NOT NULL,
        action TEXT NOT NULL,
        entity_type TEXT NOT NULL,
        entity_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        details TEXT DEFAULT '{}',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
]


def _get_schema_version(conn: sqlite3.Connection) -> int:
    """Return the recorded schema version, or 0 for a fresh database."""
    try:
        row = conn.execute(
            "SELECT version FROM schema_version WHERE id = 1"
        ).fetchone()
    except sqlite3.OperationalError:
        return 0
    return int(row[0]) if row else 0


def initialize_schema(conn: sqlite3.Connection, logger: StructuredLogger) -> None:
    """Create every table (idempotent) and record the schema version.

    The DDL and the version bump run in one transaction.  On failure the
    database is left untouched and the error re-raised, so the next
    startup retries from scratch.

    Args:
        conn: An open connection in autocommit mode
            (``isolation_level=None``).
        logger: Structured logger for progress and failures.
    """
    current = _get_schema_version(conn)
    if current >= CURRENT_SCHEMA_VERSION:
        logger.debug("Schema already at version %d.", current)
        return

    conn.execute("BEGIN IMMEDIATE")
    try:
        for ddl in _TABLE_DEFINITIONS:
            conn.execute(ddl)
        conn.execute(
            """
            INSERT INTO schema_version (id, version) VALUES (1, ?)
            ON CONFLICT(id) DO UPDATE SET
                version = excluded.version,
                applied_at = CURRENT_TIMESTAMP
            """,
            (CURRENT_SCHEMA_VERSION,),
        )
        conn.execute("COMMIT")
    except sqlite3.Error:
        conn.execute("ROLLBACK")
        logger.error("Schema initialization failed; rolled back.", exc_info=True)
        raise

    logger.info(
        "Schema initialized: version %d -> %d.", current, CURRENT_SCHEMA_VERSION,
    )
