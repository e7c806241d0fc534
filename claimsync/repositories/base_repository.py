"""
Base Repository.

Provides shared infrastructure for all repositories:
- DatabaseManager reference (SQLite document store + Supabase)
- Logger reference
- Convenience properties for accessing clients
"""

from __future__ import annotations

import sqlite3

from supabase import Client as SupabaseClient

from claimsync.database import DatabaseManager
from claimsync.logger import StructuredLogger

# Server-assigned timestamp, ISO-8601 UTC with milliseconds.
SERVER_TIMESTAMP_SQL: str = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"


class BaseRepository:
    """Base class for all repositories. Receives dependencies via __init__."""

    TABLE: str = ""

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        self._db = db
        self._logger = logger

    @property
    def supabase(self) -> SupabaseClient:
        """Returns the Supabase client for identity-provider operations."""
        return self._db.supabase

    @property
    def sqlite(self) -> sqlite3.Connection:
        """Returns the SQLite connection for document-store operations."""
        return self._db.sqlite
