"""
Database Abstraction Layer.

Owns the two external collaborators of the trigger pipeline:

- **SQLite (local document store)**: holds the ``users`` profile
  documents, the ``system/metadata`` counter record, the trigger event
  inbox and the audit log.  Opened in autocommit mode; every write runs
  inside :meth:`DatabaseManager.transaction`, which issues
  ``BEGIN IMMEDIATE`` so that read-modify-write sequences are
  serialisable across threads (shared write lock) and across processes
  (SQLite reserved lock).

- **Supabase (identity provider)**: the service-role client used for the
  Auth admin API, where token claims live as ``app_metadata``.

This module only manages the raw *connections* and transaction scope; it
contains no query logic.

Usage (dependency injection at startup)::

    db = DatabaseManager(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_SERVICE_ROLE_KEY.get_secret_value(),
        sqlite_path=Path(config.SQLITE_PATH),
        logger=StructuredLogger(name="database"),
    )
"""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from supabase import Client as SupabaseClient, create_client

from claimsync.logger import StructuredLogger


class DatabaseManager:
    """Manages the local SQLite document store and the Supabase client.

    When ``supabase_url`` or ``supabase_key`` is empty the Supabase client
    is **not** created.  Accessing :pyattr:`supabase` then raises
    ``RuntimeError``, which the claims repository converts into a logged
    claims-sync failure.

    Parameters
    ----------
    supabase_url:
        The Supabase project URL (e.g. ``https://xyz.supabase.co``).
    supabase_key:
        The Supabase service-role key (required by the Auth admin API).
    sqlite_path:
        Filesystem path for the SQLite database file.
    logger:
        A ``StructuredLogger`` instance for structured JSON log output.
    busy_timeout_s:
        Seconds a connection waits on another process's lock before
        raising ``database is locked``.
    """

    def __init__(
        self,
        supabase_url: str,
        supabase_key: str,
        sqlite_path: Path,
        logger: StructuredLogger,
        busy_timeout_s: float = 5.0,
    ) -> None:
        self._logger: StructuredLogger = logger
        self._write_lock: threading.RLock = threading.RLock()
        self._in_transaction: bool = False

        self._supabase: Optional[SupabaseClient] = None
        if supabase_url and supabase_key:
            try:
                self._supabase = create_client(supabase_url, supabase_key)
                self._logger.info("Supabase client initialized.")
            except (ValueError, TypeError) as exc:
                self._logger.warning(
                    "Supabase credential format error: %s. Claims writes disabled.",
                    exc,
                )
            except Exception as exc:
                self._logger.error(
                    "Unexpected Supabase initialization failure: %s. "
                    "Claims writes disabled.",
                    exc,
                    exc_info=True,
                )
        else:
            self._logger.warning(
                "Supabase credentials not configured; claims writes disabled."
            )

        self._sqlite_conn: sqlite3.Connection = self._connect_sqlite(
            sqlite_path, busy_timeout_s,
        )

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------

    @property
    def supabase(self) -> SupabaseClient:
        """Return the initialised Supabase client.

        Raises
        ------
        RuntimeError
            If the Supabase client was not initialised.
        """
        if self._supabase is None:
            raise RuntimeError(
                "Supabase client is not initialised. "
                "Set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY."
            )
        return self._supabase

    @property
    def is_online(self) -> bool:
        """``True`` when the Supabase client is available."""
        return self._supabase is not None

    @property
    def sqlite(self) -> sqlite3.Connection:
        """Return the initialised SQLite connection."""
        return self._sqlite_conn

    @property
    def in_transaction(self) -> bool:
        """``True`` while a :meth:`transaction` block is active."""
        return self._in_transaction

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Run the enclosed block as one atomic, serialisable transaction.

        Acquires the write lock, then ``BEGIN IMMEDIATE`` takes SQLite's
        reserved lock before the first read, so no other writer (thread or
        process) can interleave between a read and the write that depends
        on it.  On normal exit the transaction commits; on exception it is
        rolled back and the error re-raised.

        Re-entrant: a nested ``transaction()`` joins the outer one, so
        repositories can wrap their own writes and still be composed into
        a larger atomic batch.

        Raises
        ------
        sqlite3.OperationalError
            ``database is locked`` when another process holds the lock
            past the busy timeout.  Callers that need retries (the counter
            transaction) catch this.
        """
        with self._write_lock:
            if self._in_transaction:
                yield self._sqlite_conn
                return

            self._sqlite_conn.execute("BEGIN IMMEDIATE")
            self._in_transaction = True
            try:
                yield self._sqlite_conn
                self._sqlite_conn.execute("COMMIT")
            except BaseException:
                self._sqlite_conn.execute("ROLLBACK")
                self._logger.debug("Transaction rolled back.", exc_info=True)
                raise
            finally:
                self._in_transaction = False

    # ------------------------------------------------------------------
    # Lifecycle helpers
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the local SQLite connection.

        Safe to call multiple times; subsequent calls are no-ops.
        """
        with self._write_lock:
            try:
                self._sqlite_conn.close()
                self._logger.info("SQLite connection closed.")
            except sqlite3.ProgrammingError:
                pass

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _connect_sqlite(self, path: Path, busy_timeout_s: float) -> sqlite3.Connection:
        """Open (or create) the SQLite database in autocommit mode.

        ``isolation_level=None`` disables the driver's implicit
        transactions; transaction scope is controlled exclusively by
        :meth:`transaction`.

        Raises
        ------
        PermissionError
            If the OS denies access to the database file or its directory.
        """
        try:
            conn = sqlite3.connect(
                str(path),
                timeout=busy_timeout_s,
                isolation_level=None,
                check_same_thread=False,
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA foreign_keys = ON;")
            self._logger.info("SQLite database opened at %s", path)
            return conn
        except PermissionError as exc:
            msg = (
                f"Cannot open the local database at '{path}'. "
                "The file or its directory may be read-only or locked by "
                "another process."
            )
            self._logger.error(msg)
            raise PermissionError(msg) from exc
