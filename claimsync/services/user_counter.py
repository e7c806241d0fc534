"""
User Counter Service.

The counter transaction: an atomic read-classify-increment over the
``system/metadata`` record that decides first-user status.

Under N concurrent signups exactly one caller observes an empty counter,
because the read and the write run inside one ``BEGIN IMMEDIATE``
transaction.  A plain read-then-write would let two racing signups both
read 0 and both become admin.

Lock contention from another process surfaces as
``sqlite3.OperationalError("database is locked")``; it is retried with
exponential backoff up to ``COUNTER_TXN_MAX_ATTEMPTS`` before
:class:`CounterTransactionError` is raised.
"""

from __future__ import annotations

import sqlite3
import time
from typing import Callable, Optional

from claimsync.config import AppConfig
from claimsync.database import DatabaseManager
from claimsync.logger import StructuredLogger
from claimsync.repositories.metadata_repository import MetadataRepository
from claimsync.services.base_service import BaseService

_CONTENTION_MARKERS: tuple[str, ...] = ("database is locked", "database is busy")


class CounterTransactionError(Exception):
    """The counter transaction could not be committed."""

    def __init__(self, message: str, attempts: int, original_error: Optional[Exception] = None) -> None:
        self.message: str = message
        self.attempts: int = attempts
        self.original_error: Optional[Exception] = original_error
        super().__init__(self.message)


def _is_contention(exc: sqlite3.OperationalError) -> bool:
    text = str(exc).lower()
    return any(marker in text for marker in _CONTENTION_MARKERS)


class UserCounterService(BaseService):
    """Transactional access to ``userCount``."""

    def __init__(
        self,
        db: DatabaseManager,
        repo: MetadataRepository,
        config: AppConfig,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._db = db
        self._repo = repo
        self._max_attempts: int = config.COUNTER_TXN_MAX_ATTEMPTS
        self._backoff_s: float = config.COUNTER_TXN_BACKOFF_S

    def register_signup(
        self,
        already_registered: Optional[Callable[[], bool]] = None,
    ) -> Optional[bool]:
        """Increment ``userCount`` and report whether this was the first user.

        Args:
            already_registered: Evaluated inside the counter transaction,
                before the read.  When it returns ``True`` the signup is a
                redelivery and nothing is written.

        Returns:
            ``True`` iff the counter was 0 (or absent) before this call,
            ``None`` when *already_registered* reported a redelivery.

        Raises:
            CounterTransactionError: After retries are exhausted, or on a
                non-contention database error.  Nothing was written.
        """
        log = self._logger.bind(operation="counter_increment")
        attempt = 0
        while True:
            attempt += 1
            try:
                with self._db.transaction():
                    if already_registered is not None and already_registered():
                        return None
                    current_count = self._repo.get_user_count()
                    self._repo.set_user_count(current_count + 1)
                log.debug(
                    "Counter transaction committed: %d -> %d (attempt %d)",
                    current_count,
                    current_count + 1,
                    attempt,
                )
                return current_count == 0
            except sqlite3.OperationalError as exc:
                if not _is_contention(exc):
                    raise CounterTransactionError(
                        f"Counter transaction failed: {exc}", attempts=attempt, original_error=exc,
                    ) from exc
                if attempt >= self._max_attempts:
                    raise CounterTransactionError(
                        f"Counter transaction aborted after {attempt} attempts: {exc}",
                        attempts=attempt,
                        original_error=exc,
                    ) from exc
                delay = self._backoff_s * (2 ** (attempt - 1))
                log.warning(
                    "Counter transaction contention (attempt %d/%d); retrying in %.3fs",
                    attempt,
                    self._max_attempts,
                    delay,
                )
                time.sleep(delay)
            except sqlite3.Error as exc:
                raise CounterTransactionError(
                    f"Counter transaction failed: {exc}", attempts=attempt, original_error=exc,
                ) from exc

    def release_slot(self, uid: str) -> None:
        """Decrement ``userCount`` by one, floored at zero.

        Must run inside the caller's transaction so the decrement commits
        together with the profile delete.  A decrement that would go below
        zero (for example a duplicated deletion event) is clamped and
        logged as ``COUNTER_UNDERFLOW`` so monitoring can alert on it.
        An absent record is left absent.
        """
        log = self._log_for(uid, operation="counter_decrement")
        metadata = self._repo.get_metadata()
        if metadata is None:
            log.warning(
                "Counter record absent during deletion of %s; nothing to decrement.",
                uid,
                event="COUNTER_UNDERFLOW",
            )
            return

        if metadata.user_count <= 0:
            log.warning(
                "Counter already at zero during deletion of %s; clamping.",
                uid,
                event="COUNTER_UNDERFLOW",
            )
            return

        self._repo.set_user_count(metadata.user_count - 1)

    def current_count(self) -> int:
        return self._repo.get_user_count()
