"""
Deletion Trigger.

Removes the profile document of a deleted identity and decrements
``userCount`` in one atomic batch: both commit or neither does.  A
failed batch leaves an orphaned profile and an unchanged counter, which
administrative cleanup reconciles.  No automatic retry.
"""

from __future__ import annotations

import sqlite3

from claimsync.database import DatabaseManager
from claimsync.logger import StructuredLogger
from claimsync.models.enums import TriggerName
from claimsync.models.events import IdentityDeletedEvent
from claimsync.models.service_models import TriggerResult
from claimsync.repositories.user_repository import UserRepository
from claimsync.services.base_service import BaseService
from claimsync.services.user_counter import UserCounterService
from claimsync.utils.audit import SYSTEM_ACTOR, log_audit_event


class DeletionTriggerService(BaseService):
    """Deletes a profile and releases its counter slot atomically."""

    trigger = TriggerName.DELETION

    def __init__(
        self,
        db: DatabaseManager,
        user_repo: UserRepository,
        counter: UserCounterService,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._db = db
        self._user_repo = user_repo
        self._counter = counter

    def handle(self, event: IdentityDeletedEvent) -> TriggerResult:
        """Process one identity-deleted event."""
        uid = event.uid
        log = self._log_for(uid)
        log.info("[deletion] Processing UID %s", uid)

        try:
            with self._db.transaction():
                removed = self._user_repo.delete(uid)
                self._counter.release_slot(uid)
        except sqlite3.Error as exc:
            log.error(
                "[deletion] Batch failed for %s: %s. Profile and counter unchanged.",
                uid,
                exc,
                exc_info=True,
                operation="delete_batch",
            )
            return TriggerResult(
                trigger=TriggerName.DELETION, uid=uid, success=False, error=str(exc),
            )

        if not removed:
            log.warning("[deletion] No profile document existed for %s.", uid)

        log_audit_event(
            logger=self._logger,
            action="PROFILE_DELETE",
            entity_type="UserProfile",
            entity_id=uid,
            user_id=SYSTEM_ACTOR,
            details={"profile_existed": removed},
            db=self._db,
        )
        return TriggerResult(trigger=TriggerName.DELETION, uid=uid, success=True)
