"""
Role-Change Trigger.

Keeps token claims in step with the authorization fields of a profile
document (``role``, ``assignedModules``, ``assignedProjects``).  Claims
are always re-derived from the latest *after* snapshot and written as a
full set, so repeated or out-of-order deliveries converge on the newest
state.

Updates that leave all three fields unchanged (list order ignored) do
not write claims: every claims write invalidates the user's cached
token, so no-op writes are avoided.

No retry is performed here.  A failed write is logged and audited; the
reconciliation sweep re-derives claims from the stored profile.
"""

from __future__ import annotations

from pydantic import ValidationError

from claimsync.database import DatabaseManager
from claimsync.logger import StructuredLogger
from claimsync.models.claims import TokenClaims, authorization_changed
from claimsync.models.enums import TriggerName
from claimsync.models.events import DocumentUpdatedEvent
from claimsync.models.service_models import TriggerResult
from claimsync.repositories.claims_repository import ClaimsRepository, ClaimsSyncError
from claimsync.services.base_service import BaseService
from claimsync.utils.audit import SYSTEM_ACTOR, log_audit_event

USERS_COLLECTION: str = "users"


class RoleChangeTriggerService(BaseService):
    """Mirrors profile authorization changes into token claims."""

    trigger = TriggerName.ROLE_CHANGE

    def __init__(
        self,
        db: DatabaseManager,
        claims_repo: ClaimsRepository,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._db = db
        self._claims_repo = claims_repo

    def handle(self, event: DocumentUpdatedEvent) -> TriggerResult:
        """Process one profile-document update."""
        uid = event.document_id
        log = self._log_for(uid)

        if event.collection != USERS_COLLECTION or event.after is None:
            log.debug(
                "[role_change] Ignoring update %s/%s with no profile state.",
                event.collection,
                uid,
            )
            return TriggerResult(trigger=TriggerName.ROLE_CHANGE, uid=uid, success=True)

        if not authorization_changed(event.before, event.after):
            log.debug(
                "[role_change] No authorization change for %s; claims untouched.",
                uid,
            )
            return TriggerResult(trigger=TriggerName.ROLE_CHANGE, uid=uid, success=True)

        try:
            claims = TokenClaims.from_document(event.after)
        except ValidationError as exc:
            log.error(
                "[role_change] Profile %s holds invalid authorization data: %s",
                uid,
                exc,
                operation="derive_claims",
            )
            return TriggerResult(
                trigger=TriggerName.ROLE_CHANGE, uid=uid, success=False,
                error=f"Invalid authorization data: {exc}",
            )

        try:
            self._claims_repo.set_claims(uid, claims)
        except ClaimsSyncError as exc:
            log.error("[role_change] Failed for %s: %s", uid, exc, operation="set_claims")
            log_audit_event(
                logger=self._logger,
                action="CLAIMS_SYNC_FAILED",
                entity_type="TokenClaims",
                entity_id=uid,
                user_id=SYSTEM_ACTOR,
                details={"trigger": str(TriggerName.ROLE_CHANGE), "role": str(claims.role)},
                db=self._db,
            )
            return TriggerResult(
                trigger=TriggerName.ROLE_CHANGE, uid=uid, success=False, error=str(exc),
            )

        log_audit_event(
            logger=self._logger,
            action="CLAIMS_SET",
            entity_type="TokenClaims",
            entity_id=uid,
            user_id=SYSTEM_ACTOR,
            details={
                "role": str(claims.role),
                "assigned_modules": claims.assigned_modules,
                "assigned_projects": claims.assigned_projects,
            },
            db=self._db,
        )
        log.info("[role_change] Updated claims for UID: %s", uid)
        return TriggerResult(
            trigger=TriggerName.ROLE_CHANGE, uid=uid, success=True, claims_written=True,
        )
