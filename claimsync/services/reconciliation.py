"""
Reconciliation Service.

Repairs the drift the triggers cannot repair on their own:

- Claims that never landed (signup claims write failed after the profile
  was created, or a role-change write failed).  The sweep re-derives
  claims from every stored profile and rewrites the ones that differ.
- ``userCount`` drift against the number of profile documents, for
  example after a failed deletion batch left an orphaned profile.
"""

from __future__ import annotations

from typing import Optional

from claimsync.database import DatabaseManager
from claimsync.logger import StructuredLogger
from claimsync.models.claims import TokenClaims
from claimsync.models.service_models import ReconciliationReport
from claimsync.models.user import UserProfile
from claimsync.repositories.claims_repository import ClaimsRepository, ClaimsSyncError
from claimsync.repositories.metadata_repository import MetadataRepository
from claimsync.repositories.user_repository import UserRepository
from claimsync.services.base_service import BaseService
from claimsync.utils.audit import SYSTEM_ACTOR, log_audit_event


class ReconciliationService(BaseService):
    """Sweeps profiles against token claims and the user counter."""

    def __init__(
        self,
        db: DatabaseManager,
        user_repo: UserRepository,
        metadata_repo: MetadataRepository,
        claims_repo: ClaimsRepository,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._db = db
        self._user_repo = user_repo
        self._metadata_repo = metadata_repo
        self._claims_repo = claims_repo

    def reconcile_claims(self) -> ReconciliationReport:
        """Rewrite every identity's claims that differ from its profile."""
        report = ReconciliationReport()
        for profile in self._user_repo.get_all():
            report.checked += 1
            outcome = self._reconcile_profile(profile)
            if outcome is True:
                report.updated.append(profile.uid)
            elif outcome is None:
                report.failed.append(profile.uid)

        self._logger.info(
            "Claims reconciliation: %d checked, %d updated, %d failed.",
            report.checked,
            len(report.updated),
            len(report.failed),
            extra={"operation": "reconcile_claims"},
        )
        return report

    def reconcile_user(self, uid: str) -> Optional[bool]:
        """Reconcile one identity.

        Returns:
            ``True`` if claims were rewritten, ``False`` if already in
            sync or no profile exists, ``None`` on failure.
        """
        profile = self._user_repo.get_by_id(uid)
        if profile is None:
            self._log_for(uid).warning("No profile for %s; nothing to reconcile.", uid)
            return False
        return self._reconcile_profile(profile)

    def audit_user_count(self, repair: bool = False) -> int:
        """Compare ``userCount`` with the number of profile documents.

        Args:
            repair: When ``True``, reset ``userCount`` to the profile count.

        Returns:
            The drift (``userCount - profiles``) observed before any repair.
        """
        with self._db.transaction():
            stored = self._metadata_repo.get_user_count()
            actual = self._user_repo.count()
            drift = stored - actual
            if drift and repair:
                self._metadata_repo.set_user_count(actual)

        if drift == 0:
            self._logger.info("userCount matches %d profile(s).", actual)
            return 0

        self._logger.warning(
            "userCount drift: stored %d, profiles %d (drift %+d)%s",
            stored,
            actual,
            drift,
            "; repaired" if repair else "",
            extra={"event": "COUNTER_DRIFT", "operation": "audit_user_count"},
        )
        if repair:
            log_audit_event(
                logger=self._logger,
                action="COUNTER_REPAIR",
                entity_type="SystemMetadata",
                entity_id="system/metadata",
                user_id=SYSTEM_ACTOR,
                details={"old_count": stored, "new_count": actual},
                db=self._db,
            )
        return drift

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _reconcile_profile(self, profile: UserProfile) -> Optional[bool]:
        uid = profile.uid
        expected = TokenClaims.from_profile(profile)
        try:
            current = self._claims_repo.get_claims(uid)
            if expected.matches(current):
                return False
            self._claims_repo.set_claims(uid, expected)
        except ClaimsSyncError as exc:
            self._log_for(uid, operation="reconcile_claims").error(
                "Reconciliation failed for %s: %s",
                uid,
                exc,
            )
            return None

        log_audit_event(
            logger=self._logger,
            action="CLAIMS_RECONCILE",
            entity_type="TokenClaims",
            entity_id=uid,
            user_id=SYSTEM_ACTOR,
            details={
                "previous_role": str(current.role) if current else None,
                "role": str(expected.role),
            },
            db=self._db,
        )
        return True
