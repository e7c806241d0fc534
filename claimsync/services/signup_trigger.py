"""
Signup Trigger.

Runs once per newly created identity: decides the role through the
counter transaction, writes the profile document, then sets the token
claims.

Step order matters.  The counter transaction runs first; if it cannot
commit, no profile is created and the failure is logged for manual
reconciliation.  The profile is written before the claims so that a
claims failure leaves a correct profile behind: the claims write is
retried with backoff and, if it still fails, recorded as
``CLAIMS_SYNC_FAILED`` for the reconciliation sweep to repair.  The
role-change trigger cannot repair it because a creation is not an update.

Delivery is at-least-once.  A redelivered event finds the profile already
written inside the counter transaction; it neither increments the counter
nor rebuilds the profile, and only re-applies claims from the stored
document.
"""

from __future__ import annotations

import sqlite3
import time

from claimsync.config import AppConfig
from claimsync.database import DatabaseManager
from claimsync.logger import StructuredLogger
from claimsync.models.claims import TokenClaims
from claimsync.models.enums import TriggerName, UserRole, UserStatus
from claimsync.models.events import IdentityCreatedEvent
from claimsync.models.service_models import TriggerResult
from claimsync.models.user import UserProfile
from claimsync.repositories.claims_repository import ClaimsRepository, ClaimsSyncError
from claimsync.repositories.user_repository import UserRepository
from claimsync.services.base_service import BaseService
from claimsync.services.user_counter import CounterTransactionError, UserCounterService
from claimsync.utils.audit import SYSTEM_ACTOR, log_audit_event
from claimsync.utils.names import derive_names


class SignupTriggerService(BaseService):
    """Initialises a profile and its token claims for a new identity."""

    trigger = TriggerName.SIGNUP

    def __init__(
        self,
        db: DatabaseManager,
        counter: UserCounterService,
        user_repo: UserRepository,
        claims_repo: ClaimsRepository,
        config: AppConfig,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._db = db
        self._counter = counter
        self._user_repo = user_repo
        self._claims_repo = claims_repo
        self._default_admin_modules: list[str] = list(config.DEFAULT_ADMIN_MODULES)
        self._claims_max_attempts: int = config.CLAIMS_SET_MAX_ATTEMPTS
        self._claims_backoff_s: float = config.CLAIMS_SET_BACKOFF_S

    def handle(self, event: IdentityCreatedEvent) -> TriggerResult:
        """Process one identity-created event.

        Expected failures are logged and reported in the result; the
        dispatcher catches anything unexpected.
        """
        uid = event.uid
        log = self._log_for(uid)
        log.info("[signup] Processing UID %s", uid)

        # --- 1. Counter transaction ---
        try:
            is_first_user = self._counter.register_signup(
                already_registered=lambda: self._user_repo.get_by_id(uid) is not None,
            )
        except CounterTransactionError as exc:
            log.error(
                "[signup] Counter transaction failed for %s after %d attempt(s): %s. "
                "No profile created.",
                uid,
                exc.attempts,
                exc,
                operation="counter_increment",
            )
            return self._failed(uid, f"Counter transaction failed: {exc}")

        if is_first_user is None:
            return self._handle_redelivery(uid)

        # --- 2-6. Build and write the profile document ---
        profile = self.build_profile(event, is_first_user)
        try:
            self._user_repo.merge(profile)
        except sqlite3.Error as exc:
            log.error(
                "[signup] Profile write failed for %s: %s. Claims not set.",
                uid,
                exc,
                exc_info=True,
                operation="profile_write",
            )
            return self._failed(uid, f"Profile write failed: {exc}")

        log_audit_event(
            logger=self._logger,
            action="PROFILE_CREATE",
            entity_type="UserProfile",
            entity_id=uid,
            user_id=SYSTEM_ACTOR,
            details={"role": str(profile.role), "is_first_user": is_first_user},
            db=self._db,
        )

        # --- 7. Token claims ---
        result = self._apply_claims(profile)
        if result.success:
            log.info("[signup] Successfully set up %s as %s", uid, profile.role)
        return result

    def build_profile(self, event: IdentityCreatedEvent, is_first_user: bool) -> UserProfile:
        """Derive the initial profile document for *event*."""
        first_name, last_name = derive_names(event.display_name, event.email)
        return UserProfile(
            uid=event.uid,
            first_name=first_name,
            last_name=last_name,
            email=event.email or "",
            role=UserRole.ADMIN if is_first_user else UserRole.VIEWER,
            status=UserStatus.ACTIVE,
            assigned_modules=list(self._default_admin_modules) if is_first_user else [],
            assigned_projects=[],
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _handle_redelivery(self, uid: str) -> TriggerResult:
        """A profile already exists: counter and profile stay as they are.

        Claims are re-applied from the stored profile, which repairs a
        claims write that failed on the first delivery.
        """
        profile = self._user_repo.get_by_id(uid)
        if profile is None:
            return self._failed(uid, "Profile disappeared during redelivery.")
        self._log_for(uid).info(
            "[signup] Profile for %s already exists; re-applying claims only.",
            uid,
            event="SIGNUP_REDELIVERED",
        )
        return self._apply_claims(profile)

    def _apply_claims(self, profile: UserProfile) -> TriggerResult:
        uid = profile.uid
        claims = TokenClaims.from_profile(profile)
        if self._set_claims_with_retry(uid, claims):
            return TriggerResult(
                trigger=TriggerName.SIGNUP, uid=uid, success=True, claims_written=True,
            )

        log_audit_event(
            logger=self._logger,
            action="CLAIMS_SYNC_FAILED",
            entity_type="TokenClaims",
            entity_id=uid,
            user_id=SYSTEM_ACTOR,
            details={"trigger": str(TriggerName.SIGNUP), "role": str(claims.role)},
            db=self._db,
        )
        return self._failed(uid, "Profile created but claims could not be set.")

    def _set_claims_with_retry(self, uid: str, claims: TokenClaims) -> bool:
        log = self._log_for(uid, operation="set_claims")
        for attempt in range(1, self._claims_max_attempts + 1):
            try:
                self._claims_repo.set_claims(uid, claims)
                return True
            except ClaimsSyncError as exc:
                if attempt >= self._claims_max_attempts:
                    log.error(
                        "[signup] Claims write failed for %s after %d attempt(s): %s",
                        uid,
                        attempt,
                        exc,
                    )
                    return False
                delay = self._claims_backoff_s * (2 ** (attempt - 1))
                log.warning(
                    "[signup] Claims write failed for %s (attempt %d/%d); retrying in %.2fs",
                    uid,
                    attempt,
                    self._claims_max_attempts,
                    delay,
                )
                time.sleep(delay)
        return False

    @staticmethod
    def _failed(uid: str, error: str) -> TriggerResult:
        return TriggerResult(trigger=TriggerName.SIGNUP, uid=uid, success=False, error=error)
