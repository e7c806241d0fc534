"""
Profile Administration Service.

Backend for the admin users page: listing profiles and editing a user's
role, status, names and module/project assignments.

Architectural notes:
    - The edit and the ``DocumentUpdatedEvent`` it produces commit in one
      transaction, so the role-change trigger sees every committed edit.
    - Claims are never written here.  The role-change trigger derives them
      from the committed document; the edited user observes them after a
      forced token refresh.
"""

from __future__ import annotations

from typing import Optional

from claimsync.database import DatabaseManager
from claimsync.logger import StructuredLogger
from claimsync.models.enums import UserRole
from claimsync.models.events import DocumentUpdatedEvent
from claimsync.models.modules import unknown_modules
from claimsync.models.service_models import ServiceResult
from claimsync.models.user import ProfileUpdate, UserProfile
from claimsync.repositories.event_repository import EventRepository
from claimsync.repositories.user_repository import UserRepository
from claimsync.services.base_service import BaseService
from claimsync.utils.audit import log_audit_event


class ProfileNotFoundError(LookupError):
    """Raised when an edit targets a profile document that does not exist."""


class ProfileAdminService(BaseService):
    """Service layer for admin profile management operations."""

    def __init__(
        self,
        db: DatabaseManager,
        user_repo: UserRepository,
        events: EventRepository,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._db = db
        self._user_repo = user_repo
        self._events = events

    def get_all_users(self) -> ServiceResult[list[dict[str, object]]]:
        """Fetch every profile document for the users page."""
        try:
            documents = [profile.to_document() for profile in self._user_repo.get_all()]
        except Exception as exc:
            self._logger.error("Failed to fetch users: %s", exc)
            return ServiceResult(
                success=False,
                error=f"Database error fetching users: {exc}",
                status_code=500,
            )
        return ServiceResult(success=True, data=documents)

    def update_user_access(
        self,
        uid: str,
        update: ProfileUpdate,
        current_user: UserProfile,
    ) -> ServiceResult[dict[str, object]]:
        """
        Apply an administrator's edit to a profile document.

        Args:
            uid: Identity id of the profile to edit.
            update: Fields to change; ``None`` fields are left as-is.
            current_user: The authenticated administrator.
        """
        # --- 0. RBAC: only admins edit profiles ---
        if current_user.role != UserRole.ADMIN:
            return ServiceResult(
                success=False,
                error="Only admin users can edit user profiles.",
                status_code=403,
            )

        # --- 1. Validate module ids against the registry ---
        if update.assigned_modules is not None:
            unknown = unknown_modules(update.assigned_modules)
            if unknown:
                return ServiceResult(
                    success=False,
                    error=f"Unknown module(s): {', '.join(unknown)}.",
                    status_code=422,
                )

        fields = update.changed_fields()
        if not fields:
            return ServiceResult(success=False, error="No changes supplied.", status_code=400)

        # --- 2. Edit + update event, atomically ---
        try:
            before, after = self._apply_update(uid, fields)
        except ProfileNotFoundError:
            return ServiceResult(success=False, error="User not found.", status_code=404)
        except Exception as exc:
            self._log_for(uid, operation="profile_update").error(
                "Profile update failed for %s: %s", uid, exc,
            )
            return ServiceResult(
                success=False,
                error=f"Could not update profile: {exc}",
                status_code=500,
            )

        # --- 3. Audit trail ---
        log_audit_event(
            logger=self._logger,
            action="PROFILE_UPDATE",
            entity_type="UserProfile",
            entity_id=uid,
            user_id=current_user.uid,
            details={
                "fields": sorted(fields),
                "old_role": str(before.get("role")),
                "new_role": str(after.get("role")),
                "performed_by": current_user.full_name,
            },
            db=self._db,
        )

        return ServiceResult(success=True, data=after)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _apply_update(
        self,
        uid: str,
        fields: dict[str, object],
    ) -> tuple[dict[str, object], dict[str, object]]:
        with self._db.transaction():
            before: Optional[dict[str, object]] = self._user_repo.get_document(uid)
            if before is None:
                raise ProfileNotFoundError(uid)

            updated = self._user_repo.update_fields(uid, fields)
            if updated is None:
                raise ProfileNotFoundError(uid)
            after = updated.to_document()

            self._events.enqueue(
                DocumentUpdatedEvent(document_id=uid, before=before, after=after)
            )
        return before, after
