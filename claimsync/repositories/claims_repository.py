"""
Claims Repository.

Reads and writes token claims through the Supabase Auth admin API.
Claims live in the identity's ``app_metadata``, which only the
service-role key can modify and which Supabase embeds in every access
token it issues afterwards.

Every write carries the complete claim set (``role``,
``assignedModules``, ``assignedProjects``); callers never send partial
patches.
"""

from __future__ import annotations

from typing import Optional

from claimsync.models.claims import TokenClaims
from claimsync.repositories.base_repository import BaseRepository


class ClaimsSyncError(Exception):
    """Raised when the identity provider rejects or cannot serve a claims call."""

    def __init__(self, message: str, uid: str, original_error: Optional[Exception] = None) -> None:
        self.message: str = message
        self.uid: str = uid
        self.original_error: Optional[Exception] = original_error
        super().__init__(self.message)


class ClaimsRepository(BaseRepository):
    """Token-claims access for identities in Supabase Auth."""

    def set_claims(self, uid: str, claims: TokenClaims) -> None:
        """Overwrite the claim set for *uid*.

        Raises:
            ClaimsSyncError: If Supabase is not configured or the admin
                API call fails.
        """
        try:
            self.supabase.auth.admin.update_user_by_id(
                uid,
                {"app_metadata": claims.to_app_metadata()},
            )
        except Exception as exc:
            raise ClaimsSyncError(
                f"Failed to set claims for {uid}: {exc}", uid=uid, original_error=exc,
            ) from exc

        self._logger.bind(uid=uid, operation="set_claims").info(
            "Claims set for %s: role=%s", uid, claims.role,
        )

    def get_claims(self, uid: str) -> Optional[TokenClaims]:
        """Return the stored claim set, or ``None`` if none was ever written.

        Raises:
            ClaimsSyncError: If Supabase is not configured or the lookup
                fails.
        """
        try:
            response = self.supabase.auth.admin.get_user_by_id(uid)
        except Exception as exc:
            raise ClaimsSyncError(
                f"Failed to read claims for {uid}: {exc}", uid=uid, original_error=exc,
            ) from exc

        user = getattr(response, "user", None)
        if user is None:
            return None
        return TokenClaims.from_app_metadata(user.app_metadata)
