"""
Client Claims Reader.

Consumer side of the claims pipeline.  Claims travel inside the signed
access token and are cached with it, so a client only sees claims the
triggers wrote after it refreshes the token.  After any profile edit that
may affect authorization the client must call :meth:`refresh_claims`,
which bypasses the cache.  There is no push notification of claims
changes; staleness until the next forced refresh is expected.
"""

from __future__ import annotations

from typing import Optional

from claimsync.database import DatabaseManager
from claimsync.logger import StructuredLogger
from claimsync.models.claims import TokenClaims
from claimsync.models.enums import UserRole
from claimsync.services.base_service import BaseService
from claimsync.session import SessionManager


class ClaimsReaderService(BaseService):
    """Reads the signed-in user's claims, refreshing the token on demand."""

    def __init__(
        self,
        db: DatabaseManager,
        session: SessionManager,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._db = db
        self._session = session

    def refresh_claims(self) -> Optional[TokenClaims]:
        """Force a token refresh and return the claims it carries.

        Transient network errors keep the cached claims.  Any other
        refresh failure means the refresh token is no longer valid: the
        session is cleared and ``None`` returned.
        """
        if not self._session.is_authenticated:
            return None
        refresh_token = self._session.refresh_token

        try:
            response = self._db.supabase.auth.refresh_session(refresh_token)
        except RuntimeError:
            self._logger.warning("Supabase client not initialised; keeping cached claims.")
            return self._session.claims
        except (ConnectionError, TimeoutError):
            self._logger.debug("Network error during forced token refresh; keeping cached claims.")
            return self._session.claims
        except Exception as exc:
            self._log_for(self._session.uid).warning(
                "Forced token refresh failed: %s. Clearing session.", exc,
                event="SESSION_EXPIRED",
            )
            self._session.clear()
            return None

        new_session = response.session
        user = response.user
        if new_session is None or user is None:
            return self._session.claims

        self._session.set_tokens(
            uid=user.id,
            refresh_token=new_session.refresh_token,
            expires_at=new_session.expires_at,
        )
        claims = TokenClaims.from_app_metadata(user.app_metadata)
        self._session.set_claims(claims)
        self._log_for(user.id, operation="refresh_claims").info(
            "Token refreshed; claims role=%s", claims.role if claims else None,
        )
        return claims

    def get_claims(self, force_refresh: bool = False) -> Optional[TokenClaims]:
        """Return cached claims.

        Refreshes when forced, when no claims are cached, or when the access
        token carrying the cached claims has expired.
        """
        if force_refresh or self._session.claims is None or self._session.is_token_expired:
            return self.refresh_claims()
        return self._session.claims

    def can_access_module(self, module_id: str) -> bool:
        """Module gating from cached claims.  Admins see every module."""
        claims = self._session.claims
        if claims is None:
            return False
        if claims.role == UserRole.ADMIN:
            return True
        return module_id in claims.assigned_modules
