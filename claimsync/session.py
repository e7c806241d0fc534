"""
Client Session State.

Provides an injectable ``SessionManager`` holding the signed-in user's
Supabase tokens and the token claims last observed for them.

Claims are cached with the token: they only change for the client when
the token is refreshed, which ``ClaimsReaderService`` forces after any
profile edit that may affect authorization.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Optional

from claimsync.models.claims import TokenClaims


class SessionManager:
    """Injectable holder for the current session's tokens and claims."""

    def __init__(self) -> None:
        self._lock: threading.RLock = threading.RLock()
        self._uid: Optional[str] = None
        self._refresh_token: Optional[str] = None
        self._token_expiry: Optional[datetime] = None
        self._claims: Optional[TokenClaims] = None

    def set_tokens(
        self,
        uid: str,
        refresh_token: str,
        expires_at: Optional[int],
    ) -> None:
        """Store the refresh token and access-token expiry for *uid*.

        The access token itself is not kept: claims are read from the
        refresh response, and only its expiry decides when to refresh.

        Parameters
        ----------
        expires_at:
            Unix timestamp (seconds) when the access token expires, or
            ``None`` if unknown (treated as already expired).
        """
        with self._lock:
            self._uid = uid
            self._refresh_token = refresh_token
            self._token_expiry = (
                datetime.fromtimestamp(expires_at, tz=timezone.utc)
                if expires_at is not None
                else None
            )

    def set_claims(self, claims: Optional[TokenClaims]) -> None:
        with self._lock:
            self._claims = claims

    @property
    def uid(self) -> Optional[str]:
        with self._lock:
            return self._uid

    @property
    def claims(self) -> Optional[TokenClaims]:
        """Claims from the most recent token, or ``None`` if none were read."""
        with self._lock:
            return self._claims

    @property
    def refresh_token(self) -> Optional[str]:
        """Return the refresh token for session renewal."""
        with self._lock:
            return self._refresh_token

    @property
    def is_token_expired(self) -> bool:
        """``True`` when the access token has expired or was never set."""
        with self._lock:
            if self._token_expiry is None:
                return True
            return datetime.now(timezone.utc) >= (self._token_expiry - timedelta(seconds=30))

    @property
    def is_authenticated(self) -> bool:
        with self._lock:
            return self._refresh_token is not None

    def clear(self) -> None:
        """Remove tokens and claims, ending the session."""
        with self._lock:
            self._uid = None
            self._refresh_token = None
            self._token_expiry = None
            self._claims = None
