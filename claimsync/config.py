"""
Application Configuration.

Pydantic Settings model for the ClaimSync trigger service.
All configuration is loaded from environment variables and .env files.
Inject an AppConfig instance via dependency injection where needed.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """Central configuration loaded from environment variables and defaults."""

    # --- Supabase (identity provider) ---
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: SecretStr = SecretStr("")

    # --- Local document store ---
    SQLITE_PATH: str = "claimsync_local.db"
    SQLITE_BUSY_TIMEOUT_S: float = 5.0

    # --- Logging ---
    LOG_FILE: str = "claimsync.log"
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    # --- Counter transaction ---
    COUNTER_TXN_MAX_ATTEMPTS: int = Field(default=5, ge=1)
    COUNTER_TXN_BACKOFF_S: float = Field(default=0.05, ge=0.0)

    # --- Claims writes ---
    CLAIMS_SET_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    CLAIMS_SET_BACKOFF_S: float = Field(default=0.5, ge=0.0)

    # --- Event worker ---
    EVENT_POLL_INTERVAL_S: float = 1.0
    EVENT_MAX_POLL_INTERVAL_S: float = 60.0
    EVENT_BATCH_SIZE: int = 50
    RECONCILE_ON_STARTUP: bool = False

    # Modules granted to the first (admin) user at signup.
    DEFAULT_ADMIN_MODULES: list[str] = Field(default_factory=lambda: [
        "dashboard",
        "projects",
        "users",
        "contractors",
        "daily-report",
        "monthly-report",
        "safety-events",
        "project-team",
        "documents",
        "calendar",
        "map",
        "weather",
        "reports-analytics",
    ])

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _warn_missing_env(self) -> "AppConfig":
        """Emit a startup warning when critical configuration is empty.

        Claims cannot be written without Supabase credentials; the
        triggers still maintain profiles and the counter, and every
        failed claims write is logged for later reconciliation.
        """
        _log = logging.getLogger("claimsync.config")

        if not Path(".env").exists():
            _log.warning(
                "No .env file found; all configuration loaded from "
                "environment variables or defaults."
            )

        if not self.SUPABASE_URL or not self.SUPABASE_SERVICE_ROLE_KEY.get_secret_value():
            _log.warning(
                "Supabase URL or service-role key is empty; token claims "
                "cannot be written until both are configured."
            )

        return self


# ---------------------------------------------------------------------------
# Module-level singleton factory
# ---------------------------------------------------------------------------

_config_instance: Optional[AppConfig] = None
_config_lock: threading.Lock = threading.Lock()


def get_config() -> AppConfig:
    """Return a cached ``AppConfig`` singleton.

    Uses a check-lock-check pattern so the fast path takes no lock
    while first initialisation stays thread-safe.  Prefer constructor
    injection of ``AppConfig`` in new code.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance
