"""
Pytest Configuration and Shared Fixtures.

Responsibilities:
  - Provide a temp-file SQLite ``DatabaseManager`` with the schema applied
  - Replace the Supabase-backed claims repository with an in-memory fake
    that counts calls and can inject failures
  - Wire the full service container with zero-backoff configuration

Notes:
  - Every test gets its own database file and logger name
  - Use ``supabase_db`` when a test needs a mocked Supabase client
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Iterator, Optional
from unittest.mock import MagicMock, patch

import pytest

from claimsync.config import AppConfig
from claimsync.database import DatabaseManager
from claimsync.logger import StructuredLogger
from claimsync.models.claims import TokenClaims
from claimsync.models.events import IdentityCreatedEvent
from claimsync.repositories.claims_repository import ClaimsSyncError
from claimsync.schema import initialize_schema
from claimsync.services import ServiceContainer, create_services


class FakeClaimsRepository:
    """In-memory stand-in for ``ClaimsRepository``.

    ``fail_next`` makes the next N ``set_claims`` calls raise;
    ``fail_always`` makes every call raise.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.claims: dict[str, TokenClaims] = {}
        self.set_calls: list[tuple[str, TokenClaims]] = []
        self.fail_next: int = 0
        self.fail_always: bool = False

    def set_claims(self, uid: str, claims: TokenClaims) -> None:
        with self._lock:
            self.set_calls.append((uid, claims))
            if self.fail_always or self.fail_next > 0:
                self.fail_next = max(self.fail_next - 1, 0)
                raise ClaimsSyncError("injected claims failure", uid=uid)
            self.claims[uid] = claims

    def get_claims(self, uid: str) -> Optional[TokenClaims]:
        with self._lock:
            return self.claims.get(uid)

    def calls_for(self, uid: str) -> int:
        return sum(1 for call_uid, _ in self.set_calls if call_uid == uid)


def pytest_configure(config) -> None:
    config.addinivalue_line(
        "markers", "concurrency: tests that race threads against the store"
    )


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig(
        _env_file=None,
        COUNTER_TXN_MAX_ATTEMPTS=5,
        COUNTER_TXN_BACKOFF_S=0.0,
        CLAIMS_SET_MAX_ATTEMPTS=3,
        CLAIMS_SET_BACKOFF_S=0.0,
        EVENT_POLL_INTERVAL_S=0.01,
        EVENT_BATCH_SIZE=10,
    )


@pytest.fixture
def logger(request: pytest.FixtureRequest, tmp_path: Path) -> StructuredLogger:
    return StructuredLogger(
        name=f"tests.{request.node.name}",
        log_file=str(tmp_path / "claimsync-test.log"),
    )


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "claimsync-test.db"


@pytest.fixture
def db(db_path: Path, logger: StructuredLogger) -> Iterator[DatabaseManager]:
    manager = DatabaseManager(
        supabase_url="",
        supabase_key="",
        sqlite_path=db_path,
        logger=logger,
    )
    initialize_schema(manager.sqlite, logger)
    yield manager
    manager.close()


@pytest.fixture
def supabase_client() -> MagicMock:
    return MagicMock(name="supabase_client")


@pytest.fixture
def supabase_db(
    db_path: Path, logger: StructuredLogger, supabase_client: MagicMock,
) -> Iterator[DatabaseManager]:
    """A DatabaseManager whose Supabase client is a MagicMock."""
    with patch("claimsync.database.create_client", return_value=supabase_client):
        manager = DatabaseManager(
            supabase_url="https://example.supabase.co",
            supabase_key="service-role-key",
            sqlite_path=db_path,
            logger=logger,
        )
    initialize_schema(manager.sqlite, logger)
    yield manager
    manager.close()


@pytest.fixture
def claims_repo() -> FakeClaimsRepository:
    return FakeClaimsRepository()


@pytest.fixture
def services(
    db: DatabaseManager,
    app_config: AppConfig,
    claims_repo: FakeClaimsRepository,
    logger: StructuredLogger,
) -> ServiceContainer:
    return create_services(db=db, config=app_config, claims_repo=claims_repo, logger=logger)


@pytest.fixture
def signup(services: ServiceContainer):
    """Run the signup trigger for ``(uid, email, display_name)``."""

    def _signup(uid: str, email: Optional[str] = None, display_name: Optional[str] = None):
        return services["signup_trigger"].handle(
            IdentityCreatedEvent(uid=uid, email=email, display_name=display_name)
        )

    return _signup
