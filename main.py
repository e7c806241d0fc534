"""
ClaimSync Trigger Service Entry Point.

Bootstraps the dependency graph via constructor injection, initialises
the local schema, starts the event worker and feeds it Supabase auth
webhook bodies read from standard input, one JSON document per line.

Usage::

    webhook-relay | python main.py
"""

from __future__ import annotations

import atexit
import sys
from pathlib import Path

from claimsync.config import get_config
from claimsync.database import DatabaseManager
from claimsync.logger import StructuredLogger, get_logger
from claimsync.schema import initialize_schema
from claimsync.services import create_services


def main() -> None:
    """Service entry point: wire dependencies and pump webhooks into the inbox."""
    logger: StructuredLogger = get_logger("main")
    logger.info("Starting ClaimSync...")

    # ------------------------------------------------------------------
    # 1. Configuration (from .env / environment variables)
    # ------------------------------------------------------------------
    config = get_config()

    # ------------------------------------------------------------------
    # 2. Database Manager (SQLite document store + Supabase Auth)
    # ------------------------------------------------------------------
    db = DatabaseManager(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_SERVICE_ROLE_KEY.get_secret_value(),
        sqlite_path=Path(config.SQLITE_PATH),
        logger=StructuredLogger(name="database"),
        busy_timeout_s=config.SQLITE_BUSY_TIMEOUT_S,
    )
    atexit.register(db.close)

    # ------------------------------------------------------------------
    # 3. Schema (idempotent)
    # ------------------------------------------------------------------
    initialize_schema(db.sqlite, StructuredLogger(name="schema"))

    # ------------------------------------------------------------------
    # 4. Services
    # ------------------------------------------------------------------
    services = create_services(db=db, config=config)

    if config.RECONCILE_ON_STARTUP:
        services["reconciliation_service"].reconcile_claims()
        services["reconciliation_service"].audit_user_count()

    # ------------------------------------------------------------------
    # 5. Pump webhooks into the inbox until EOF
    # ------------------------------------------------------------------
    worker = services["event_worker"]
    dispatcher = services["dispatcher"]
    worker.start()
    try:
        for line in sys.stdin:
            body = line.strip()
            if not body:
                continue
            try:
                dispatcher.ingest_webhook(body)
            except ValueError as exc:
                logger.warning("Rejected webhook body: %s", exc)
    finally:
        worker.stop()
        worker.drain()
        db.close()
        logger.info("ClaimSync shut down.")


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        pass
