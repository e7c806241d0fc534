"""
Structured Audit Logging Utility.

Every profile and claims state change is emitted as a structured JSON
audit entry.  Provides a Pydantic-validated model and a single function
for consistent audit trail entries, with optional persistence to the
``audit_log`` table.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional, Union

from pydantic import BaseModel, Field

from claimsync.logger import StructuredLogger

if TYPE_CHECKING:
    from claimsync.database import DatabaseManager

__all__ = ["AuditEvent", "SYSTEM_ACTOR", "log_audit_event", "persist_audit_event"]

# Scalar values and flat string lists only; nested structures should be
# modelled explicitly rather than smuggled through the audit log.
DetailValue = Union[str, int, float, bool, None, list[str]]

SYSTEM_ACTOR: str = "system"


class AuditEvent(BaseModel):
    """Schema-validated representation of a single audit trail entry."""

    timestamp: str
    action: str
    entity_type: str
    entity_id: str
    user_id: str
    details: dict[str, DetailValue] = Field(default_factory=dict)


def log_audit_event(
    logger: StructuredLogger,
    action: str,
    entity_type: str,
    entity_id: str,
    user_id: str,
    details: Optional[dict[str, DetailValue]] = None,
    db: Optional["DatabaseManager"] = None,
) -> None:
    """Log a structured JSON audit event, with optional SQLite persistence.

    Always emits an ``AUDIT: {...}`` log line via *logger*.  When *db* is
    provided the event is also written to ``audit_log``; persistence
    errors are logged and never propagated, so auditing cannot break the
    operation being audited.

    Args:
        logger: The logger instance to write to.
        action: What happened (e.g. ``"PROFILE_CREATE"``, ``"CLAIMS_SET"``).
        entity_type: Type of entity affected (e.g. ``"UserProfile"``).
        entity_id: Primary key of the affected entity.
        user_id: Who performed the action (``SYSTEM_ACTOR`` for triggers).
        details: Optional additional context (e.g. old/new values).
        db: Optional database manager for persistent audit storage.
    """
    event = AuditEvent(
        timestamp=datetime.now(timezone.utc).isoformat(),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        user_id=user_id,
        details=details or {},
    )
    logger.info("AUDIT: %s", json.dumps(event.model_dump(), default=str))

    if db is not None:
        try:
            persist_audit_event(db, event)
        except Exception as db_err:
            logger.warning(
                "Failed to persist audit event to SQLite: %s", db_err
            )


def persist_audit_event(db: "DatabaseManager", event: AuditEvent) -> None:
    """Write a validated audit event to the ``audit_log`` table.

    Joins the caller's transaction when one is open.
    """
    with db.transaction() as conn:
        conn.execute(
            """
            INSERT INTO audit_log (timestamp, action, entity_type, entity_id, user_id, details)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                event.timestamp,
                event.action,
                event.entity_type,
                event.entity_id,
                event.user_id,
                json.dumps(event.details, default=str),
            ),
        )
