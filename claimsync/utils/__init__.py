"""Shared utility functions for the ClaimSync service."""

from claimsync.utils.audit import SYSTEM_ACTOR, AuditEvent, log_audit_event
from claimsync.utils.names import derive_names

__all__ = [
    "AuditEvent",
    "SYSTEM_ACTOR",
    "derive_names",
    "log_audit_event",
]
