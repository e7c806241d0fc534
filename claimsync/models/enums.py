"""
Shared Enumerations for ClaimSync Models.

StrEnum values compare equal to their string equivalents, so documents
read straight from the store (``role == "admin"``) work unchanged.
"""

from __future__ import annotations

from enum import StrEnum


class UserRole(StrEnum):
    """Roles a profile may hold.  ``VIEWER`` is the signup default."""

    ADMIN = "admin"
    PROJECT_MANAGER = "project_manager"
    VIEWER = "viewer"


class UserStatus(StrEnum):
    """Account lifecycle states shown on the users page."""

    PENDING = "pending"
    ACTIVE = "active"
    INVITED = "invited"
    REJECTED = "rejected"


class TriggerName(StrEnum):
    """Trigger identifiers used in logs, audit entries and results."""

    SIGNUP = "signup"
    ROLE_CHANGE = "role_change"
    DELETION = "deletion"


class EventStatus(StrEnum):
    """Delivery state of a row in the ``trigger_events`` inbox."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"
