"""
Data Models Package.

Re-exports the Pydantic models for short imports:
    from claimsync.models import UserProfile, TokenClaims, UserRole
"""

from claimsync.models.claims import TokenClaims, authorization_changed
from claimsync.models.enums import (
    EventStatus,
    TriggerName,
    UserRole,
    UserStatus,
)
from claimsync.models.events import (
    DocumentUpdatedEvent,
    IdentityCreatedEvent,
    IdentityDeletedEvent,
    TriggerEvent,
    WebhookPayload,
)
from claimsync.models.service_models import ReconciliationReport, ServiceResult, TriggerResult
from claimsync.models.user import ProfileUpdate, SystemMetadata, UserProfile

__all__ = [
    "DocumentUpdatedEvent",
    "EventStatus",
    "IdentityCreatedEvent",
    "IdentityDeletedEvent",
    "ProfileUpdate",
    "ReconciliationReport",
    "ServiceResult",
    "SystemMetadata",
    "TokenClaims",
    "TriggerEvent",
    "TriggerName",
    "TriggerResult",
    "UserProfile",
    "UserRole",
    "UserStatus",
    "WebhookPayload",
    "authorization_changed",
]
