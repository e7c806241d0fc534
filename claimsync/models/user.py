"""
User Profile Model.

The application-level profile document, stored separately from the
identity record.  Documents use camelCase keys (``assignedModules``);
Python code uses the snake_case attributes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from claimsync.models.enums import UserRole, UserStatus


class UserProfile(BaseModel):
    """One profile document per identity, keyed by ``uid``."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    uid: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    role: UserRole = UserRole.VIEWER
    status: UserStatus = UserStatus.PENDING
    assigned_modules: list[str] = Field(default_factory=list)
    assigned_projects: list[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_document(self) -> dict[str, object]:
        """Return the camelCase document form (JSON-safe values)."""
        return self.model_dump(mode="json", by_alias=True)


class ProfileUpdate(BaseModel):
    """Administrator edit of a profile.  ``None`` fields are left as-is."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None
    assigned_modules: Optional[list[str]] = None
    assigned_projects: Optional[list[str]] = None

    def changed_fields(self) -> dict[str, object]:
        """Return only the fields the administrator actually set."""
        return self.model_dump(mode="json", exclude_none=True)


class SystemMetadata(BaseModel):
    """The singleton ``system/metadata`` record."""

    user_count: int = Field(default=0, ge=0)
    updated_at: Optional[datetime] = None
