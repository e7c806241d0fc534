"""
Token Claims Model and Change Detection.

Claims are authorization metadata mirrored from the profile document into
the identity provider's signed token (Supabase ``app_metadata``).  They
are always written as a complete set, never patched.

Change detection compares ``role`` by value and the two assignment lists
as *sets*, so reordering a list in the admin UI without changing its
membership does not cause a claims rewrite.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from claimsync.models.enums import UserRole
from claimsync.models.user import UserProfile

__all__ = ["TokenClaims", "authorization_changed"]


def _as_list(value: object) -> list[str]:
    """Normalise an assignment field: missing is empty, a bare string is one id."""
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple, set, frozenset)):
        return [str(item) for item in value]
    return [str(value)]


class TokenClaims(BaseModel):
    """The claim set attached to a user's token."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    role: UserRole = UserRole.VIEWER
    assigned_modules: list[str] = Field(default_factory=list)
    assigned_projects: list[str] = Field(default_factory=list)

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "TokenClaims":
        return cls(
            role=profile.role,
            assigned_modules=list(profile.assigned_modules),
            assigned_projects=list(profile.assigned_projects),
        )

    @classmethod
    def from_document(cls, document: Mapping[str, object]) -> "TokenClaims":
        """Derive claims from a camelCase profile document.

        Missing or empty fields fall back to ``viewer`` / ``[]``.

        Raises:
            pydantic.ValidationError: If ``role`` is not a known role.
        """
        return cls(
            role=document.get("role") or UserRole.VIEWER,
            assigned_modules=_as_list(document.get("assignedModules")),
            assigned_projects=_as_list(document.get("assignedProjects")),
        )

    @classmethod
    def from_app_metadata(cls, app_metadata: Optional[Mapping[str, object]]) -> Optional["TokenClaims"]:
        """Read claims back from Supabase ``app_metadata``.

        Returns ``None`` when no role claim was ever written, which is
        how an identity whose claims write failed looks to the reader.
        """
        if not app_metadata or not app_metadata.get("role"):
            return None
        return cls.from_document(app_metadata)

    def to_app_metadata(self) -> dict[str, object]:
        """Return the full claim set, keyed the way tokens carry it."""
        return self.model_dump(mode="json", by_alias=True)

    def matches(self, other: Optional["TokenClaims"]) -> bool:
        """Set-equality comparison; list order is not significant."""
        if other is None:
            return False
        return (
            self.role == other.role
            and set(self.assigned_modules) == set(other.assigned_modules)
            and set(self.assigned_projects) == set(other.assigned_projects)
        )


def authorization_changed(
    before: Optional[Mapping[str, object]],
    after: Mapping[str, object],
) -> bool:
    """Return ``True`` when a profile update touched an authorization field.

    A missing *before* snapshot counts as a change.  ``None`` and ``[]``
    are treated as the same (empty) assignment list.
    """
    if before is None:
        return True

    if before.get("role") != after.get("role"):
        return True
    return any(
        frozenset(_as_list(before.get(key))) != frozenset(_as_list(after.get(key)))
        for key in ("assignedModules", "assignedProjects")
    )
