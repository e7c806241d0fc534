"""
Service Layer Data Transfer Objects.

Result envelopes returned by triggers and administrative services.
"""

from __future__ import annotations

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from claimsync.models.enums import TriggerName

T = TypeVar("T")

__all__ = ["ReconciliationReport", "ServiceResult", "TriggerResult"]


class ServiceResult(BaseModel, Generic[T]):
    """
    Standard service return envelope for administrative operations.

    ``status_code`` follows HTTP semantics so the calling UI can map
    failures (403 forbidden, 404 missing, 422 invalid) directly.
    """

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    status_code: int = 200


class TriggerResult(BaseModel):
    """Outcome of one trigger invocation.

    Triggers never raise; they report here.  ``success=False`` marks a
    state that needs manual reconciliation (the log line carries the
    details).
    """

    trigger: TriggerName
    uid: str
    success: bool
    claims_written: bool = False
    error: Optional[str] = None


class ReconciliationReport(BaseModel):
    """Summary of a claims reconciliation sweep."""

    checked: int = 0
    updated: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
