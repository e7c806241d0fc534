"""
Trigger Event Models.

Inbound events delivered (at least once, possibly concurrently) to the
trigger pipeline, plus the Supabase database-webhook payload that
identity events arrive in.

Events are stored in the ``trigger_events`` inbox as JSON and parsed back
through :data:`TRIGGER_EVENT_ADAPTER`, which discriminates on
``event_type``.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class IdentityCreatedEvent(BaseModel):
    """A new identity was registered with the auth service."""

    event_type: Literal["identity.created"] = "identity.created"
    uid: str = Field(min_length=1)
    email: Optional[str] = None
    display_name: Optional[str] = None


class IdentityDeletedEvent(BaseModel):
    """An identity was removed from the auth service."""

    event_type: Literal["identity.deleted"] = "identity.deleted"
    uid: str = Field(min_length=1)


class DocumentUpdatedEvent(BaseModel):
    """A profile document changed.  Snapshots are camelCase documents."""

    event_type: Literal["document.updated"] = "document.updated"
    collection: str = "users"
    document_id: str = Field(min_length=1)
    before: Optional[dict[str, Any]] = None
    after: Optional[dict[str, Any]] = None


TriggerEvent = Annotated[
    Union[IdentityCreatedEvent, IdentityDeletedEvent, DocumentUpdatedEvent],
    Field(discriminator="event_type"),
]

TRIGGER_EVENT_ADAPTER: TypeAdapter[TriggerEvent] = TypeAdapter(TriggerEvent)


class WebhookPayload(BaseModel):
    """Supabase database-webhook body for the ``auth.users`` table.

    Example::

        {"type": "INSERT", "table": "users", "schema": "auth",
         "record": {"id": "...", "email": "...", "raw_user_meta_data": {...}},
         "old_record": null}
    """

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["INSERT", "UPDATE", "DELETE"]
    table: str
    schema_name: str = Field(alias="schema")
    record: Optional[dict[str, Any]] = None
    old_record: Optional[dict[str, Any]] = None

    def to_trigger_event(self) -> Union[IdentityCreatedEvent, IdentityDeletedEvent]:
        """Map the webhook to the identity event it represents.

        Raises:
            ValueError: For any source other than ``auth.users`` INSERT or
                DELETE, or when the identity id is missing.
        """
        if (self.schema_name, self.table) != ("auth", "users"):
            raise ValueError(
                f"Unsupported webhook source: {self.schema_name}.{self.table}"
            )

        if self.type == "INSERT":
            record = self.record or {}
            if not record.get("id"):
                raise ValueError("INSERT webhook has no record id.")
            return IdentityCreatedEvent(
                uid=str(record["id"]),
                email=record.get("email") or None,
                display_name=_display_name(record),
            )

        if self.type == "DELETE":
            old_record = self.old_record or {}
            if not old_record.get("id"):
                raise ValueError("DELETE webhook has no old_record id.")
            return IdentityDeletedEvent(uid=str(old_record["id"]))

        raise ValueError(f"Unsupported webhook type for auth.users: {self.type}")


def _display_name(record: dict[str, Any]) -> Optional[str]:
    metadata = record.get("raw_user_meta_data") or {}
    for key in ("full_name", "display_name", "name"):
        value = metadata.get(key)
        if value:
            return str(value)
    return None
