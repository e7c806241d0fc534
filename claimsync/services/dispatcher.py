"""
Trigger Dispatcher.

Routes each inbound event to its trigger and guarantees that nothing a
trigger raises escapes into the hosting process: unexpected exceptions
are logged with the event context and turned into a failed
``TriggerResult``.
"""

from __future__ import annotations

from typing import Union

from claimsync.logger import StructuredLogger
from claimsync.models.enums import TriggerName
from claimsync.models.events import (
    DocumentUpdatedEvent,
    IdentityCreatedEvent,
    IdentityDeletedEvent,
    TriggerEvent,
    WebhookPayload,
)
from claimsync.models.service_models import TriggerResult
from claimsync.repositories.event_repository import EventRepository
from claimsync.services.base_service import BaseService
from claimsync.services.deletion_trigger import DeletionTriggerService
from claimsync.services.role_change_trigger import RoleChangeTriggerService
from claimsync.services.signup_trigger import SignupTriggerService


class TriggerDispatcher(BaseService):
    """Single entry point from the event inbox to the three triggers."""

    def __init__(
        self,
        signup: SignupTriggerService,
        role_change: RoleChangeTriggerService,
        deletion: DeletionTriggerService,
        events: EventRepository,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._signup = signup
        self._role_change = role_change
        self._deletion = deletion
        self._events = events

    def dispatch(self, event: TriggerEvent) -> TriggerResult:
        """Run the trigger for *event* and return its result."""
        trigger, uid = self._route(event)
        try:
            if isinstance(event, IdentityCreatedEvent):
                return self._signup.handle(event)
            if isinstance(event, IdentityDeletedEvent):
                return self._deletion.handle(event)
            return self._role_change.handle(event)
        except Exception as exc:
            self._log_for(uid, trigger=str(trigger)).error(
                "[%s] Unhandled error for %s: %s",
                trigger,
                uid,
                exc,
                exc_info=True,
                operation="dispatch",
            )
            return TriggerResult(
                trigger=trigger, uid=uid, success=False, error=f"Unhandled error: {exc}",
            )

    def ingest_webhook(self, body: Union[str, bytes]) -> int:
        """Validate a Supabase auth webhook body and enqueue its event.

        Returns:
            The inbox row id.

        Raises:
            ValueError: If the body is not a supported auth webhook
                (``pydantic.ValidationError`` is a ``ValueError``).
        """
        payload = WebhookPayload.model_validate_json(body)
        event = payload.to_trigger_event()
        event_id = self._events.enqueue(event)
        self._log_for(event.uid).info(
            "Webhook %s %s.%s enqueued as event %d",
            payload.type,
            payload.schema_name,
            payload.table,
            event_id,
        )
        return event_id

    @staticmethod
    def _route(event: TriggerEvent) -> tuple[TriggerName, str]:
        if isinstance(event, IdentityCreatedEvent):
            return TriggerName.SIGNUP, event.uid
        if isinstance(event, IdentityDeletedEvent):
            return TriggerName.DELETION, event.uid
        if isinstance(event, DocumentUpdatedEvent):
            return TriggerName.ROLE_CHANGE, event.document_id
        raise TypeError(f"Unsupported trigger event: {type(event).__name__}")
