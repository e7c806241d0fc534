"""Tests for webhook mapping and the trigger event inbox."""

import json

import pytest
from pydantic import ValidationError

from claimsync.models.events import (
    TRIGGER_EVENT_ADAPTER,
    DocumentUpdatedEvent,
    IdentityCreatedEvent,
    IdentityDeletedEvent,
    WebhookPayload,
)
from claimsync.repositories.event_repository import EventRepository


def _webhook(type_="INSERT", record=None, old_record=None, schema="auth", table="users"):
    return json.dumps({
        "type": type_,
        "table": table,
        "schema": schema,
        "record": record,
        "old_record": old_record,
    })


class TestWebhookPayload:
    def test_insert_maps_to_identity_created(self):
        body = _webhook(record={
            "id": "abc",
            "email": "jane@co.com",
            "raw_user_meta_data": {"full_name": "Jane Doe"},
        })
        event = WebhookPayload.model_validate_json(body).to_trigger_event()

        assert isinstance(event, IdentityCreatedEvent)
        assert event.uid == "abc"
        assert event.email == "jane@co.com"
        assert event.display_name == "Jane Doe"

    def test_insert_without_metadata_has_no_display_name(self):
        event = WebhookPayload.model_validate_json(
            _webhook(record={"id": "abc", "email": ""})
        ).to_trigger_event()
        assert event.display_name is None
        assert event.email is None

    def test_delete_maps_to_identity_deleted(self):
        event = WebhookPayload.model_validate_json(
            _webhook("DELETE", old_record={"id": "abc"})
        ).to_trigger_event()
        assert isinstance(event, IdentityDeletedEvent)
        assert event.uid == "abc"

    @pytest.mark.parametrize(
        "body",
        [
            _webhook("UPDATE", record={"id": "abc"}, old_record={"id": "abc"}),
            _webhook(record={"id": "abc"}, schema="public"),
            _webhook(record={"email": "no-id@co.com"}),
            _webhook("DELETE", old_record=None),
        ],
    )
    def test_unsupported_webhooks_are_rejected(self, body):
        with pytest.raises(ValueError):
            WebhookPayload.model_validate_json(body).to_trigger_event()

    def test_malformed_body_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            WebhookPayload.model_validate_json('{"type": "TRUNCATE"}')


def test_adapter_discriminates_on_event_type():
    event = TRIGGER_EVENT_ADAPTER.validate_python(
        {"event_type": "document.updated", "document_id": "bob", "after": {"role": "admin"}}
    )
    assert isinstance(event, DocumentUpdatedEvent)
    assert event.collection == "users"


class TestEventRepository:
    @pytest.fixture
    def events(self, db, logger):
        return EventRepository(db=db, logger=logger)

    def test_pending_events_come_back_in_order(self, events):
        first = events.enqueue(IdentityCreatedEvent(uid="a"))
        second = events.enqueue(IdentityDeletedEvent(uid="a"))

        pending = events.fetch_pending(limit=10)
        assert [stored.id for stored in pending] == [first, second]
        assert isinstance(pending[0].event, IdentityCreatedEvent)
        assert isinstance(pending[1].event, IdentityDeletedEvent)
        assert events.count_pending() == 2

    def test_marked_events_leave_the_queue(self, events):
        ok = events.enqueue(IdentityCreatedEvent(uid="a"))
        bad = events.enqueue(IdentityCreatedEvent(uid="b"))

        events.mark_processed(ok)
        events.mark_failed(bad, "boom")

        assert events.fetch_pending(limit=10) == []
        failed = events.list_failed()
        assert [row["id"] for row in failed] == [bad]
        assert failed[0]["error_message"] == "boom"

    def test_malformed_payload_is_marked_failed(self, db, events):
        db.sqlite.execute(
            "INSERT INTO trigger_events (event_type, payload) VALUES (?, ?)",
            ("identity.created", '{"event_type": "identity.created"}'),
        )
        good = events.enqueue(IdentityCreatedEvent(uid="a"))

        pending = events.fetch_pending(limit=10)

        assert [stored.id for stored in pending] == [good]
        assert len(events.list_failed()) == 1

    def test_enqueue_joins_open_transaction(self, db, events):
        with pytest.raises(RuntimeError):
            with db.transaction():
                events.enqueue(IdentityCreatedEvent(uid="a"))
                raise RuntimeError("edit failed")
        assert events.count_pending() == 0
