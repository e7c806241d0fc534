"""
Trigger Event Repository.

The ``trigger_events`` inbox.  Identity events are enqueued when webhooks
arrive; document-updated events are enqueued in the same transaction as
the profile edit that produced them, so an edit is never committed
without its event.

Rows move ``pending`` -> ``processed`` or ``pending`` -> ``failed``.
Failed rows stay in the table for manual reconciliation.
"""

from __future__ import annotations

from typing import NamedTuple

from pydantic import ValidationError

from claimsync.models.enums import EventStatus
from claimsync.models.events import TRIGGER_EVENT_ADAPTER, TriggerEvent
from claimsync.repositories.base_repository import BaseRepository


class StoredEvent(NamedTuple):
    """A pending inbox row with its parsed event."""

    id: int
    event: TriggerEvent


class EventRepository(BaseRepository):
    """Data access layer for the trigger event inbox."""

    TABLE = "trigger_events"

    def enqueue(self, event: TriggerEvent) -> int:
        """Append *event* to the inbox and return its row id.

        Joins the caller's transaction when one is open.
        """
        with self._db.transaction() as conn:
            cursor = conn.execute(
                f"INSERT INTO {self.TABLE} (event_type, payload) VALUES (?, ?)",
                (str(event.event_type), event.model_dump_json()),
            )
            event_id = int(cursor.lastrowid)
        self._logger.debug(
            "Enqueued trigger event %d (%s)", event_id, event.event_type,
        )
        return event_id

    def fetch_pending(self, limit: int) -> list[StoredEvent]:
        """Return up to *limit* pending events in delivery order.

        Rows whose payload no longer parses are marked failed here so
        they do not block the queue.
        """
        rows = self.sqlite.execute(
            f"""
            SELECT id, payload FROM {self.TABLE}
            WHERE status = ?
            ORDER BY id ASC
            LIMIT ?
            """,
            (str(EventStatus.PENDING), limit),
        ).fetchall()

        events: list[StoredEvent] = []
        for row in rows:
            try:
                event = TRIGGER_EVENT_ADAPTER.validate_json(row["payload"])
            except ValidationError as exc:
                self._logger.error(
                    "Malformed payload in trigger_events row %d: %s", row["id"], exc,
                )
                self.mark_failed(row["id"], f"Malformed payload: {exc}")
                continue
            events.append(StoredEvent(id=row["id"], event=event))
        return events

    def mark_processed(self, event_id: int) -> None:
        self._set_status(event_id, EventStatus.PROCESSED, None)

    def mark_failed(self, event_id: int, error_message: str) -> None:
        self._set_status(event_id, EventStatus.FAILED, error_message)

    def count_pending(self) -> int:
        row = self.sqlite.execute(
            f"SELECT COUNT(*) FROM {self.TABLE} WHERE status = ?",
            (str(EventStatus.PENDING),),
        ).fetchone()
        return int(row[0])

    def list_failed(self) -> list[dict[str, object]]:
        """Return failed rows (id, type, payload, error) for manual review."""
        rows = self.sqlite.execute(
            f"""
            SELECT id, event_type, payload, error_message, processed_at
            FROM {self.TABLE}
            WHERE status = ?
            ORDER BY id ASC
            """,
            (str(EventStatus.FAILED),),
        ).fetchall()
        return [dict(row) for row in rows]

    def _set_status(self, event_id: int, status: EventStatus, error_message: str | None) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                f"""
                UPDATE {self.TABLE}
                SET status = ?, processed_at = CURRENT_TIMESTAMP, error_message = ?
                WHERE id = ?
                """,
                (str(status), error_message, event_id),
            )
