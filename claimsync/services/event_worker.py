"""
Event Worker Service.

Background daemon thread that drains the ``trigger_events`` inbox into
the :class:`TriggerDispatcher`.  The caller invokes :meth:`start` /
:meth:`stop`; the worker polls the inbox at a configurable interval with
exponential backoff on consecutive failed cycles.

Delivery is at-least-once: a row is marked only after its trigger ran,
so a crash between the two replays the event on the next start.  The
triggers are written to converge under replay (merge writes, full claim
sets); the counter increment is the one step that does not, which is
why it is isolated in its own transaction.

Failed events are marked ``failed`` and kept for manual reconciliation.
They are not retried automatically.
"""

from __future__ import annotations

import threading
from typing import Optional

from claimsync.config import AppConfig
from claimsync.logger import StructuredLogger
from claimsync.repositories.event_repository import EventRepository
from claimsync.services.base_service import BaseService
from claimsync.services.dispatcher import TriggerDispatcher


class EventWorkerService(BaseService):
    """Daemon thread that feeds inbox events to the triggers.

    Parameters
    ----------
    events:
        The inbox repository.
    dispatcher:
        Routes each event to its trigger.
    config:
        Supplies ``EVENT_POLL_INTERVAL_S``, ``EVENT_MAX_POLL_INTERVAL_S``
        and ``EVENT_BATCH_SIZE``.
    logger:
        Structured JSON logger.
    """

    def __init__(
        self,
        events: EventRepository,
        dispatcher: TriggerDispatcher,
        config: AppConfig,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._events = events
        self._dispatcher = dispatcher
        self._base_interval_s: float = config.EVENT_POLL_INTERVAL_S
        self._max_interval_s: float = config.EVENT_MAX_POLL_INTERVAL_S
        self._batch_size: int = config.EVENT_BATCH_SIZE
        self._thread: Optional[threading.Thread] = None
        self._stop_event: threading.Event = threading.Event()
        self._cycle_lock: threading.Lock = threading.Lock()
        self._consecutive_failures: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the worker on a daemon thread.  Idempotent."""
        if self._thread is not None and self._thread.is_alive():
            self._logger.debug("Event worker already running.")
            return

        self._stop_event.clear()
        self._consecutive_failures = 0

        self._thread = threading.Thread(
            target=self._run_loop,
            name="EventWorker",
            daemon=True,
        )
        self._thread.start()
        self._logger.info("Event worker started.")

    def stop(self) -> None:
        """Signal the worker to stop and wait up to 10 s for it to exit."""
        if self._thread is None:
            return

        self._stop_event.set()
        self._thread.join(timeout=10.0)

        if self._thread.is_alive():
            self._logger.warning("Event worker thread did not terminate within 10 s.")
        else:
            self._logger.info("Event worker stopped.")

        self._thread = None

    @property
    def is_running(self) -> bool:
        """``True`` when the worker thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def process_pending(self) -> int:
        """Dispatch one batch of pending events synchronously.

        Returns:
            Number of events handled (processed or failed).
        """
        with self._cycle_lock:
            stored_events = self._events.fetch_pending(self._batch_size)
            failed = 0
            for stored in stored_events:
                result = self._dispatcher.dispatch(stored.event)
                if result.success:
                    self._events.mark_processed(stored.id)
                else:
                    failed += 1
                    self._events.mark_failed(stored.id, result.error or "Trigger failed.")

            if stored_events:
                self._logger.info(
                    "Event cycle complete: %d handled, %d failed.",
                    len(stored_events),
                    failed,
                )
            return len(stored_events)

    def drain(self) -> int:
        """Process batches until the inbox has no pending events."""
        total = 0
        while True:
            handled = self.process_pending()
            if handled == 0:
                return total
            total += handled

    def _run_loop(self) -> None:
        """Main loop executed on the daemon thread.

        A top-level ``try/except`` keeps an unexpected exception from
        silently killing the thread.
        """
        try:
            while not self._stop_event.is_set():
                try:
                    self.process_pending()
                    self._consecutive_failures = 0
                except Exception:
                    self._consecutive_failures += 1
                    self._logger.warning("Event cycle failed", exc_info=True)

                if self._stop_event.wait(timeout=self._calculate_backoff_interval()):
                    break
        except Exception:
            self._logger.error(
                "Event worker thread terminated due to unhandled exception.",
                exc_info=True,
            )

    def _calculate_backoff_interval(self) -> float:
        """Base interval, doubled per consecutive failed cycle, capped."""
        if self._consecutive_failures == 0:
            return self._base_interval_s

        backoff = self._base_interval_s * (2 ** min(self._consecutive_failures, 6))
        return min(backoff, self._max_interval_s)
