"""
Base Service Class.

Services extend this and add their own repository dependencies via __init__.
Trigger services set :attr:`BaseService.trigger` so every record they log
for an identity carries the ``uid`` and trigger name.
"""

from __future__ import annotations

from typing import Optional

from claimsync.logger import BoundLogger, StructuredLogger
from claimsync.models.enums import TriggerName


class BaseService:
    """Base class for all service classes. Provides a logger."""

    trigger: Optional[TriggerName] = None

    def __init__(self, logger: StructuredLogger) -> None:
        self._logger: StructuredLogger = logger

    def _log_for(self, uid: Optional[str], **context: object) -> BoundLogger:
        """Logger bound to *uid* and, for triggers, the trigger name."""
        if self.trigger is not None:
            context.setdefault("trigger", str(self.trigger))
        return self._logger.bind(uid=uid, **context)
