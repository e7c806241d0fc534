"""
Structured JSON Logging Module.

Every trigger invocation is logged as a JSON object carrying the affected
``uid``, the trigger name and the attempted operation, so that partial
failures can be reconciled by hand from the log alone.

Services do not assemble that context per call.  They bind it once::

    log = logger.bind(uid=uid, trigger="signup")
    log.info("Processing")
    log.error("Counter transaction failed", operation="counter_increment")
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional, TextIO

# Fields lifted to the top level of each entry so log queries can filter
# on them directly.
CONTEXT_FIELDS: tuple[str, ...] = ("uid", "trigger", "operation", "event")


class JSONFormatter(logging.Formatter):
    """One JSON object per record.

    Top-level keys: ``timestamp`` (UTC), ``level``, ``logger_name``,
    ``message``, any of :data:`CONTEXT_FIELDS` present on the record,
    ``extra`` for remaining ``extra=`` fields and ``exception`` for
    tracebacks.
    """

    _RESERVED: frozenset[str] = frozenset(
        logging.LogRecord("", 0, "", 0, "", (), None).__dict__
    ) | {"message", "asctime", "taskName"}

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger_name": record.name,
            "message": record.getMessage(),
        }

        extra: dict[str, str] = {}
        for key, value in record.__dict__.items():
            if key in self._RESERVED or value is None:
                continue
            if key in CONTEXT_FIELDS:
                entry[key] = str(value)
            else:
                extra[key] = str(value)
        if extra:
            entry["extra"] = extra

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            entry["exception"] = record.exc_text

        return json.dumps(entry, ensure_ascii=False)


class BoundLogger:
    """A logger carrying fixed context fields.

    Keyword arguments other than ``exc_info`` passed to a log method are
    added to the record alongside the bound context.
    """

    def __init__(self, logger: logging.Logger, context: dict[str, Any]) -> None:
        self._logger = logger
        self._context = context

    @property
    def context(self) -> dict[str, Any]:
        return dict(self._context)

    def bind(self, **context: Any) -> "BoundLogger":
        return BoundLogger(self._logger, {**self._context, **context})

    def debug(self, msg: str, *args: object, exc_info: bool = False, **fields: Any) -> None:
        self._log(logging.DEBUG, msg, args, exc_info, fields)

    def info(self, msg: str, *args: object, exc_info: bool = False, **fields: Any) -> None:
        self._log(logging.INFO, msg, args, exc_info, fields)

    def warning(self, msg: str, *args: object, exc_info: bool = False, **fields: Any) -> None:
        self._log(logging.WARNING, msg, args, exc_info, fields)

    def error(self, msg: str, *args: object, exc_info: bool = False, **fields: Any) -> None:
        self._log(logging.ERROR, msg, args, exc_info, fields)

    def _log(
        self,
        level: int,
        msg: str,
        args: tuple[object, ...],
        exc_info: bool,
        fields: dict[str, Any],
    ) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(
                level, msg, *args,
                exc_info=exc_info,
                extra={**self._context, **fields},
                stacklevel=3,
            )


class StructuredLogger:
    """Injectable logger.

    Wraps a named ``logging.Logger`` with a JSON stream handler and a
    rotating JSON file handler.  Handlers are attached once per name, so
    constructing the same name twice shares them.

    Parameters
    ----------
    log_file, max_bytes, backup_count:
        Default to ``LOG_FILE``, ``LOG_MAX_BYTES`` and ``LOG_BACKUP_COUNT``
        from :class:`~claimsync.config.AppConfig`.
    """

    def __init__(
        self,
        name: str = "claimsync",
        level: int = logging.INFO,
        stream: Optional[TextIO] = None,
        log_file: Optional[str] = None,
        max_bytes: Optional[int] = None,
        backup_count: Optional[int] = None,
    ) -> None:
        self._logger: logging.Logger = logging.getLogger(name)
        self._logger.setLevel(level)
        if not self._logger.handlers:
            self._attach_handlers(level, stream, log_file, max_bytes, backup_count)

    @property
    def logger(self) -> logging.Logger:
        """Access the underlying ``logging.Logger`` directly."""
        return self._logger

    def bind(self, **context: Any) -> BoundLogger:
        """Return a logger that adds *context* to every record."""
        return BoundLogger(self._logger, context)

    def debug(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.error(msg, *args, **kwargs)

    def critical(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.critical(msg, *args, **kwargs)

    def _attach_handlers(
        self,
        level: int,
        stream: Optional[TextIO],
        log_file: Optional[str],
        max_bytes: Optional[int],
        backup_count: Optional[int],
    ) -> None:
        # Lazy import: config logs through the standard logging module.
        from claimsync.config import get_config
        cfg = get_config()

        formatter = JSONFormatter()
        handlers: list[logging.Handler] = [logging.StreamHandler(stream or sys.stdout)]

        path = Path(log_file or cfg.LOG_FILE)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(RotatingFileHandler(
                filename=str(path),
                maxBytes=max_bytes if max_bytes is not None else cfg.LOG_MAX_BYTES,
                backupCount=backup_count if backup_count is not None else cfg.LOG_BACKUP_COUNT,
                encoding="utf-8",
            ))
        except OSError as exc:
            file_error: Optional[OSError] = exc
        else:
            file_error = None

        for handler in handlers:
            handler.setLevel(level)
            handler.setFormatter(formatter)
            self._logger.addHandler(handler)

        if file_error is not None:
            self._logger.warning(
                "Could not open log file '%s': %s. Logging to console only.",
                path,
                file_error,
            )


def get_logger(name: str = "claimsync") -> StructuredLogger:
    """Create and return a ``StructuredLogger`` instance with the given *name*."""
    return StructuredLogger(name=name)
