"""Tests for structured JSON logging and bound context."""

import io
import json
import logging

import pytest

from claimsync.logger import JSONFormatter, StructuredLogger
from claimsync.models.enums import TriggerName
from claimsync.services.base_service import BaseService


@pytest.fixture
def stream():
    return io.StringIO()


@pytest.fixture
def structured(request, tmp_path, stream):
    return StructuredLogger(
        name=f"tests.logger.{request.node.name}",
        level=logging.DEBUG,
        stream=stream,
        log_file=str(tmp_path / "logger-test.log"),
    )


def _entries(stream):
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


def test_context_fields_are_top_level(structured, stream):
    structured.info("Claims set", extra={"uid": "bob", "operation": "set_claims", "attempt": 2})

    entry = _entries(stream)[-1]
    assert entry["message"] == "Claims set"
    assert entry["uid"] == "bob"
    assert entry["operation"] == "set_claims"
    assert entry["extra"] == {"attempt": "2"}


def test_bound_context_is_merged_into_every_record(structured, stream):
    log = structured.bind(uid="alice", trigger="signup")
    log.info("Processing %s", "alice")
    log.error("Counter failed", operation="counter_increment")

    first, second = _entries(stream)[-2:]
    assert first["message"] == "Processing alice"
    assert (first["uid"], first["trigger"]) == ("alice", "signup")
    assert "operation" not in first
    assert second["operation"] == "counter_increment"
    assert second["level"] == "ERROR"


def test_rebinding_does_not_mutate_parent(structured):
    parent = structured.bind(uid="alice")
    child = parent.bind(operation="set_claims")
    assert parent.context == {"uid": "alice"}
    assert child.context == {"uid": "alice", "operation": "set_claims"}


def test_missing_uid_is_omitted(structured, stream):
    structured.bind(uid=None).warning("Session expired", event="SESSION_EXPIRED")
    entry = _entries(stream)[-1]
    assert "uid" not in entry
    assert entry["event"] == "SESSION_EXPIRED"


def test_exception_is_formatted(structured, stream):
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        structured.bind(uid="bob").error("Batch failed", exc_info=True)
    entry = _entries(stream)[-1]
    assert "RuntimeError: boom" in entry["exception"]


def test_file_handler_writes_json(structured, tmp_path):
    structured.info("to file")
    for handler in structured.logger.handlers:
        handler.flush()
    lines = (tmp_path / "logger-test.log").read_text(encoding="utf-8").splitlines()
    assert json.loads(lines[-1])["message"] == "to file"


def test_trigger_services_bind_their_trigger_name(structured, stream):
    class _Deletion(BaseService):
        trigger = TriggerName.DELETION

    _Deletion(structured)._log_for("bob").info("Processing")
    entry = _entries(stream)[-1]
    assert (entry["uid"], entry["trigger"]) == ("bob", "deletion")


def test_formatter_handles_plain_records():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    entry = json.loads(JSONFormatter().format(record))
    assert entry["message"] == "hello world"
    assert "extra" not in entry
