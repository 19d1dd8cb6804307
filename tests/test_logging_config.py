import io
import json
import logging

import pytest

from grantflow.logging_config import (
    DecisionLogger,
    StructuredFormatter,
    configure_logging,
    get_workflow_id,
    set_workflow_id,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_structured_formatter_includes_event_fields():
    set_workflow_id("wf-123")
    logger = logging.getLogger("grantflow.test.formatter")
    record = logger.makeRecord(logger.name, logging.INFO, "", 0, "hello", (), None)
    record.extra_fields = {"event_type": "PROMPT_SHOWN", "group": "CAMERA"}

    data = json.loads(StructuredFormatter().format(record))

    assert data["message"] == "hello"
    assert data["level"] == "INFO"
    assert data["workflow_id"] == "wf-123"
    assert data["event_type"] == "PROMPT_SHOWN"
    assert data["group"] == "CAMERA"


def test_set_workflow_id_generates_when_missing():
    generated = set_workflow_id()

    assert generated
    assert get_workflow_id() == generated


def test_configure_logging_emits_json_decision_events(restore_root_logger):
    stream = io.StringIO()
    configure_logging(level="INFO", json_format=True, stream=stream)
    set_workflow_id("wf-456")

    DecisionLogger("grantflow.test.decisions").decision_recorded("Snapshot", "CAMERA", True, False)

    event = json.loads(stream.getvalue().strip())
    assert event["event_type"] == "DECISION_RECORDED"
    assert event["app"] == "Snapshot"
    assert event["granted"] is True
    assert event["workflow_id"] == "wf-456"
    assert event["logger"] == "grantflow.test.decisions"


def test_configure_logging_plain_text(restore_root_logger):
    stream = io.StringIO()
    configure_logging(level="WARNING", json_format=False, stream=stream)

    DecisionLogger("grantflow.test.plain").storage_failure("save_ledger", "disk full")

    assert "STORAGE_FAILURE: Could not write to disk during save_ledger" in stream.getvalue()
    assert restore_root_logger.level == logging.WARNING


def test_plain_diagnostics_get_source_and_drop_empty_fields():
    set_workflow_id("")
    logger = logging.getLogger("grantflow.test.plain_record")
    record = logger.makeRecord(logger.name, logging.WARNING, "store.py", 12, "disk %s", ("full",), None)

    data = json.loads(StructuredFormatter().format(record))

    assert data["event_type"] == "LOG"
    assert data["message"] == "disk full"
    assert "source" in data
    assert "workflow_id" not in data


def test_decision_event_omits_unset_fields():
    set_workflow_id("wf-789")
    logger = logging.getLogger("grantflow.test.prompt")
    record = logger.makeRecord(logger.name, logging.INFO, "", 0, "PROMPT_SHOWN: x", (), None)
    record.extra_fields = {
        "event_type": "PROMPT_SHOWN",
        "workflow_id": "wf-789",
        "group": "LOCATION",
        "offer": None,
        "remaining_seconds": 420,
        "message": "COOLDOWN prompt for LOCATION",
    }

    data = json.loads(StructuredFormatter().format(record))

    assert data["message"] == "COOLDOWN prompt for LOCATION"
    assert data["remaining_seconds"] == 420
    assert "offer" not in data
    assert "source" not in data
    assert data["timestamp"].endswith("+00:00")
