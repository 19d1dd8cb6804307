"""
Ledger store tests: file format, corrupt data, audit log lines.
"""

import json
import logging
from datetime import datetime, timedelta

import pytest

from grantflow.models import AuditLogEntry, DenialLedger, DenialRecord
from grantflow.store import (
    LEDGER_FORMAT_VERSION,
    FileLedgerStore,
    InMemoryLedgerStore,
    StorageError,
    format_audit_line,
)

from conftest import EPOCH, make_tracker


def _store(tmp_path) -> FileLedgerStore:
    return FileLedgerStore(tmp_path / "recent_denials.json", tmp_path / "results.csv")


def _ledger() -> DenialLedger:
    ledger = DenialLedger()
    ledger.add("Snapshot", DenialRecord("CAMERA", EPOCH))
    ledger.add("Snapshot", DenialRecord("LOCATION", EPOCH + timedelta(minutes=1)))
    ledger.add("Maps", DenialRecord("LOCATION", EPOCH + timedelta(minutes=2)))
    return ledger


def test_missing_ledger_loads_empty(tmp_path):
    assert len(_store(tmp_path).load()) == 0


def test_ledger_round_trip(tmp_path):
    store = _store(tmp_path)
    store.save(_ledger())

    loaded = store.load()

    assert loaded.records_for("Snapshot") == _ledger().records_for("Snapshot")
    assert loaded.records_for("Maps") == _ledger().records_for("Maps")
    assert sorted(loaded.apps()) == ["Maps", "Snapshot"]


def test_ledger_file_is_versioned(tmp_path):
    store = _store(tmp_path)
    store.save(_ledger())

    document = json.loads(store.ledger_path.read_text(encoding="utf-8"))

    assert document["format_version"] == LEDGER_FORMAT_VERSION
    assert len(document["denials"]) == 3
    assert document["denials"][0]["app"] == "Snapshot"
    assert document["denials"][0]["permission"] == "CAMERA"


def test_corrupt_ledger_loads_empty_with_warning(tmp_path, caplog):
    store = _store(tmp_path)
    store.ledger_path.write_text("{not json", encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="grantflow.store"):
        ledger = store.load()

    assert len(ledger) == 0
    assert "Discarding unreadable ledger" in caplog.text


def test_ledger_with_wrong_shape_loads_empty(tmp_path, caplog):
    store = _store(tmp_path)
    store.ledger_path.write_text(
        json.dumps({"format_version": 1, "denials": [{"app": "Snapshot"}]}),
        encoding="utf-8",
    )

    with caplog.at_level(logging.WARNING, logger="grantflow.store"):
        assert len(store.load()) == 0
    assert "Discarding unreadable ledger" in caplog.text


def test_unsupported_format_version_loads_empty(tmp_path, caplog):
    store = _store(tmp_path)
    store.ledger_path.write_text(
        json.dumps({"format_version": 99, "denials": []}), encoding="utf-8"
    )

    with caplog.at_level(logging.WARNING, logger="grantflow.store"):
        assert len(store.load()) == 0
    assert "unsupported format_version 99" in caplog.text


def test_save_to_unwritable_path_raises_storage_error(tmp_path):
    store = FileLedgerStore(ledger_path=tmp_path, results_path=tmp_path / "results.csv")

    with pytest.raises(StorageError) as exc:
        store.save(_ledger())

    assert exc.value.operation == "save_ledger"
    assert exc.value.path == tmp_path


def test_audit_line_format():
    entry = AuditLogEntry("Snapshot", "CAMERA", False, datetime(2026, 10, 19, 14, 5))
    assert format_audit_line(entry) == "Snapshot,CAMERA,false,10/19/2026 14:05\n"

    entry = AuditLogEntry("Snapshot", "LOCATION", True, datetime(2026, 1, 2, 9, 30))
    assert format_audit_line(entry) == "Snapshot,LOCATION,true,01/02/2026 09:30\n"


def test_audit_log_is_append_only(tmp_path):
    store = _store(tmp_path)
    store.results_path.write_text("Older,CAMERA,true,10/18/2026 08:00\n", encoding="utf-8")

    store.append_audit_entry(AuditLogEntry("Snapshot", "CAMERA", True, datetime(2026, 10, 19, 14, 5)))
    store.append_audit_entry(AuditLogEntry("Snapshot", "LOCATION", False, datetime(2026, 10, 19, 14, 6)))

    assert store.results_path.read_text(encoding="utf-8").splitlines() == [
        "Older,CAMERA,true,10/18/2026 08:00",
        "Snapshot,CAMERA,true,10/19/2026 14:05",
        "Snapshot,LOCATION,false,10/19/2026 14:06",
    ]


def test_audit_append_failure_raises_storage_error(tmp_path):
    store = FileLedgerStore(ledger_path=tmp_path / "recent_denials.json", results_path=tmp_path)

    with pytest.raises(StorageError) as exc:
        store.append_audit_entry(AuditLogEntry("Snapshot", "CAMERA", True, datetime(2026, 10, 19, 14, 5)))

    assert exc.value.operation == "append_audit_entry"


def test_in_memory_store_matches_file_format():
    store = InMemoryLedgerStore()
    assert len(store.load()) == 0

    store.save(_ledger())
    store.append_audit_entry(AuditLogEntry("Snapshot", "CAMERA", True, datetime(2026, 10, 19, 14, 5)))

    assert store.save_count == 1
    assert store.load().records_for("Maps") == _ledger().records_for("Maps")
    assert store.audit_lines == ["Snapshot,CAMERA,true,10/19/2026 14:05\n"]


def test_timestamp_without_timezone_is_unreadable(tmp_path, caplog, clock):
    store = _store(tmp_path)
    store.ledger_path.write_text(json.dumps({
        "format_version": 1,
        "denials": [{"app": "Snapshot", "permission": "CAMERA", "denied_at": "2026-10-19T12:00:00"}],
    }), encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="grantflow.store"):
        tracker = make_tracker(store, clock)

    assert "Discarding unreadable ledger" in caplog.text
    assert tracker.time_since_denial("Snapshot", "CAMERA") is None
    assert tracker.record_denial("Snapshot", "CAMERA") is True


@pytest.mark.parametrize("document, warning", [
    ("{not json", "Discarding unreadable ledger <memory>"),
    (json.dumps({"format_version": 2, "denials": []}), "unsupported format_version 2"),
])
def test_in_memory_store_discards_bad_documents(caplog, document, warning):
    store = InMemoryLedgerStore(document)

    with caplog.at_level(logging.WARNING, logger="grantflow.store"):
        assert len(store.load()) == 0
    assert warning in caplog.text
