"""
Denial tracker tests: cooldown window, forced dismissals, offers.
"""

from datetime import timedelta

import pytest

from grantflow.models import DenialLedger, DenialRecord
from grantflow.store import InMemoryLedgerStore, StorageError

from conftest import EPOCH, WAIT, FailingLedgerStore, FakeClock, make_tracker


def test_first_denial_is_recorded_and_persisted(tracker, store):
    assert tracker.record_denial("Snapshot", "CAMERA") is True
    assert store.save_count == 1

    reloaded = store.load()
    assert reloaded.records_for("Snapshot") == [DenialRecord("CAMERA", EPOCH)]


def test_denial_during_cooldown_is_a_forced_dismissal(tracker, store, clock):
    assert tracker.record_denial("Snapshot", "CAMERA") is True
    clock.advance(minutes=3)

    assert tracker.record_denial("Snapshot", "CAMERA") is False
    assert store.save_count == 1
    assert len(tracker.live_denials("Snapshot")["Snapshot"]) == 1


def test_cooldown_window(tracker, clock):
    tracker.record_denial("Snapshot", "LOCATION")

    clock.advance(seconds=1)
    assert tracker.remaining_cooldown("Snapshot", "LOCATION") is not None

    clock.advance(seconds=WAIT.total_seconds() - 2)
    assert tracker.remaining_cooldown("Snapshot", "LOCATION") == timedelta(seconds=1)

    clock.advance(seconds=1)
    assert tracker.remaining_cooldown("Snapshot", "LOCATION") is None
    assert tracker.time_since_denial("Snapshot", "LOCATION") is None


def test_time_since_and_remaining_are_complementary(tracker, clock):
    tracker.record_denial("Snapshot", "LOCATION")
    clock.advance(minutes=4)

    assert tracker.time_since_denial("Snapshot", "LOCATION") == timedelta(minutes=4)
    assert tracker.remaining_cooldown("Snapshot", "LOCATION") == timedelta(minutes=6)


def test_expired_denial_is_pruned_and_can_be_recorded_again(tracker, store, clock):
    tracker.record_denial("Snapshot", "CAMERA")
    clock.advance(minutes=10)

    assert tracker.record_denial("Snapshot", "CAMERA") is True
    records = store.load().records_for("Snapshot")
    assert records == [DenialRecord("CAMERA", EPOCH + WAIT)]


def test_denials_are_scoped_per_app_and_permission(tracker):
    tracker.record_denial("Snapshot", "CAMERA")

    assert tracker.remaining_cooldown("Snapshot", "LOCATION") is None
    assert tracker.remaining_cooldown("Maps", "CAMERA") is None
    assert tracker.record_denial("Maps", "CAMERA") is True
    assert tracker.record_denial("Snapshot", "LOCATION") is True


def test_ledger_is_loaded_at_construction(clock):
    store = InMemoryLedgerStore()
    ledger = DenialLedger()
    ledger.add("Snapshot", DenialRecord("CAMERA", EPOCH - timedelta(minutes=2)))
    store.save(ledger)

    tracker = make_tracker(store, clock)

    assert tracker.time_since_denial("Snapshot", "CAMERA") == timedelta(minutes=2)
    assert tracker.record_denial("Snapshot", "CAMERA") is False


def test_save_failure_keeps_in_memory_record(clock):
    tracker = make_tracker(FailingLedgerStore(), clock)

    with pytest.raises(StorageError):
        tracker.record_denial("Snapshot", "CAMERA")

    assert tracker.time_since_denial("Snapshot", "CAMERA") == timedelta(0)
    assert tracker.record_denial("Snapshot", "CAMERA") is False


def test_generate_offer_is_bounded(tracker):
    offers = [tracker.generate_offer() for _ in range(500)]
    assert all(0.0 <= o < 2.0 for o in offers)
    assert len(set(offers)) > 1

    assert all(0.0 <= tracker.generate_offer(0.5) < 0.5 for _ in range(100))


def test_live_denials_hides_expired_records(store):
    clock = FakeClock()
    tracker = make_tracker(store, clock)
    tracker.record_denial("Snapshot", "CAMERA")
    clock.advance(minutes=5)
    tracker.record_denial("Maps", "LOCATION")
    clock.advance(minutes=6)

    assert tracker.live_denials() == {
        "Maps": [DenialRecord("LOCATION", EPOCH + timedelta(minutes=5))]
    }
    assert tracker.live_denials("Snapshot") == {}
