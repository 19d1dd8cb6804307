import random
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from grantflow.models import DenialLedger
from grantflow.store import InMemoryLedgerStore, StorageError
from grantflow.tracker import DenialTracker

FIXTURES = Path(__file__).parent / "fixtures"
SAMPLE_APP = FIXTURES / "sample_app.json"

WAIT = timedelta(minutes=10)
EPOCH = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = EPOCH):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


class FailingLedgerStore(InMemoryLedgerStore):
    """Store whose writes always fail."""

    def save(self, ledger: DenialLedger) -> None:
        raise StorageError("save_ledger", Path("recent_denials.json"), OSError("disk full"))

    def append_audit_entry(self, entry) -> None:
        raise StorageError("append_audit_entry", Path("results.csv"), OSError("disk full"))


def make_tracker(store, clock, seed: int = 7) -> DenialTracker:
    return DenialTracker(
        store,
        denied_wait_period=WAIT,
        offer_cutoff=2.0,
        clock=clock,
        rng=random.Random(seed),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def tracker(store, clock) -> DenialTracker:
    return make_tracker(store, clock)


@pytest.fixture
def sample_app_path() -> Path:
    return SAMPLE_APP
