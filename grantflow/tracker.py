"""
grantflow Denial Tracker

Remembers which permission groups each application was recently denied,
so the same request cannot be put in front of the user again until the
wait period is over, and produces the incentive offer shown on decision
prompts.

Expired denials are pruned lazily, whenever the application's records
are read or written. The ledger is persisted after every new denial.
"""

import random
import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from .config import DEFAULT_DENIED_WAIT_SECONDS, DEFAULT_OFFER_CUTOFF, GrantflowConfig
from .models import DenialLedger, DenialRecord
from .store import LedgerStore
from .util import utc_now


class DenialTracker:
    """
    Owns the in-memory denial ledger for one process.

    Usage:
        tracker = DenialTracker(FileLedgerStore(ledger_path, results_path))

        if tracker.record_denial("Snapshot", "CAMERA"):
            # A fresh user decision, safe to audit
            ...

        wait = tracker.remaining_cooldown("Snapshot", "CAMERA")
    """

    def __init__(
        self,
        store: LedgerStore,
        denied_wait_period: timedelta = timedelta(seconds=DEFAULT_DENIED_WAIT_SECONDS),
        offer_cutoff: float = DEFAULT_OFFER_CUTOFF,
        clock: Callable[[], datetime] = utc_now,
        rng: Optional[random.Random] = None
    ):
        self.store = store
        self.denied_wait_period = denied_wait_period
        self.offer_cutoff = offer_cutoff
        self._clock = clock
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._ledger: DenialLedger = store.load()

    @classmethod
    def from_config(cls, config: GrantflowConfig, store: LedgerStore, **kwargs) -> "DenialTracker":
        return cls(
            store,
            denied_wait_period=config.denied_wait_period,
            offer_cutoff=config.offer_cutoff,
            **kwargs
        )

    def now(self) -> datetime:
        return self._clock()

    def _is_expired(self, record: DenialRecord, now: datetime) -> bool:
        return now - record.denied_at >= self.denied_wait_period

    def _live_records(self, app: str, now: datetime) -> List[DenialRecord]:
        """Prune expired records for app and return the survivors. Caller holds the lock."""
        records = self._ledger.records_for(app)
        live = [r for r in records if not self._is_expired(r, now)]
        if len(live) != len(records):
            self._ledger.replace(app, live)
        return live

    def record_denial(self, app: str, permission: str) -> bool:
        """
        Remember that the user denied permission for app.

        A denial while a live record already exists is a forced dismissal
        of a cooldown prompt, not a user response: nothing is added and
        False is returned. Callers must not audit those.

        Returns:
            True if a new denial was recorded and persisted

        Raises:
            StorageError: If persisting fails. The in-memory record is kept.
        """
        with self._lock:
            now = self.now()
            live = self._live_records(app, now)
            if any(r.permission == permission for r in live):
                return False

            self._ledger.add(app, DenialRecord(permission=permission, denied_at=now))
            self.store.save(self._ledger)
            return True

    def time_since_denial(self, app: str, permission: str) -> Optional[timedelta]:
        """Time elapsed since the live denial of permission, or None."""
        with self._lock:
            now = self.now()
            for record in self._live_records(app, now):
                if record.permission == permission:
                    return now - record.denied_at
        return None

    def remaining_cooldown(self, app: str, permission: str) -> Optional[timedelta]:
        """Time left before app may ask again for permission, or None if it may ask now."""
        elapsed = self.time_since_denial(app, permission)
        if elapsed is None:
            return None
        return self.denied_wait_period - elapsed

    def generate_offer(self, upper_bound: Optional[float] = None) -> float:
        """
        Incentive value shown on a decision prompt, in [0, upper_bound).

        Placeholder: a uniform random value below the cutoff.
        TODO: derive the bound from the last accepted offer for the same
        group and raise it after five consecutive declines.
        """
        bound = self.offer_cutoff if upper_bound is None else upper_bound
        return self._rng.random() * bound

    def live_denials(self, app: Optional[str] = None) -> Dict[str, List[DenialRecord]]:
        """Snapshot of unexpired denials, for one app or all of them."""
        with self._lock:
            now = self.now()
            apps = [app] if app is not None else self._ledger.apps()
            snapshot = {a: list(self._live_records(a, now)) for a in apps}
        return {a: records for a, records in snapshot.items() if records}
