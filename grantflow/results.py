"""
grantflow Result Aggregation

Keeps the grant/deny vector aligned to the original request and makes
sure it is delivered exactly once, whichever exit path finishes first.
"""

import threading
from typing import Callable, Dict, List, Sequence

from .groups import PermissionGroup
from .models import GrantResult, GrantStatus, ResultCode

ResultCallback = Callable[[GrantResult], None]


class ResultAggregator:
    """
    Output vector for one workflow run.

    Usage:
        aggregator = ResultAggregator(["CAMERA", "LOCATION"])
        aggregator.set_status("CAMERA", True)
        aggregator.finalize(deliver)   # deliver() runs
        aggregator.finalize(deliver)   # no-op
    """

    def __init__(self, requested: Sequence[str]):
        self.permissions: List[str] = list(requested)
        self.results: List[GrantStatus] = [GrantStatus.DENIED] * len(self.permissions)
        self._indexes: Dict[str, List[int]] = {}
        for i, name in enumerate(self.permissions):
            self._indexes.setdefault(name, []).append(i)
        self._delivered = False
        self._lock = threading.Lock()

    @property
    def delivered(self) -> bool:
        return self._delivered

    def set_status(self, permission: str, granted: bool) -> None:
        """Update every occurrence of permission; names outside the request are ignored."""
        status = GrantStatus.of(granted)
        for i in self._indexes.get(permission, ()):
            self.results[i] = status

    def set_all(self, statuses: Sequence[GrantStatus]) -> None:
        if len(statuses) != len(self.results):
            raise ValueError(
                f"Expected {len(self.results)} statuses, got {len(statuses)}"
            )
        self.results = list(statuses)

    def apply_group(self, group: PermissionGroup) -> None:
        """Report each member's current grant state."""
        for permission in group.permissions:
            self.set_status(permission.name, permission.is_granted())

    def snapshot(self, result_code: ResultCode = ResultCode.OK) -> GrantResult:
        return GrantResult(
            permissions=list(self.permissions),
            results=list(self.results),
            result_code=result_code,
        )

    def finalize(
        self,
        callback: ResultCallback,
        result_code: ResultCode = ResultCode.OK
    ) -> bool:
        """
        Deliver the result to callback on the first call only.

        Returns:
            True if this call delivered the result
        """
        with self._lock:
            if self._delivered:
                return False
            self._delivered = True
        callback(self.snapshot(result_code))
        return True
