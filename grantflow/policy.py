"""
Device policy and compliance collaborators.

The workflow reads the active policy mode once per run, and reports the
groups it prompted for to a compliance sink once, when the run ends.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List

from .groups import PermissionGroup
from .logging_config import decision_log
from .models import CallerPackage, PolicyMode


class PolicyProvider(ABC):
    """Source of the device-wide permission policy."""

    @abstractmethod
    def get_permission_policy(self) -> PolicyMode:
        pass


class StaticPolicyProvider(PolicyProvider):
    """Fixed policy, for tests and the CLI."""

    def __init__(self, mode: PolicyMode = PolicyMode.DEFAULT):
        self.mode = PolicyMode(mode)

    def get_permission_policy(self) -> PolicyMode:
        return self.mode


class ComplianceSink(ABC):
    """
    Receives the groups an application was prompted for.

    Called at most once per workflow run, with a non-empty group list.
    """

    @abstractmethod
    def log_permissions_requested(
        self,
        caller: CallerPackage,
        groups: List[PermissionGroup]
    ) -> None:
        pass


class LoggingComplianceSink(ComplianceSink):
    """Emits a structured PERMISSIONS_REQUESTED log event."""

    def log_permissions_requested(
        self,
        caller: CallerPackage,
        groups: List[PermissionGroup]
    ) -> None:
        decision_log.permissions_requested(caller.package_name, [g.name for g in groups])


@dataclass
class ComplianceEvent:
    package_name: str
    groups: List[str]


class InMemoryComplianceSink(ComplianceSink):
    """
    In-memory compliance sink for development/testing.
    """

    def __init__(self):
        self.events: List[ComplianceEvent] = []
        self._lock = threading.Lock()

    def log_permissions_requested(
        self,
        caller: CallerPackage,
        groups: List[PermissionGroup]
    ) -> None:
        with self._lock:
            self.events.append(ComplianceEvent(caller.package_name, [g.name for g in groups]))
