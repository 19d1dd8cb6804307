"""
grantflow data model.

Plain value types shared by the controller, the tracker and the store.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional


class GroupState(str, Enum):
    """
    Per-group decision state.

    UNKNOWN: Enqueued, waiting for a prompt decision
    ALLOWED: User granted the group (terminal)
    DENIED: User denied or dismissed the group (terminal)
    """
    UNKNOWN = "UNKNOWN"
    ALLOWED = "ALLOWED"
    DENIED = "DENIED"


class PolicyMode(str, Enum):
    """Device-wide permission policy."""
    DEFAULT = "default"
    AUTO_GRANT = "auto_grant"
    AUTO_DENY = "auto_deny"


class ProtectionLevel(str, Enum):
    """Base protection class of a permission."""
    NORMAL = "normal"
    DANGEROUS = "dangerous"
    SIGNATURE = "signature"


class GrantStatus(str, Enum):
    GRANTED = "GRANTED"
    DENIED = "DENIED"

    @classmethod
    def of(cls, granted: bool) -> "GrantStatus":
        return cls.GRANTED if granted else cls.DENIED


class ResultCode(str, Enum):
    """How the workflow ended."""
    OK = "OK"              # Every pending group was decided
    CANCELED = "CANCELED"  # Ended externally before natural completion


@dataclass
class CallerPackage:
    """
    The resolved identity of the requesting application.

    declared_permissions maps each permission the application declares
    to whether it is currently granted at the platform level.
    """
    package_name: str
    label: str
    declared_permissions: Dict[str, bool] = field(default_factory=dict)

    def declares(self, permission: str) -> bool:
        return permission in self.declared_permissions

    def is_granted(self, permission: str) -> bool:
        return self.declared_permissions.get(permission, False)


@dataclass
class GrantResult:
    """Result vector delivered to the caller, aligned to the request."""
    permissions: List[str]
    results: List[GrantStatus]
    result_code: ResultCode = ResultCode.OK

    def status_of(self, permission: str) -> Optional[GrantStatus]:
        """Status of the first occurrence of permission, None if not requested."""
        try:
            return self.results[self.permissions.index(permission)]
        except ValueError:
            return None

    def to_dict(self) -> Dict[str, object]:
        return {
            "result_code": self.result_code.value,
            "permissions": list(self.permissions),
            "results": [r.value for r in self.results],
        }


@dataclass(frozen=True)
class DenialRecord:
    """One remembered denial of a permission (group) key."""
    permission: str
    denied_at: datetime


@dataclass
class DenialLedger:
    """
    Recent denials per application identity.

    At most one live record per (application, permission) is kept; the
    tracker enforces this on insert.
    """
    entries: Dict[str, List[DenialRecord]] = field(default_factory=dict)

    def records_for(self, app: str) -> List[DenialRecord]:
        return self.entries.get(app, [])

    def add(self, app: str, record: DenialRecord) -> None:
        self.entries.setdefault(app, []).append(record)

    def replace(self, app: str, records: List[DenialRecord]) -> None:
        if records:
            self.entries[app] = records
        else:
            self.entries.pop(app, None)

    def apps(self) -> List[str]:
        return list(self.entries)

    def __len__(self) -> int:
        return sum(len(records) for records in self.entries.values())


@dataclass(frozen=True)
class AuditLogEntry:
    """One terminal user response, appended to the results log."""
    app: str
    permission: str
    user_response: bool
    timestamp: datetime
