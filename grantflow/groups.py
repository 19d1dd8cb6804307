"""
grantflow Permission Groups

The permission-group interface the workflow consumes, an in-memory
implementation, and the per-request wrapper that carries decision state.

Group resolution (which permissions belong to which group for an
installed application) happens outside this package; callers hand the
controller already-resolved PermissionGroup objects.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .models import GroupState


@dataclass
class Permission:
    """One fine-grained permission inside a group."""
    name: str
    granted: bool = False

    def is_granted(self) -> bool:
        return self.granted


class PermissionGroup(ABC):
    """
    Abstract interface for a permission group of one application.

    grant_runtime_permissions / revoke_runtime_permissions take a
    `fixed` flag: when True the user asked not to be prompted again and
    the group becomes user-fixed.
    """

    name: str
    description: str
    icon_pkg: Optional[str]
    icon_res_id: Optional[int]

    @property
    @abstractmethod
    def permissions(self) -> List[Permission]:
        pass

    def has_permission(self, permission: str) -> bool:
        return any(p.name == permission for p in self.permissions)

    @abstractmethod
    def is_user_fixed(self) -> bool:
        pass

    @abstractmethod
    def is_policy_fixed(self) -> bool:
        pass

    @abstractmethod
    def is_user_set(self) -> bool:
        pass

    @abstractmethod
    def set_policy_fixed(self) -> None:
        pass

    @abstractmethod
    def are_runtime_permissions_granted(self) -> bool:
        pass

    @abstractmethod
    def grant_runtime_permissions(self, fixed: bool) -> None:
        pass

    @abstractmethod
    def revoke_runtime_permissions(self, fixed: bool) -> None:
        pass


class InMemoryPermissionGroup(PermissionGroup):
    """Permission group held entirely in memory."""

    def __init__(
        self,
        name: str,
        permissions: Iterable[Permission],
        description: str = "",
        icon_pkg: Optional[str] = None,
        icon_res_id: Optional[int] = None,
        user_fixed: bool = False,
        policy_fixed: bool = False,
        user_set: bool = False
    ):
        self.name = name
        self.description = description or name
        self.icon_pkg = icon_pkg
        self.icon_res_id = icon_res_id
        self._permissions = list(permissions)
        self._user_fixed = user_fixed
        self._policy_fixed = policy_fixed
        self._user_set = user_set

    def __repr__(self) -> str:
        return f"InMemoryPermissionGroup({self.name!r}, granted={self.are_runtime_permissions_granted()})"

    @property
    def permissions(self) -> List[Permission]:
        return self._permissions

    def is_user_fixed(self) -> bool:
        return self._user_fixed

    def is_policy_fixed(self) -> bool:
        return self._policy_fixed

    def is_user_set(self) -> bool:
        return self._user_set

    def set_policy_fixed(self) -> None:
        self._policy_fixed = True

    def are_runtime_permissions_granted(self) -> bool:
        return bool(self._permissions) and all(p.granted for p in self._permissions)

    def grant_runtime_permissions(self, fixed: bool) -> None:
        for p in self._permissions:
            p.granted = True
        self._user_fixed = fixed
        self._user_set = not fixed

    def revoke_runtime_permissions(self, fixed: bool) -> None:
        for p in self._permissions:
            p.granted = False
        self._user_fixed = fixed
        self._user_set = not fixed


@dataclass
class GroupRequest:
    """
    One decision unit of a workflow run.

    State moves UNKNOWN -> ALLOWED or UNKNOWN -> DENIED exactly once.
    """
    group: PermissionGroup
    state: GroupState = field(default=GroupState.UNKNOWN)

    @property
    def name(self) -> str:
        return self.group.name

    def is_pending(self) -> bool:
        return self.state == GroupState.UNKNOWN

    def resolve(self, granted: bool) -> None:
        """
        Move to the terminal state for the decision.

        Raises:
            ValueError: If the group was already decided
        """
        if not self.is_pending():
            raise ValueError(f"Group {self.name} already {self.state.value}")
        self.state = GroupState.ALLOWED if granted else GroupState.DENIED
