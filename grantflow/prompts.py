"""
Prompts returned by the controller for the presentation layer.

A prompt carries everything a view needs to ask about one group; how it
is drawn is up to the caller.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, Optional

from .util import whole_minutes_plus_one

DECISION_TEMPLATE = "Accept ${offer:.2f} to allow {app} to {description}?"
COOLDOWN_TEMPLATE = (
    "You denied {app} permission to {description} {since} minute(s) ago. "
    "You can be asked again in {left} minute(s)."
)


class PromptKind(str, Enum):
    DECISION = "DECISION"
    COOLDOWN = "COOLDOWN"


@dataclass
class Prompt(ABC):
    """Fields shared by both prompt kinds."""
    group_name: str
    app_label: str
    description: str
    group_index: int
    group_count: int
    icon_pkg: Optional[str] = None
    icon_res_id: Optional[int] = None
    show_do_not_ask: bool = False
    kind: PromptKind = field(init=False)
    allow_enabled: bool = field(init=False)
    deny_label: str = field(init=False)

    @property
    @abstractmethod
    def message(self) -> str:
        pass

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "group": self.group_name,
            "index": self.group_index,
            "count": self.group_count,
            "message": self.message,
            "allow_enabled": self.allow_enabled,
            "deny_label": self.deny_label,
            "show_do_not_ask": self.show_do_not_ask,
        }


@dataclass
class DecisionPrompt(Prompt):
    """Ask the user to allow or deny a group, with an incentive offer."""
    offer: float = 0.0

    def __post_init__(self):
        self.kind = PromptKind.DECISION
        self.allow_enabled = True
        self.deny_label = "Deny"

    @property
    def message(self) -> str:
        return DECISION_TEMPLATE.format(
            offer=self.offer, app=self.app_label, description=self.description
        )

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["offer"] = round(self.offer, 2)
        return d


@dataclass
class CooldownPrompt(Prompt):
    """
    The group was denied recently: allow is disabled and the only
    action dismisses the prompt.
    """
    time_since_denial: timedelta = timedelta(0)
    remaining: timedelta = timedelta(0)

    def __post_init__(self):
        self.kind = PromptKind.COOLDOWN
        self.allow_enabled = False
        self.deny_label = "Cancel"

    @property
    def minutes_since_denial(self) -> int:
        return whole_minutes_plus_one(self.time_since_denial)

    @property
    def minutes_remaining(self) -> int:
        return whole_minutes_plus_one(self.remaining)

    @property
    def message(self) -> str:
        return COOLDOWN_TEMPLATE.format(
            app=self.app_label,
            description=self.description,
            since=self.minutes_since_denial,
            left=self.minutes_remaining,
        )

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["remaining_seconds"] = int(self.remaining.total_seconds())
        return d
