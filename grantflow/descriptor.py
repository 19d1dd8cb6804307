"""
Application descriptor loading.

Reads a JSON description of an installed application and builds the
collaborators the controller needs: the caller identity, the permission
catalog and the application's permission groups.

    {
      "package_name": "com.example.snapshot",
      "label": "Snapshot",
      "permissions": [
        {"name": "android.permission.CAMERA", "protection": "dangerous", "granted": false}
      ],
      "groups": [
        {
          "name": "CAMERA",
          "description": "take pictures and record video",
          "permissions": ["android.permission.CAMERA"]
        }
      ]
    }
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError, model_validator

from .groups import InMemoryPermissionGroup, Permission
from .models import CallerPackage, ProtectionLevel


class DescriptorError(Exception):
    """Raised when an application descriptor cannot be loaded."""
    pass


class DeclaredPermission(BaseModel):
    name: str
    protection: ProtectionLevel = ProtectionLevel.DANGEROUS
    granted: bool = False


class GroupSpec(BaseModel):
    name: str
    description: str = ""
    permissions: List[str] = Field(min_length=1)
    user_fixed: bool = False
    policy_fixed: bool = False
    user_set: bool = False
    icon_pkg: Optional[str] = None
    icon_res_id: Optional[int] = None


class AppDescriptor(BaseModel):
    package_name: str
    label: str
    permissions: List[DeclaredPermission] = Field(default_factory=list)
    groups: List[GroupSpec] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_groups(self) -> "AppDescriptor":
        seen: Dict[str, str] = {}
        for group in self.groups:
            for name in group.permissions:
                if name in seen:
                    raise ValueError(
                        f"permission {name} is in both {seen[name]} and {group.name}"
                    )
                seen[name] = group.name
        return self


@dataclass
class ResolvedApp:
    """Collaborators built from one descriptor."""
    caller: CallerPackage
    catalog: Dict[str, ProtectionLevel]
    groups: List[InMemoryPermissionGroup]


def resolve(descriptor: AppDescriptor) -> ResolvedApp:
    granted = {p.name: p.granted for p in descriptor.permissions}
    caller = CallerPackage(
        package_name=descriptor.package_name,
        label=descriptor.label,
        declared_permissions=dict(granted),
    )
    catalog = {p.name: p.protection for p in descriptor.permissions}
    groups = [
        InMemoryPermissionGroup(
            name=g.name,
            description=g.description,
            permissions=[Permission(name, granted.get(name, False)) for name in g.permissions],
            icon_pkg=g.icon_pkg,
            icon_res_id=g.icon_res_id,
            user_fixed=g.user_fixed,
            policy_fixed=g.policy_fixed,
            user_set=g.user_set,
        )
        for g in descriptor.groups
    ]
    return ResolvedApp(caller=caller, catalog=catalog, groups=groups)


def load_descriptor(path: Union[str, Path]) -> ResolvedApp:
    """
    Load and resolve an application descriptor file.

    Raises:
        DescriptorError: If the file is missing or invalid
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise DescriptorError(f"Cannot read descriptor {path}: {e}") from e

    try:
        descriptor = AppDescriptor.model_validate(data)
    except ValidationError as e:
        raise DescriptorError(f"Invalid descriptor {path}: {e}") from e

    return resolve(descriptor)
