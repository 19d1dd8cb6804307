"""
grantflow: Runtime Permission Grant Workflow

Version: 1.0.0
License: Apache 2.0

Grants or denies an application's request for runtime permissions, one
permission group at a time, and records the outcome.

A request is partitioned into permission groups. Groups that are fixed
by the user or by device policy, or that are already granted, resolve
without a prompt. Every other group is put to the user in turn. After a
denial the same application cannot ask again for that group until a
wait period has passed; until then it only gets a prompt that can be
dismissed. Decision prompts carry a bounded incentive offer.

The result vector is aligned to the request and delivered exactly once.

Usage:
    from grantflow import (
        DenialTracker,
        FileLedgerStore,
        PermissionRequestController,
        StaticPolicyProvider,
        load_config,
    )

    config = load_config()
    tracker = DenialTracker.from_config(config, FileLedgerStore.from_config(config))

    controller = PermissionRequestController(
        requested_permissions=["android.permission.CAMERA"],
        caller=caller_package,
        groups=resolved_groups,
        tracker=tracker,
        policy_provider=StaticPolicyProvider(),
        permission_catalog=catalog,
        on_result=deliver,
    )

    prompt = controller.start()
    while prompt is not None:
        prompt = controller.on_decision(prompt.group_name, granted=True)
"""

__version__ = "1.0.0"
__license__ = "Apache-2.0"

# Configuration
from .config import GrantflowConfig, load_config, validate_config

# Data model
from .models import (
    AuditLogEntry,
    CallerPackage,
    DenialLedger,
    DenialRecord,
    GrantResult,
    GrantStatus,
    GroupState,
    PolicyMode,
    ProtectionLevel,
    ResultCode,
)

# Collaborators
from .groups import (
    GroupRequest,
    InMemoryPermissionGroup,
    Permission,
    PermissionGroup,
)
from .policy import (
    ComplianceSink,
    InMemoryComplianceSink,
    LoggingComplianceSink,
    PolicyProvider,
    StaticPolicyProvider,
)

# Storage
from .store import (
    FileLedgerStore,
    InMemoryLedgerStore,
    LedgerStore,
    StorageError,
)

# Workflow
from .tracker import DenialTracker
from .results import ResultAggregator
from .prompts import CooldownPrompt, DecisionPrompt, Prompt, PromptKind
from .controller import PermissionRequestController

# Descriptors
from .descriptor import DescriptorError, load_descriptor


__all__ = [
    # Version
    "__version__",

    # Configuration
    "GrantflowConfig",
    "load_config",
    "validate_config",

    # Data model
    "AuditLogEntry",
    "CallerPackage",
    "DenialLedger",
    "DenialRecord",
    "GrantResult",
    "GrantStatus",
    "GroupState",
    "PolicyMode",
    "ProtectionLevel",
    "ResultCode",

    # Collaborators
    "GroupRequest",
    "InMemoryPermissionGroup",
    "Permission",
    "PermissionGroup",
    "ComplianceSink",
    "InMemoryComplianceSink",
    "LoggingComplianceSink",
    "PolicyProvider",
    "StaticPolicyProvider",

    # Storage
    "FileLedgerStore",
    "InMemoryLedgerStore",
    "LedgerStore",
    "StorageError",

    # Workflow
    "DenialTracker",
    "ResultAggregator",
    "CooldownPrompt",
    "DecisionPrompt",
    "Prompt",
    "PromptKind",
    "PermissionRequestController",

    # Descriptors
    "DescriptorError",
    "load_descriptor",
]
