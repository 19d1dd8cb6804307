"""
grantflow Permission Request Controller

Drives one permission request from start to result delivery:

    start()
        ↓ default results, policy auto-resolution, group partitioning
    advance() → DecisionPrompt | CooldownPrompt | None
        ↓ presentation layer shows the prompt
    on_decision(group, granted, do_not_ask_again)
        ↓ grant/revoke, denial tracking, audit, next prompt
    finish() / cancel()
        ↓ result delivered exactly once

Per-group state machine:

    UNKNOWN → ALLOWED
    UNKNOWN → DENIED

Groups that are user-fixed, policy-fixed, already granted, or decided
by an AUTO_GRANT / AUTO_DENY policy never enter UNKNOWN; they are
reported from their platform state without a prompt.

Only one prompt is outstanding at a time. A group denied recently for
the same application gets a CooldownPrompt whose only action dismisses
it; the dismissal still revokes the group but is not recorded as a user
response.
"""

import logging
from collections import OrderedDict
from typing import List, Mapping, Optional, Sequence

from .groups import GroupRequest, PermissionGroup
from .logging_config import decision_log, set_workflow_id
from .models import (
    AuditLogEntry,
    CallerPackage,
    GrantResult,
    GrantStatus,
    PolicyMode,
    ProtectionLevel,
    ResultCode,
)
from .policy import ComplianceSink, LoggingComplianceSink, PolicyProvider
from .prompts import CooldownPrompt, DecisionPrompt, Prompt
from .results import ResultAggregator, ResultCallback
from .store import StorageError
from .tracker import DenialTracker

logger = logging.getLogger(__name__)


class PermissionRequestController:
    """
    One workflow run for one requesting application.

    Usage:
        controller = PermissionRequestController(
            requested_permissions=["CAMERA", "ACCESS_FINE_LOCATION"],
            caller=caller_package,
            groups=resolved_groups,
            tracker=tracker,
            policy_provider=StaticPolicyProvider(),
            permission_catalog=catalog,
            on_result=deliver,
        )

        prompt = controller.start()
        while prompt is not None:
            granted, do_not_ask = show(prompt)
            prompt = controller.on_decision(prompt.group_name, granted, do_not_ask)
    """

    def __init__(
        self,
        requested_permissions: Optional[Sequence[str]],
        caller: Optional[CallerPackage],
        groups: Sequence[PermissionGroup],
        tracker: DenialTracker,
        policy_provider: PolicyProvider,
        permission_catalog: Mapping[str, ProtectionLevel],
        on_result: ResultCallback,
        compliance_sink: Optional[ComplianceSink] = None
    ):
        self.requested: List[str] = list(requested_permissions or [])
        self.caller = caller
        self.resolved_groups = list(groups)
        self.tracker = tracker
        self.policy_provider = policy_provider
        self.permission_catalog = permission_catalog
        self.on_result = on_result
        self.compliance_sink = compliance_sink or LoggingComplianceSink()

        self.aggregator = ResultAggregator(self.requested)
        self.pending: "OrderedDict[str, GroupRequest]" = OrderedDict()
        self.current_prompt: Optional[Prompt] = None
        self.workflow_id: Optional[str] = None
        self._started = False

    @property
    def app_label(self) -> Optional[str]:
        return self.caller.label if self.caller is not None else None

    @property
    def finished(self) -> bool:
        return self.aggregator.delivered

    @property
    def result(self) -> GrantResult:
        return self.aggregator.snapshot()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def start(self) -> Optional[Prompt]:
        """
        Begin the run and return the first prompt.

        Returns None when no prompt is needed; the result has then
        already been delivered.
        """
        if self._started:
            raise RuntimeError("Workflow already started")
        self._started = True
        self.workflow_id = set_workflow_id()

        policy = self.policy_provider.get_permission_policy()
        decision_log.workflow_started(self.app_label, self.requested, policy.value)

        if not self.requested:
            self.finish()
            return None

        defaults = self.compute_default_results(self.requested, self.caller, policy)
        self.aggregator.set_all(defaults.results)

        if self.caller is None:
            # Unresolved caller: everything stays denied
            self.finish()
            return None

        self.pending = self.build_groups(self.requested, self.resolved_groups, policy)
        return self._show_next()

    # ------------------------------------------------------------------
    # Baseline results
    # ------------------------------------------------------------------

    def compute_default_results(
        self,
        requested: Sequence[str],
        caller: Optional[CallerPackage],
        policy: PolicyMode
    ) -> GrantResult:
        """Status of each requested permission before any group is handled."""
        if caller is None:
            results = [GrantStatus.DENIED] * len(requested)
        else:
            results = [self._default_status(caller, p, policy) for p in requested]
        return GrantResult(permissions=list(requested), results=results)

    def _default_status(
        self,
        caller: CallerPackage,
        permission: str,
        policy: PolicyMode
    ) -> GrantStatus:
        if not caller.declares(permission):
            return GrantStatus.DENIED
        if caller.is_granted(permission):
            return GrantStatus.GRANTED

        level = self.permission_catalog.get(permission)
        if level != ProtectionLevel.DANGEROUS:
            # Unknown to the catalog, or not a runtime permission
            return GrantStatus.DENIED

        if policy == PolicyMode.AUTO_GRANT:
            return GrantStatus.GRANTED
        return GrantStatus.DENIED

    # ------------------------------------------------------------------
    # Group partitioning
    # ------------------------------------------------------------------

    def build_groups(
        self,
        requested: Sequence[str],
        resolved_groups: Sequence[PermissionGroup],
        policy: PolicyMode
    ) -> "OrderedDict[str, GroupRequest]":
        """
        Partition the request into groups and resolve what needs no prompt.

        Returns:
            Groups waiting for a user decision, in the order they were
            first touched by the request
        """
        pending: "OrderedDict[str, GroupRequest]" = OrderedDict()
        seen = set()
        app = self.app_label or ""

        for permission in requested:
            group = next((g for g in resolved_groups if g.has_permission(permission)), None)
            if group is None or group.name in seen:
                continue
            seen.add(group.name)

            if group.is_user_fixed() or group.is_policy_fixed():
                reason = "user_fixed" if group.is_user_fixed() else "policy_fixed"
                self._report_auto_resolved(app, group, reason)
                continue

            if policy == PolicyMode.AUTO_GRANT:
                if not group.are_runtime_permissions_granted():
                    group.grant_runtime_permissions(False)
                group.set_policy_fixed()
                self._report_auto_resolved(app, group, "policy_auto_grant")
            elif policy == PolicyMode.AUTO_DENY:
                if group.are_runtime_permissions_granted():
                    group.revoke_runtime_permissions(False)
                group.set_policy_fixed()
                self._report_auto_resolved(app, group, "policy_auto_deny")
            elif group.are_runtime_permissions_granted():
                group.grant_runtime_permissions(False)
                self._report_auto_resolved(app, group, "already_granted")
            else:
                pending[group.name] = GroupRequest(group)

        return pending

    def _report_auto_resolved(self, app: str, group: PermissionGroup, reason: str) -> None:
        self.aggregator.apply_group(group)
        decision_log.group_auto_resolved(
            app, group.name, group.are_runtime_permissions_granted(), reason
        )

    # ------------------------------------------------------------------
    # Prompt sequencing
    # ------------------------------------------------------------------

    def advance(self) -> Optional[Prompt]:
        """
        Build the prompt for the first undecided group.

        Returns:
            A CooldownPrompt if the group was denied recently, otherwise a
            DecisionPrompt; None when every group has been decided
        """
        app = self.app_label or ""
        count = len(self.pending)

        for index, request in enumerate(self.pending.values()):
            if not request.is_pending():
                continue

            group = request.group
            common = dict(
                group_name=group.name,
                app_label=app,
                description=group.description,
                group_index=index,
                group_count=count,
                icon_pkg=group.icon_pkg,
                icon_res_id=group.icon_res_id,
                show_do_not_ask=group.is_user_set(),
            )

            since = self.tracker.time_since_denial(app, group.name)
            if since is not None:
                remaining = self.tracker.denied_wait_period - since
                prompt: Prompt = CooldownPrompt(
                    time_since_denial=since, remaining=remaining, **common
                )
                decision_log.prompt_shown(
                    app, group.name, prompt.kind.value,
                    remaining_seconds=int(remaining.total_seconds())
                )
            else:
                prompt = DecisionPrompt(offer=self.tracker.generate_offer(), **common)
                decision_log.prompt_shown(app, group.name, prompt.kind.value, offer=prompt.offer)

            self.current_prompt = prompt
            return prompt

        self.current_prompt = None
        return None

    def _show_next(self) -> Optional[Prompt]:
        prompt = self.advance()
        if prompt is None:
            self.finish()
        return prompt

    # ------------------------------------------------------------------
    # Decision events
    # ------------------------------------------------------------------

    def on_decision(
        self,
        group_name: str,
        granted: bool,
        do_not_ask_again: bool = False
    ) -> Optional[Prompt]:
        """
        Apply the user's answer for group_name and move on.

        Unknown or already decided groups are ignored.

        Returns:
            The next prompt, or None once the result has been delivered
        """
        if self.finished:
            logger.warning("Decision for %s after the workflow finished; ignored", group_name)
            return None

        request = self.pending.get(group_name)
        if request is None:
            logger.warning("Decision for unknown group %s; ignored", group_name)
            return self.current_prompt
        if not request.is_pending():
            logger.warning("Group %s already %s; ignored", group_name, request.state.value)
            return self.current_prompt

        app = self.app_label or ""
        group = request.group

        if granted:
            group.grant_runtime_permissions(do_not_ask_again)
            request.resolve(True)
            decision_log.decision_recorded(app, group_name, True, do_not_ask_again)
            self._append_audit(app, group_name, True)
        else:
            group.revoke_runtime_permissions(do_not_ask_again)
            request.resolve(False)
            self._record_denial(app, group_name, do_not_ask_again)

        self.aggregator.apply_group(group)
        return self._show_next()

    def _record_denial(self, app: str, group_name: str, do_not_ask_again: bool) -> None:
        try:
            fresh = self.tracker.record_denial(app, group_name)
        except StorageError as e:
            decision_log.storage_failure("record_denial", str(e))
            return

        if fresh:
            decision_log.decision_recorded(app, group_name, False, do_not_ask_again)
            self._append_audit(app, group_name, False)
        else:
            decision_log.forced_dismissal(app, group_name)

    def _append_audit(self, app: str, permission: str, response: bool) -> None:
        entry = AuditLogEntry(
            app=app,
            permission=permission,
            user_response=response,
            timestamp=self.tracker.now(),
        )
        try:
            self.tracker.store.append_audit_entry(entry)
        except StorageError as e:
            decision_log.storage_failure("append_audit_entry", str(e))

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def finish(self) -> None:
        """Natural completion: deliver the result with ResultCode.OK."""
        self._finalize(ResultCode.OK)

    def cancel(self) -> None:
        """External cancellation: deliver the result with ResultCode.CANCELED."""
        self._finalize(ResultCode.CANCELED)

    def _finalize(self, result_code: ResultCode) -> None:
        def deliver(result: GrantResult) -> None:
            self._log_requested_groups()
            decision_log.result_delivered(
                self.app_label,
                result.result_code.value,
                {p: r.value for p, r in zip(result.permissions, result.results)},
            )
            self.on_result(result)

        if self.aggregator.finalize(deliver, result_code):
            self.current_prompt = None

    def _log_requested_groups(self) -> None:
        if not self.pending or self.caller is None:
            return
        groups = [request.group for request in self.pending.values()]
        self.compliance_sink.log_permissions_requested(self.caller, groups)
