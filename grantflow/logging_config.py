"""
Logging configuration for grantflow.

Provides structured JSON logging for the permission workflow and a
DecisionLogger for the events an operator needs to reconstruct a run.
"""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Dict, List, Optional, TextIO

# Context variable for workflow run tracking
workflow_id_var: ContextVar[str] = ContextVar('workflow_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    One JSON object per line. Workflow events (records built by
    DecisionLogger) carry their event_type and fields at the top level;
    plain diagnostics get event_type "LOG" and their source location.
    Fields whose value is None are left out.
    """

    def format(self, record: logging.LogRecord) -> str:
        fields = dict(getattr(record, "extra_fields", {}))
        event_type = fields.pop("event_type", None)

        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "event_type": event_type or "LOG",
            "workflow_id": fields.pop("workflow_id", None) or workflow_id_var.get() or None,
            "message": fields.pop("message", None) or record.getMessage(),
        }

        if event_type is None:
            log_data["source"] = f"{record.module}:{record.funcName}:{record.lineno}"

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data.update(fields)
        return json.dumps({k: v for k, v in log_data.items() if v is not None}, default=str)


class DecisionLogger:
    """
    Specialized logger for permission workflow events.

    Every method emits one record carrying an event_type and the
    fields needed to replay the decision.
    """

    def __init__(self, name: str = "grantflow.decisions"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        extra = {
            "event_type": event_type,
            "workflow_id": workflow_id_var.get(),
            **kwargs
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def workflow_started(
        self,
        app: Optional[str],
        permissions: List[str],
        policy: str
    ) -> None:
        self._log(
            logging.INFO,
            "WORKFLOW_STARTED",
            app=app,
            permissions=permissions,
            policy=policy,
            message=f"Permission request from {app or '<unresolved>'}"
        )

    def group_auto_resolved(
        self,
        app: str,
        group: str,
        granted: bool,
        reason: str
    ) -> None:
        self._log(
            logging.INFO,
            "GROUP_AUTO_RESOLVED",
            app=app,
            group=group,
            granted=granted,
            reason=reason,
            message=f"Group {group} resolved without prompt ({reason})"
        )

    def prompt_shown(
        self,
        app: str,
        group: str,
        kind: str,
        offer: Optional[float] = None,
        remaining_seconds: Optional[int] = None
    ) -> None:
        self._log(
            logging.INFO,
            "PROMPT_SHOWN",
            app=app,
            group=group,
            kind=kind,
            offer=offer,
            remaining_seconds=remaining_seconds,
            message=f"{kind} prompt for {group}"
        )

    def decision_recorded(
        self,
        app: str,
        group: str,
        granted: bool,
        do_not_ask_again: bool
    ) -> None:
        self._log(
            logging.INFO,
            "DECISION_RECORDED",
            app=app,
            group=group,
            granted=granted,
            do_not_ask_again=do_not_ask_again,
            message=f"User {'allowed' if granted else 'denied'} {group}"
        )

    def forced_dismissal(self, app: str, group: str) -> None:
        self._log(
            logging.INFO,
            "FORCED_DISMISSAL",
            app=app,
            group=group,
            message=f"Cooldown prompt for {group} dismissed; not counted as a response"
        )

    def storage_failure(self, operation: str, error: str) -> None:
        self._log(
            logging.WARNING,
            "STORAGE_FAILURE",
            operation=operation,
            error=error,
            message=f"Could not write to disk during {operation}"
        )

    def result_delivered(
        self,
        app: Optional[str],
        result_code: str,
        results: Dict[str, str]
    ) -> None:
        self._log(
            logging.INFO,
            "RESULT_DELIVERED",
            app=app,
            result_code=result_code,
            results=results,
            message=f"Result delivered ({result_code})"
        )

    def permissions_requested(self, package_name: str, groups: List[str]) -> None:
        self._log(
            logging.INFO,
            "PERMISSIONS_REQUESTED",
            package_name=package_name,
            groups=groups,
            message=f"{package_name} prompted for {len(groups)} group(s)"
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None,
    stream: Optional[TextIO] = None
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting
        log_file: Optional file path for log output
        stream: Console stream (default stdout)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_workflow_id(workflow_id: Optional[str] = None) -> str:
    """
    Set the workflow ID for the current context.

    Args:
        workflow_id: ID to set, or None to generate one

    Returns:
        The workflow ID that was set
    """
    if workflow_id is None:
        workflow_id = str(uuid.uuid4())
    workflow_id_var.set(workflow_id)
    return workflow_id


def get_workflow_id() -> str:
    """Get the current workflow ID."""
    return workflow_id_var.get()


# Global decision logger instance
decision_log = DecisionLogger()
