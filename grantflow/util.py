"""
Utility functions for grantflow.

Time helpers shared by the tracker, the ledger store and the prompts.
"""

from datetime import datetime, timedelta, timezone

AUDIT_TIMESTAMP_FORMAT = "%m/%d/%Y %H:%M"


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_audit_timestamp(ts: datetime) -> str:
    """Format a timestamp as MM/DD/YYYY HH:MM in local time (24-hour)."""
    if ts.tzinfo is not None:
        ts = ts.astimezone()
    return ts.strftime(AUDIT_TIMESTAMP_FORMAT)


def whole_minutes_plus_one(delta: timedelta) -> int:
    """
    Minutes shown to the user for a wait period.

    Truncates to whole minutes and adds one, so a wait that has just
    started reads "1 minute" rather than "0 minutes".
    """
    return int(delta.total_seconds() // 60) + 1
