"""Time utilities (UTC now, ISO stamps, look-back windows)."""
from __future__ import annotations
from datetime import datetime, timezone, timedelta

from unsubscribe_reconciler.models.domain import TimeRange

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def isoformat_z(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"

def lookback_range(now: datetime, days: int) -> TimeRange:
    """Window ending at ``now`` and reaching ``days`` back; naive values are read as UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    start = now - timedelta(days=days)
    return TimeRange(
        start_time=int(start.timestamp()),
        end_time=int(now.timestamp()),
        start_time_iso=isoformat_z(start),
        end_time_iso=isoformat_z(now),
    )


__all__ = ["utc_now", "isoformat_z", "lookback_range"]
