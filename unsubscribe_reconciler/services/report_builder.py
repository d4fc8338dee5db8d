"""Run report aggregation."""
from __future__ import annotations

from datetime import datetime
from typing import Sequence

from unsubscribe_reconciler.models.domain import TenantOutcome, TimeRange, UnsubscribeEvent
from unsubscribe_reconciler.models.schemas.reconciliation import RunReport, TimeRangeSchema
from unsubscribe_reconciler.utils.time import isoformat_z


def build_run_report(
    time_range: TimeRange,
    total_log_events: int,
    events: Sequence[UnsubscribeEvent],
    outcomes: Sequence[TenantOutcome],
    processed_at: datetime,
) -> RunReport:
    return RunReport(
        processed_at=isoformat_z(processed_at),
        time_range=TimeRangeSchema.from_domain(time_range),
        total_log_events=total_log_events,
        unique_unsubscribe_attempts=len(events),
        successful=sum(len(o.successful) for o in outcomes),
        failed=sum(len(o.failed) for o in outcomes),
    )


__all__ = ["build_run_report"]
