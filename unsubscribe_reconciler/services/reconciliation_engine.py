"""Unsubscribe reconciliation engine orchestrator.

A run is a strict forward pass:

1. QUERYING      - collect raw records for ``[now - LOOKBACK_DAYS, now]``.
2. PARSING       - raw records -> UnsubscribeEvent (bad lines dropped).
3. DEDUPLICATING - one event per (tenant, email).
4. GROUPING      - partition by tenant.
5. RECONCILING   - batched, failure-isolated removals per tenant.
6. REPORTING     - aggregate counts into a RunReport.
7. DONE

The only abort is a LogQueryError during QUERYING, which moves the run to
FAILED and propagates to the caller. Everything after that degrades to data
(skipped lines, FailedRemoval entries) so a run that got its records always
reports.

``now`` is passed in rather than read from the wall clock so a run's window is
deterministic; ``clock`` stamps removals and ``processedAt``.
"""
from __future__ import annotations

import time
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from unsubscribe_reconciler.config import LOOKBACK_DAYS, UNSUBSCRIBE_LOG_GROUP_NAME
from unsubscribe_reconciler.exceptions import LogQueryError
from unsubscribe_reconciler.integrations.base import LogStore, SubscriberStore
from unsubscribe_reconciler.models.domain import RunStage
from unsubscribe_reconciler.models.schemas.reconciliation import RunReport
from unsubscribe_reconciler.services.event_grouping import dedupe_events, group_by_tenant
from unsubscribe_reconciler.services.event_parser import parse_unsubscribe_events
from unsubscribe_reconciler.services.log_query_client import LogQueryClient
from unsubscribe_reconciler.services.reconciliation_batcher import ReconciliationBatcher
from unsubscribe_reconciler.services.report_builder import build_run_report
from unsubscribe_reconciler.utils import get_logger, log_business_event, log_performance
from unsubscribe_reconciler.utils.observability import new_run_id
from unsubscribe_reconciler.utils.time import lookback_range, utc_now

logger = get_logger(__name__)


class ReconciliationRun:
    """One execution of the pipeline; ``stage`` tracks where it is."""

    def __init__(
        self,
        query_client: LogQueryClient,
        batcher: ReconciliationBatcher,
        *,
        log_source: Optional[str] = None,
        lookback_days: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
        run_id: Optional[str] = None,
    ):
        self.query_client = query_client
        self.batcher = batcher
        self.log_source = log_source if log_source is not None else UNSUBSCRIBE_LOG_GROUP_NAME
        self.lookback_days = int(lookback_days if lookback_days is not None else LOOKBACK_DAYS)
        self.clock = clock
        self.run_id = run_id or new_run_id()
        self.stage: RunStage | None = None
        self.history: list[RunStage] = []

    def _enter(self, stage: RunStage) -> None:
        self.stage = stage
        self.history.append(stage)
        logger.debug("Run stage entered", run_id=self.run_id, stage=stage.value)

    async def execute(self, now: Optional[datetime] = None) -> RunReport:
        started = time.perf_counter()
        time_range = lookback_range(now or self.clock(), self.lookback_days)
        logger.info(
            "Processing unsubscribe logs",
            run_id=self.run_id,
            start=time_range.start_time_iso,
            end=time_range.end_time_iso,
        )

        self._enter(RunStage.QUERYING)
        try:
            records = await self.query_client.query(self.log_source, time_range)
        except LogQueryError as e:
            self._enter(RunStage.FAILED)
            logger.error("Processing failed", run_id=self.run_id, stage=RunStage.QUERYING.value, error=str(e))
            raise

        self._enter(RunStage.PARSING)
        events = parse_unsubscribe_events(records)

        self._enter(RunStage.DEDUPLICATING)
        unique_events = dedupe_events(events)

        self._enter(RunStage.GROUPING)
        groups = group_by_tenant(unique_events)

        self._enter(RunStage.RECONCILING)
        outcomes = await self.batcher.reconcile_all(groups)

        self._enter(RunStage.REPORTING)
        report = build_run_report(time_range, len(records), unique_events, outcomes, self.clock())

        self._enter(RunStage.DONE)
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        log_business_event(
            event_type="unsubscribe_reconciliation_completed",
            details={
                "tenants": len(groups),
                "total_log_events": report.total_log_events,
                "unique_unsubscribe_attempts": report.unique_unsubscribe_attempts,
                "successful": report.successful,
                "failed": report.failed,
            },
            run_id=self.run_id,
        )
        log_performance(
            operation="unsubscribe_reconciliation_run",
            duration_ms=duration_ms,
            additional_data={"run_id": self.run_id, "tenants": len(groups)},
        )
        return report


async def run_reconciliation(
    *,
    log_store: LogStore,
    subscriber_store: SubscriberStore,
    now: Optional[datetime] = None,
    log_source: Optional[str] = None,
    clock: Callable[[], datetime] = utc_now,
    sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
) -> RunReport:
    """Build the pipeline from its two collaborators and run it once.

    ``sleep`` replaces both the poll interval wait and the inter-batch pause
    (tests pass a no-op).
    """
    sleep_kwargs = {"sleep": sleep} if sleep is not None else {}
    run = ReconciliationRun(
        LogQueryClient(log_store, **sleep_kwargs),
        ReconciliationBatcher(subscriber_store, clock=clock, **sleep_kwargs),
        log_source=log_source,
        clock=clock,
    )
    return await run.execute(now)


__all__ = ["ReconciliationRun", "run_reconciliation"]
