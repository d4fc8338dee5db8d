"""Batched, failure-isolated removals against the subscriber store.

Ordering model:
* tenants run one after another,
* a tenant's batches run one after another (batch n+1 starts only once every
  removal of batch n has settled),
* removals inside a batch run concurrently with no ordering between them.

A batch is joined with ``asyncio.gather(..., return_exceptions=True)`` so one
failing removal neither cancels nor hides the outcome of its siblings. Every
per-event problem becomes a ``FailedRemoval``; nothing raised by the store
escapes ``reconcile``.
"""
from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Mapping, Sequence

from unsubscribe_reconciler.config import RECONCILIATION_SETTINGS
from unsubscribe_reconciler.integrations.base import SubscriberStore
from unsubscribe_reconciler.models.domain import (
    FailedRemoval,
    ReconciliationResult,
    SuccessfulRemoval,
    TenantBatch,
    TenantOutcome,
    UnsubscribeEvent,
)
from unsubscribe_reconciler.services.event_grouping import iter_batches
from unsubscribe_reconciler.utils import get_logger
from unsubscribe_reconciler.utils.time import isoformat_z, utc_now

logger = get_logger(__name__)

UNSUBSCRIBE_FAILED = "Unsubscribe failed"


def processing_failed(reason: str) -> str:
    return f"Processing failed: {reason}"


class ReconciliationBatcher:
    def __init__(
        self,
        subscriber_store: SubscriberStore,
        *,
        batch_size: int | None = None,
        inter_batch_delay_seconds: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.subscriber_store = subscriber_store
        self.batch_size = int(batch_size if batch_size is not None else RECONCILIATION_SETTINGS["batch_size"])
        self.inter_batch_delay_seconds = float(
            inter_batch_delay_seconds if inter_batch_delay_seconds is not None
            else RECONCILIATION_SETTINGS["inter_batch_delay_seconds"]
        )
        self._sleep = sleep
        self._clock = clock

    async def _remove(self, tenant_id: str, event: UnsubscribeEvent) -> ReconciliationResult:
        removed = await self.subscriber_store.unsubscribe(tenant_id, event.email)
        if removed:
            return SuccessfulRemoval(email=event.email, tenant_id=tenant_id, removed_at=isoformat_z(self._clock()))
        return FailedRemoval(error=processing_failed(UNSUBSCRIBE_FAILED), email=event.email, tenant_id=tenant_id)

    async def _run_batch(self, batch: TenantBatch) -> list[ReconciliationResult]:
        settled = await asyncio.gather(
            *(self._remove(batch.tenant_id, event) for event in batch.events),
            return_exceptions=True,
        )
        results: list[ReconciliationResult] = []
        for event, outcome in zip(batch.events, settled):
            if isinstance(outcome, BaseException):
                logger.error(
                    "Failed to process unsubscribe",
                    tenant_id=batch.tenant_id,
                    batch=batch.index,
                    error=str(outcome),
                    error_type=type(outcome).__name__,
                )
                results.append(FailedRemoval(
                    error=processing_failed(str(outcome) or type(outcome).__name__),
                    email=event.email,
                    tenant_id=batch.tenant_id,
                ))
            else:
                results.append(outcome)
        return results

    async def reconcile(self, tenant_id: str, events: Sequence[UnsubscribeEvent]) -> TenantOutcome:
        """Remove every event's address for one tenant, batch by batch."""
        outcome = TenantOutcome(tenant_id=tenant_id)
        logger.info("Processing tenant unsubscribes", tenant_id=tenant_id, events=len(events))

        batches = list(iter_batches(tenant_id, events, self.batch_size))
        for batch in batches:
            for result in await self._run_batch(batch):
                outcome.record(result)
            # Pause between batches only, never after the last one
            if batch.index < len(batches) - 1:
                await self._sleep(self.inter_batch_delay_seconds)

        logger.info(
            "Tenant reconciliation finished",
            tenant_id=tenant_id,
            successful=len(outcome.successful),
            failed=len(outcome.failed),
            batches=len(batches),
        )
        return outcome

    async def reconcile_all(self, groups: Mapping[str, Sequence[UnsubscribeEvent]]) -> list[TenantOutcome]:
        outcomes: list[TenantOutcome] = []
        for tenant_id, events in groups.items():
            outcomes.append(await self.reconcile(tenant_id, events))
        return outcomes


__all__ = ["ReconciliationBatcher", "UNSUBSCRIBE_FAILED", "processing_failed"]
