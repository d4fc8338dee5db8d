"""Time-windowed log query with the store's submit/poll protocol.

The log store answers asynchronously: a query is submitted, then its status is
polled at a fixed interval until it completes. Completed pages are collected
and a continuation token, when present, keeps the poll loop going. The loop is
bounded by ``max_poll_attempts``; running out of attempts aborts the run
rather than retrying, since the next scheduled invocation covers the same
window again.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

from unsubscribe_reconciler.config import LOG_QUERY_SETTINGS
from unsubscribe_reconciler.exceptions import QueryFailed, QueryTimedOut
from unsubscribe_reconciler.integrations.base import (
    LogStore,
    QueryStatusPage,
    QUERY_STATUS_COMPLETE,
    TERMINAL_FAILURE_STATUSES,
)
from unsubscribe_reconciler.models.domain import RawLogRecord, TimeRange
from unsubscribe_reconciler.utils import get_logger

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


class LogQueryClient:
    """Collects every raw record matching the unsubscribe filter for a window."""

    def __init__(
        self,
        log_store: LogStore,
        *,
        result_limit: int | None = None,
        max_poll_attempts: int | None = None,
        poll_interval_seconds: float | None = None,
        query_string: str | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.log_store = log_store
        self.result_limit = int(result_limit if result_limit is not None else LOG_QUERY_SETTINGS["result_limit"])
        self.max_poll_attempts = int(max_poll_attempts if max_poll_attempts is not None else LOG_QUERY_SETTINGS["max_poll_attempts"])
        self.poll_interval_seconds = float(
            poll_interval_seconds if poll_interval_seconds is not None else LOG_QUERY_SETTINGS["poll_interval_seconds"]
        )
        self.query_string = str(query_string or LOG_QUERY_SETTINGS["query_string"])
        self._sleep = sleep

    async def _call(self, operation: str, fn: Callable[..., Any], *args: Any) -> Any:
        """Run a blocking store call off the event loop; store errors become QueryFailed."""
        try:
            return await asyncio.to_thread(fn, *args)
        except Exception as e:  # broad: any store/SDK failure is fatal for the run
            raise QueryFailed(
                f"Failed to query CloudWatch logs: {e}",
                context={"operation": operation},
            ) from e

    async def query(self, log_source: Optional[str], time_range: TimeRange) -> list[RawLogRecord]:
        """Submit the query and poll until complete.

        Raises:
            QueryFailed: missing log source, submission error, or the store
                reported the query as failed/cancelled.
            QueryTimedOut: not complete after ``max_poll_attempts`` polls.
        """
        if not log_source:
            raise QueryFailed("Failed to query CloudWatch logs: log group name not configured")

        query_id: str = await self._call(
            "submit_query",
            self.log_store.submit_query,
            log_source,
            self.query_string,
            time_range.start_time,
            time_range.end_time,
            self.result_limit,
        )
        logger.info(
            "Log query submitted",
            query_id=query_id,
            log_source=log_source,
            start=time_range.start_time_iso,
            end=time_range.end_time_iso,
        )

        records: list[RawLogRecord] = []
        next_token: Optional[str] = None
        attempts = 0
        pages = 0

        while attempts < self.max_poll_attempts:
            await self._sleep(self.poll_interval_seconds)
            attempts += 1

            page: QueryStatusPage = await self._call(
                "get_query_status", self.log_store.get_query_status, query_id, next_token
            )

            if page.status == QUERY_STATUS_COMPLETE:
                records.extend(page.results)
                pages += 1
                if page.next_token:
                    # More pages pending; keep polling with the continuation token
                    next_token = page.next_token
                    continue
                logger.info(
                    "Log query complete",
                    query_id=query_id,
                    records=len(records),
                    pages=pages,
                    poll_attempts=attempts,
                )
                return records

            if page.status in TERMINAL_FAILURE_STATUSES:
                raise QueryFailed(
                    f"CloudWatch Logs query {page.status.lower()}",
                    context={"query_id": query_id, "poll_attempts": attempts},
                )

            logger.debug("Log query still running", query_id=query_id, status=page.status, attempt=attempts)

        ceiling = self.max_poll_attempts * self.poll_interval_seconds
        raise QueryTimedOut(
            f"CloudWatch Logs query timed out after {ceiling:g} seconds",
            attempts=attempts,
            context={"query_id": query_id, "records_so_far": len(records)},
        )


__all__ = ["LogQueryClient"]
