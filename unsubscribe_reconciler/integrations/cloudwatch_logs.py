"""
CloudWatch Logs Insights implementation of the log store seam.
"""
from typing import Any, Optional

from unsubscribe_reconciler.integrations.aws import LazyClient
from unsubscribe_reconciler.integrations.base import LogStore, QueryStatusPage, QUERY_STATUS_RUNNING
from unsubscribe_reconciler.utils import get_logger

logger = get_logger(__name__)


class CloudWatchLogStore(LogStore):
    """Thin adapter over ``start_query`` / ``get_query_results``."""

    client = LazyClient("logs")

    def __init__(self, client: Optional[Any] = None):
        self._client = client

    def submit_query(self, log_source: str, query_string: str, start_time: int, end_time: int, limit: int) -> str:
        response = self.client.start_query(
            logGroupName=log_source,
            startTime=start_time,
            endTime=end_time,
            queryString=query_string,
            limit=limit,
        )
        query_id = response.get("queryId")
        if not query_id:
            raise ValueError("CloudWatch Logs queryId missing")
        logger.debug("CloudWatch Logs query started", query_id=query_id, log_group=log_source)
        return query_id

    def get_query_status(self, query_id: str, next_token: Optional[str] = None) -> QueryStatusPage:
        """Insights returns the whole result set in one response.

        ``get_query_results`` takes no continuation token, so ``next_token`` is
        ignored and the returned page never carries one.
        """
        response = self.client.get_query_results(queryId=query_id)
        return QueryStatusPage(
            status=response.get("status") or QUERY_STATUS_RUNNING,
            results=list(response.get("results") or []),
        )


__all__ = ["CloudWatchLogStore"]
