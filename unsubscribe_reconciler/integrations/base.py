"""Collaborator interfaces consumed by the reconciliation pipeline.

The pipeline only ever talks to these two narrow seams; concrete AWS-backed
implementations live next to this module and tests substitute fakes.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from unsubscribe_reconciler.models.domain import RawLogRecord

# Statuses reported by the log store for a submitted query
QUERY_STATUS_SCHEDULED = "Scheduled"
QUERY_STATUS_RUNNING = "Running"
QUERY_STATUS_COMPLETE = "Complete"
QUERY_STATUS_FAILED = "Failed"
QUERY_STATUS_CANCELLED = "Cancelled"
QUERY_STATUS_TIMEOUT = "Timeout"

TERMINAL_FAILURE_STATUSES = frozenset({QUERY_STATUS_FAILED, QUERY_STATUS_CANCELLED, QUERY_STATUS_TIMEOUT})


@dataclass
class QueryStatusPage:
    status: str
    results: list[RawLogRecord] = field(default_factory=list)
    next_token: Optional[str] = None


class LogStore(ABC):
    @abstractmethod
    def submit_query(self, log_source: str, query_string: str, start_time: int, end_time: int, limit: int) -> str:
        """Start a query over ``[start_time, end_time]`` (epoch seconds) and return its id."""

    @abstractmethod
    def get_query_status(self, query_id: str, next_token: Optional[str] = None) -> QueryStatusPage:
        """Current status of a query plus the page of results once complete."""


class SubscriberStore(ABC):
    """Persistent subscriber store (and its downstream list sync).

    ``unsubscribe`` must be idempotent: calling it any number of times for the
    same ``(tenant_id, email)`` has no effect beyond the first success, and an
    address that is already gone counts as success. Concurrent, unordered calls
    within a batch and crash-and-rerun recovery both rely on this.
    """

    @abstractmethod
    async def unsubscribe(self, tenant_id: str, email: str) -> bool:
        """Remove ``email`` from ``tenant_id``'s list; ``False`` when removal could not be confirmed."""


__all__ = [
    "QueryStatusPage",
    "LogStore",
    "SubscriberStore",
    "QUERY_STATUS_SCHEDULED",
    "QUERY_STATUS_RUNNING",
    "QUERY_STATUS_COMPLETE",
    "QUERY_STATUS_FAILED",
    "QUERY_STATUS_CANCELLED",
    "QUERY_STATUS_TIMEOUT",
    "TERMINAL_FAILURE_STATUSES",
]
