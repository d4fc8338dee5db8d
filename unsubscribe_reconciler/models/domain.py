"""In-run domain types for the unsubscribe reconciliation pipeline.

Nothing here is persisted: every value is created and discarded inside a
single run. API/report shapes live in ``models.schemas``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, Optional, Union

# One row as returned by the log store: [{"field": "@message", "value": "..."}, ...]
RawLogRecord = list[dict[str, str]]


@dataclass(frozen=True, slots=True)
class TimeRange:
    start_time: int  # epoch seconds
    end_time: int
    start_time_iso: str
    end_time_iso: str


@dataclass(frozen=True, slots=True)
class UnsubscribeEvent:
    email: str  # always lowercased by the parser
    tenant_id: str
    timestamp: Optional[str] = None
    ses_removal_success: Optional[bool] = None

    def key(self) -> tuple[str, str]:
        return (self.tenant_id, self.email.lower())


@dataclass(frozen=True, slots=True)
class TenantBatch:
    tenant_id: str
    events: tuple[UnsubscribeEvent, ...]
    index: int = 0


@dataclass(frozen=True, slots=True)
class SuccessfulRemoval:
    email: str
    tenant_id: str
    removed_at: str
    kind: Literal["successful"] = "successful"


@dataclass(frozen=True, slots=True)
class FailedRemoval:
    error: str
    email: Optional[str] = None
    tenant_id: Optional[str] = None
    kind: Literal["failed"] = "failed"


ReconciliationResult = Union[SuccessfulRemoval, FailedRemoval]


@dataclass(slots=True)
class TenantOutcome:
    tenant_id: str
    successful: list[SuccessfulRemoval] = field(default_factory=list)
    failed: list[FailedRemoval] = field(default_factory=list)

    def record(self, result: ReconciliationResult) -> None:
        if isinstance(result, SuccessfulRemoval):
            self.successful.append(result)
        else:
            self.failed.append(result)


class RunStage(str, Enum):
    QUERYING = "QUERYING"
    PARSING = "PARSING"
    DEDUPLICATING = "DEDUPLICATING"
    GROUPING = "GROUPING"
    RECONCILING = "RECONCILING"
    REPORTING = "REPORTING"
    DONE = "DONE"
    FAILED = "FAILED"


__all__ = [
    "RawLogRecord",
    "TimeRange",
    "UnsubscribeEvent",
    "TenantBatch",
    "SuccessfulRemoval",
    "FailedRemoval",
    "ReconciliationResult",
    "TenantOutcome",
    "RunStage",
]
