"""
Run-level exceptions for the unsubscribe reconciliation pipeline.

Only failures of the log query stage are raised to the caller; every other
problem (bad log lines, failed removals) is converted to report data.
"""
from typing import Any, Dict, Optional


class ReconciliationError(Exception):
    """Base class for errors that abort a reconciliation run."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}

    def __str__(self) -> str:
        base_message = super().__str__()
        if self.context:
            context_info = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{base_message} (context: {context_info})"
        return base_message


class LogQueryError(ReconciliationError):
    """The log store could not deliver the run's raw records."""


class QueryFailed(LogQueryError):
    """Submission failed, or the store reported the query as failed/cancelled."""


class QueryTimedOut(LogQueryError):
    """The query did not complete within the poll ceiling."""

    def __init__(self, message: str, attempts: int, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)
        self.attempts = attempts


__all__ = ["ReconciliationError", "LogQueryError", "QueryFailed", "QueryTimedOut"]
