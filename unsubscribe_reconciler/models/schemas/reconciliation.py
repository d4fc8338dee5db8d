"""
Pydantic schemas for unsubscribe reconciliation runs.
"""
from datetime import datetime
from typing import Optional
from pydantic import Field

from unsubscribe_reconciler.models.domain import TimeRange
from .base import CamelModel


class ReconciliationTrigger(CamelModel):
    """
    Schema for triggering a run manually. Scheduled runs send no body.
    """
    window_end: Optional[datetime] = Field(None, description="End of the look-back window; defaults to now")


class TimeRangeSchema(CamelModel):
    """Window queried by a run."""
    start_time: int = Field(description="Window start, epoch seconds")
    end_time: int = Field(description="Window end, epoch seconds")
    start_time_iso: str = Field(alias="startTimeISO")
    end_time_iso: str = Field(alias="endTimeISO")

    @classmethod
    def from_domain(cls, time_range: TimeRange) -> "TimeRangeSchema":
        return cls(
            start_time=time_range.start_time,
            end_time=time_range.end_time,
            start_time_iso=time_range.start_time_iso,
            end_time_iso=time_range.end_time_iso,
        )


class RunReport(CamelModel):
    """Summary of one reconciliation run; the only artifact a run returns."""
    processed_at: str = Field(description="ISO timestamp when the report was built")
    time_range: TimeRangeSchema
    total_log_events: int = Field(ge=0, description="Raw records returned by the log store")
    unique_unsubscribe_attempts: int = Field(ge=0, description="Parsed events after deduplication")
    successful: int = Field(ge=0)
    failed: int = Field(ge=0)


class RunErrorBody(CamelModel):
    """Body returned when a run aborts during the log query stage."""
    error: str = "Failed to process unsubscribe logs"
    message: str
    stage: Optional[str] = None
