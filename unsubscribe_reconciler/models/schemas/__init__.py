from .base import CamelModel, ResponseBase
from .reconciliation import ReconciliationTrigger, TimeRangeSchema, RunReport, RunErrorBody

__all__ = [
    # Base
    "CamelModel",
    "ResponseBase",

    # Reconciliation
    "ReconciliationTrigger",
    "TimeRangeSchema",
    "RunReport",
    "RunErrorBody",
]
