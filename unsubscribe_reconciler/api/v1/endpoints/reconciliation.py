"""
Reconciliation trigger endpoint.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
import time

from unsubscribe_reconciler.api.deps import get_log_store, get_subscriber_store, require_internal_token
from unsubscribe_reconciler.exceptions import LogQueryError
from unsubscribe_reconciler.integrations import LogStore, SubscriberStore
from unsubscribe_reconciler.models.schemas.base import ResponseBase
from unsubscribe_reconciler.models.schemas.reconciliation import ReconciliationTrigger, RunErrorBody
from unsubscribe_reconciler.models.domain import RunStage
from unsubscribe_reconciler.services.reconciliation_engine import run_reconciliation
from unsubscribe_reconciler.utils import get_logger, log_performance

router = APIRouter()
logger = get_logger(__name__)


@router.post(
    "/run",
    response_model=ResponseBase,
    summary="Run unsubscribe reconciliation now",
    dependencies=[Depends(require_internal_token)],
)
async def trigger_reconciliation(
    request: Request,
    trigger_data: Optional[ReconciliationTrigger] = None,
    log_store: LogStore = Depends(get_log_store),
    subscriber_store: SubscriberStore = Depends(get_subscriber_store),
):
    """Run one reconciliation pass synchronously and return its report.

    The window ends at ``windowEnd`` when given, otherwise now. A failure of the
    log query stage returns 502 with the error body; per-event failures are
    counted in the report and still return 200.
    """
    start_time = time.time()
    request_id = getattr(request.state, "request_id", "unknown")
    window_end = trigger_data.window_end if trigger_data else None

    logger.info(
        "Manual reconciliation triggered",
        window_end=window_end.isoformat() if window_end else None,
        request_id=request_id
    )

    try:
        report = await run_reconciliation(
            log_store=log_store,
            subscriber_store=subscriber_store,
            now=window_end,
        )
    except LogQueryError as e:
        body = RunErrorBody(message=str(e), stage=RunStage.QUERYING.value)
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={
                "success": False,
                "message": body.error,
                "data": body.model_dump(by_alias=True),
                "request_id": request_id,
            },
        )

    log_performance(
        operation="trigger_reconciliation",
        duration_ms=(time.time() - start_time) * 1000,
        additional_data={"request_id": request_id}
    )
    return ResponseBase(
        success=True,
        message=f"Reconciled {report.successful} of {report.unique_unsubscribe_attempts} unsubscribe attempt(s)",
        data=report.model_dump(by_alias=True),
    )
