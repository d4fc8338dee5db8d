"""
Scheduled entry point for the unsubscribe reconciliation run.

Invoked by an EventBridge schedule with no meaningful input. Returns an
HTTP-style envelope so the same payload can be surfaced by API Gateway:

    {"statusCode": 200, "body": "<RunReport JSON>"}
    {"statusCode": 500, "body": "{\"error\": ..., \"message\": ...}"}
"""
import asyncio
import json
import os
from typing import Any, Dict, Optional

from unsubscribe_reconciler.api.deps import get_log_store, get_subscriber_store
from unsubscribe_reconciler.exceptions import LogQueryError
from unsubscribe_reconciler.integrations import LogStore, SubscriberStore
from unsubscribe_reconciler.models.domain import RunStage
from unsubscribe_reconciler.models.schemas.reconciliation import RunErrorBody
from unsubscribe_reconciler.services.reconciliation_engine import run_reconciliation
from unsubscribe_reconciler.utils import get_logger, setup_logging

setup_logging(log_level=os.getenv("LOG_LEVEL", "INFO"), json_console=True)
logger = get_logger(__name__)


def process_unsubscribe_logs(
    log_store: Optional[LogStore] = None,
    subscriber_store: Optional[SubscriberStore] = None,
    **run_kwargs: Any,
) -> Dict[str, Any]:
    """Run once and wrap the outcome in a status/body envelope."""
    try:
        report = asyncio.run(run_reconciliation(
            log_store=log_store or get_log_store(),
            subscriber_store=subscriber_store or get_subscriber_store(),
            **run_kwargs,
        ))
    except LogQueryError as e:
        logger.error("Processing failed", error=str(e))
        body = RunErrorBody(message=str(e), stage=RunStage.QUERYING.value)
        return {
            "statusCode": 500,
            "body": json.dumps(body.model_dump(by_alias=True, exclude_none=True)),
        }

    logger.info("Processing completed", **report.model_dump(by_alias=True))
    return {
        "statusCode": 200,
        "body": report.model_dump_json(by_alias=True),
    }


def handler(event: Optional[Dict[str, Any]] = None, context: Any = None) -> Dict[str, Any]:
    """Lambda handler; the event is ignored."""
    return process_unsubscribe_logs()
