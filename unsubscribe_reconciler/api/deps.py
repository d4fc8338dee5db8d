"""
Dependencies for collaborator wiring and trigger authentication.
"""
from functools import lru_cache
from fastapi import HTTPException, Request, status

from unsubscribe_reconciler import config
from unsubscribe_reconciler.integrations import (
    CloudWatchLogStore,
    DynamoSubscriberStore,
    LogStore,
    SubscriberStore,
)
from unsubscribe_reconciler.utils import get_logger

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def get_log_store() -> LogStore:
    """
    Log store dependency.
    One CloudWatch client per process; boto3 clients are thread-safe.
    """
    return CloudWatchLogStore()


@lru_cache(maxsize=1)
def get_subscriber_store() -> SubscriberStore:
    """Subscriber store dependency (DynamoDB marker + SES contact list)."""
    return DynamoSubscriberStore()


def require_internal_token(request: Request) -> None:
    """
    Guard for the manual trigger endpoint.

    When ``INTERNAL_TRIGGER_TOKEN`` is configured the caller must send
    ``Authorization: Bearer <token>``; otherwise the check is skipped.

    Raises:
        HTTPException: 401 if the token is missing or wrong
    """
    expected = config.INTERNAL_TRIGGER_TOKEN
    if not expected:
        return

    auth_header = request.headers.get("Authorization", "")
    provided = auth_header[7:] if auth_header.startswith("Bearer ") else ""
    if provided != expected:
        logger.warning(
            "Trigger authentication failed: invalid token",
            provided_token_prefix=provided[:4] + "..." if provided else None
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid trigger token"
        )
