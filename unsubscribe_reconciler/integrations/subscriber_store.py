"""DynamoDB + SES implementation of the subscriber store seam.

An unsubscribe is recorded in two places:

1. A recent-unsubscribe marker in the tenant partition of the single-table
   store (``<tenant>#recent-unsubscribes`` / ``<email>``), written with a
   conditional put so a second write for the same address is a no-op. The
   marker expires through DynamoDB TTL.
2. The tenant's SES contact list, from which the contact is deleted.

The marker is the source of truth: once it exists the address is treated as
unsubscribed even if the SES delete fails, which keeps ``unsubscribe``
idempotent and safe to call concurrently.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from unsubscribe_reconciler.config import SUBSCRIBER_STORE_SETTINGS, TABLE_NAME
from unsubscribe_reconciler.integrations.aws import LazyClient
from unsubscribe_reconciler.integrations.base import SubscriberStore
from unsubscribe_reconciler.utils import get_logger, mask_email
from unsubscribe_reconciler.utils.time import isoformat_z, utc_now

logger = get_logger(__name__)


def _error_code(exc: Exception) -> str | None:
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code")
    return None


class DynamoSubscriberStore(SubscriberStore):
    dynamodb = LazyClient("dynamodb")
    ses = LazyClient("sesv2")

    def __init__(
        self,
        *,
        table_name: Optional[str] = None,
        dynamodb_client: Optional[Any] = None,
        ses_client: Optional[Any] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.table_name = table_name or TABLE_NAME
        self._dynamodb = dynamodb_client
        self._ses = ses_client
        self._clock = clock

    async def unsubscribe(self, tenant_id: str, email: str) -> bool:
        return await asyncio.to_thread(self.unsubscribe_sync, tenant_id, email)

    # ----------------------------- blocking path ----------------------------- #
    def get_tenant_list(self, tenant_id: str) -> Optional[str]:
        """Name of the SES contact list backing ``tenant_id`` (None if unknown)."""
        try:
            response = self.dynamodb.get_item(
                TableName=self.table_name,
                Key={"pk": {"S": tenant_id}, "sk": {"S": "tenant"}},
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Tenant lookup failed", tenant_id=tenant_id, error=str(e))
            return None
        item = response.get("Item") or {}
        return (item.get("list") or {}).get("S")

    def unsubscribe_sync(self, tenant_id: str, email: str) -> bool:
        if not self.table_name:
            logger.error("TABLE_NAME not set; cannot record unsubscribe", tenant_id=tenant_id)
            return False

        tenant_list = self.get_tenant_list(tenant_id)
        if tenant_list is None:
            logger.error("Tenant not found", tenant_id=tenant_id)
            return False

        if not self._write_marker(tenant_id, email):
            return False

        self._remove_contact(tenant_id, tenant_list, email)
        return True

    def _write_marker(self, tenant_id: str, email: str) -> bool:
        now = self._clock()
        ttl_days = int(SUBSCRIBER_STORE_SETTINGS["recent_unsubscribe_ttl_days"])
        ttl = int((now + timedelta(days=ttl_days)).timestamp())
        item = {
            "pk": {"S": f"{tenant_id}#recent-unsubscribes"},
            "sk": {"S": email.lower()},
            "email": {"S": email},
            "unsubscribedAt": {"S": isoformat_z(now)},
            "ttl": {"N": str(ttl)},
            "method": {"S": str(SUBSCRIBER_STORE_SETTINGS["method"])},
        }
        try:
            self.dynamodb.put_item(
                TableName=self.table_name,
                Item=item,
                ConditionExpression="attribute_not_exists(sk)",
            )
        except ClientError as e:
            if _error_code(e) == "ConditionalCheckFailedException":
                logger.info("Email already unsubscribed", tenant_id=tenant_id, email=mask_email(email))
                return True
            logger.error("Unsubscribe marker write failed", tenant_id=tenant_id, email=mask_email(email), error=str(e))
            return False
        except BotoCoreError as e:
            logger.error("Unsubscribe marker write failed", tenant_id=tenant_id, email=mask_email(email), error=str(e))
            return False
        return True

    def _remove_contact(self, tenant_id: str, tenant_list: str, email: str) -> None:
        try:
            self.ses.delete_contact(ContactListName=tenant_list, EmailAddress=email)
        except ClientError as e:
            if _error_code(e) == "NotFoundException":
                logger.info("Unsubscribe successful", tenant_id=tenant_id, email=mask_email(email), ses_removed="already_removed")
                return
            logger.error(
                "SES removal failed but unsubscribe protected",
                tenant_id=tenant_id,
                email=mask_email(email),
                error=str(e),
            )
            return
        except BotoCoreError as e:
            logger.error(
                "SES removal failed but unsubscribe protected",
                tenant_id=tenant_id,
                email=mask_email(email),
                error=str(e),
            )
            return
        logger.info("Unsubscribe successful", tenant_id=tenant_id, email=mask_email(email), ses_removed=True)


__all__ = ["DynamoSubscriberStore"]
