"""Turn raw log records into typed unsubscribe events.

Log lines are free text followed by a JSON payload, e.g.::

    2025-01-01T00:00:00Z INFO Unsubscribe successful {"tenantId": "acme", "emailAddress": "A@x.io", "sesRemoved": true}

Anything that cannot be read as a complete event is skipped. All skip reasons
are treated alike; they are only tallied for a summary log line and never
surface in the run report.
"""
from __future__ import annotations

import json
import re
from collections import Counter
from typing import Iterable, Optional

from unsubscribe_reconciler.models.domain import RawLogRecord, UnsubscribeEvent
from unsubscribe_reconciler.utils import get_logger

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email))


def field_value(record: RawLogRecord, name: str) -> Optional[str]:
    for entry in record:
        if entry.get("field") == name:
            return entry.get("value")
    return None


def _tenant_key(value: object) -> Optional[str]:
    """Tenant ids are usually strings; numeric ids are read as their decimal text."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value or None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, (int, float)) and value:
        return str(value)
    return None


def _parse_record(record: RawLogRecord, skipped: Counter) -> Optional[UnsubscribeEvent]:
    message = field_value(record, "@message")
    if not message:
        skipped["missing_message"] += 1
        return None

    json_start = message.find("{")
    if json_start == -1:
        skipped["no_json"] += 1
        return None

    try:
        payload = json.loads(message[json_start:])
    except ValueError as e:
        logger.warning("Failed to parse log entry", error=str(e))
        skipped["invalid_json"] += 1
        return None

    if not isinstance(payload, dict):
        skipped["invalid_json"] += 1
        return None

    email = payload.get("emailAddress")
    tenant_id = _tenant_key(payload.get("tenantId"))
    if not isinstance(email, str) or not email or not tenant_id:
        skipped["missing_fields"] += 1
        return None

    email = email.lower()
    if not is_valid_email(email):
        skipped["invalid_email"] += 1
        return None

    ses_removed = payload.get("sesRemoved")
    return UnsubscribeEvent(
        email=email,
        tenant_id=tenant_id,
        timestamp=field_value(record, "@timestamp"),
        ses_removal_success=ses_removed if isinstance(ses_removed, bool) else None,
    )


def parse_unsubscribe_events(records: Iterable[RawLogRecord]) -> list[UnsubscribeEvent]:
    """Parse every record, keeping only well-formed events. Never raises."""
    events: list[UnsubscribeEvent] = []
    skipped: Counter = Counter()
    for record in records:
        try:
            event = _parse_record(record, skipped)
        except (AttributeError, TypeError):
            # record not shaped as field/value pairs
            skipped["malformed_record"] += 1
            continue
        if event is not None:
            events.append(event)

    if skipped:
        logger.info("Skipped unparseable log records", parsed=len(events), skipped=sum(skipped.values()), **dict(skipped))
    return events


__all__ = ["parse_unsubscribe_events", "is_valid_email", "field_value", "EMAIL_PATTERN"]
