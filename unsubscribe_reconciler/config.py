"""Core configuration & tunable reconciliation rules.

Everything that shapes a run (look-back window, log query limits, batch
sizing, store write policy) is centralized here so it can be adjusted without
diving into service logic. Values come from environment variables where a
deployment is expected to override them; the rule dicts stay mutable so tests
can monkeypatch individual keys.
"""
from __future__ import annotations

import os

# --------------------------------- AWS ------------------------------------ #
AWS_REGION: str | None = os.getenv("AWS_REGION") or None

# Log group holding the unsubscribe handler's output
UNSUBSCRIBE_LOG_GROUP_NAME: str | None = os.getenv("UNSUBSCRIBE_LOG_GROUP_NAME") or None

# Single-table DynamoDB store (tenants + recent unsubscribe markers)
TABLE_NAME: str | None = os.getenv("TABLE_NAME") or None

# Trailing window queried on every run
LOOKBACK_DAYS: int = int(os.getenv("LOOKBACK_DAYS", "7"))

# ------------------------------ Log Query --------------------------------- #
LOG_QUERY_SETTINGS: dict[str, int | float | str] = {
	# Hard cap on rows returned by the store for one run
	"result_limit": 10000,
	# Polls before the run is aborted (1s each => 60s ceiling)
	"max_poll_attempts": 60,
	"poll_interval_seconds": 1.0,
	"query_string": (
		"fields @timestamp, @message\n"
		"| filter @message like /tenantId/ and @message like /emailAddress/\n"
		"| sort @timestamp desc\n"
		"| limit 10000"
	),
}

# ----------------------------- Reconciliation ----------------------------- #
RECONCILIATION_SETTINGS: dict[str, int | float] = {
	# Removals issued concurrently per batch
	"batch_size": 10,
	# Pause between batches of one tenant to bound write pressure
	"inter_batch_delay_seconds": 0.1,
}

# ---------------------------- Subscriber Store ---------------------------- #
SUBSCRIBER_STORE_SETTINGS: dict[str, int | str] = {
	# Recent-unsubscribe markers expire through DynamoDB TTL
	"recent_unsubscribe_ttl_days": 30,
	# Recorded on the marker so other jobs can tell where it came from
	"method": "log-processor",
}

# ------------------------------ HTTP trigger ------------------------------ #
# Shared secret for the manual trigger endpoint (scheduler/ops tooling).
# Leave unset in local development to accept unauthenticated triggers.
INTERNAL_TRIGGER_TOKEN: str | None = os.getenv("INTERNAL_TRIGGER_TOKEN") or None

__all__ = [
	"AWS_REGION",
	"INTERNAL_TRIGGER_TOKEN",
	"UNSUBSCRIBE_LOG_GROUP_NAME",
	"TABLE_NAME",
	"LOOKBACK_DAYS",
	# Rule groups
	"LOG_QUERY_SETTINGS",
	"RECONCILIATION_SETTINGS",
	"SUBSCRIBER_STORE_SETTINGS",
]
