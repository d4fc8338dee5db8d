import asyncio
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
import pytest
from fastapi.testclient import TestClient

# Ensure project root on sys.path so the package resolves without an install
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from unsubscribe_reconciler.main import app  # type: ignore
from unsubscribe_reconciler.api import deps  # type: ignore
from unsubscribe_reconciler.config import LOG_QUERY_SETTINGS, RECONCILIATION_SETTINGS  # type: ignore
from unsubscribe_reconciler.services import reconciliation_engine  # type: ignore
from unsubscribe_reconciler.integrations.base import (  # type: ignore
    LogStore,
    QueryStatusPage,
    SubscriberStore,
    QUERY_STATUS_COMPLETE,
)
"""Pytest fixtures and collaborator fakes.

The pipeline only reaches the outside world through LogStore and
SubscriberStore, so every test drives it with the scripted fakes below.
"""

FIXED_NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
TEST_LOG_GROUP = "/aws/lambda/unsubscribe-handler"


class FakeLogStore(LogStore):
    """Replays scripted status pages; the last page repeats forever."""

    def __init__(self, pages: list[QueryStatusPage], *, submit_error: Exception | None = None, status_error: Exception | None = None):
        self.pages = list(pages)
        self.submit_error = submit_error
        self.status_error = status_error
        self.submitted: list[dict] = []
        self.status_calls: list[tuple[str, str | None]] = []

    def submit_query(self, log_source, query_string, start_time, end_time, limit):
        if self.submit_error:
            raise self.submit_error
        self.submitted.append({
            "log_source": log_source,
            "query_string": query_string,
            "start_time": start_time,
            "end_time": end_time,
            "limit": limit,
        })
        return "query-1"

    def get_query_status(self, query_id, next_token=None):
        self.status_calls.append((query_id, next_token))
        if self.status_error:
            raise self.status_error
        if len(self.pages) > 1:
            return self.pages.pop(0)
        return self.pages[0]


class FakeSubscriberStore(SubscriberStore):
    """Removal succeeds unless the email is listed in ``fail`` (returns False) or ``explode`` (raises)."""

    def __init__(self, *, fail=(), explode=()):
        self.fail = set(fail)
        self.explode = set(explode)
        self.calls: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def unsubscribe(self, tenant_id, email):
        self.calls.append((tenant_id, email))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if email in self.explode:
                raise RuntimeError(f"store unavailable for {email}")
            return email not in self.fail
        finally:
            self.in_flight -= 1


class SleepRecorder:
    """Async stand-in for asyncio.sleep that returns immediately."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def unsubscribe_message(tenant_id: str, email: str, *, ses_removed: bool | None = True) -> str:
    payload = {"tenantId": tenant_id, "emailAddress": email}
    if ses_removed is not None:
        payload["sesRemoved"] = ses_removed
    return f"2025-05-30T10:00:00.000Z\tabc-123\tINFO\tUnsubscribe successful {json.dumps(payload)}"


def make_record(message: str | None, timestamp: str = "2025-05-30 10:00:00.000") -> list[dict]:
    record = [{"field": "@timestamp", "value": timestamp}]
    if message is not None:
        record.append({"field": "@message", "value": message})
    return record


@pytest.fixture(autouse=True)
def _fast_timers(monkeypatch):
    """Zero the poll interval and inter-batch pause for code paths using default sleeps."""
    monkeypatch.setitem(LOG_QUERY_SETTINGS, "poll_interval_seconds", 0.0)
    monkeypatch.setitem(RECONCILIATION_SETTINGS, "inter_batch_delay_seconds", 0.0)
    yield


@pytest.fixture(autouse=True)
def _log_group(monkeypatch):
    """Runs built without an explicit log source read this name."""
    monkeypatch.setattr(reconciliation_engine, "UNSUBSCRIBE_LOG_GROUP_NAME", TEST_LOG_GROUP)
    yield


@pytest.fixture()
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture()
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture()
def record_factory():
    def _create(tenant_id: str, email: str, *, timestamp: str = "2025-05-30 10:00:00.000", ses_removed: bool | None = True):
        return make_record(unsubscribe_message(tenant_id, email, ses_removed=ses_removed), timestamp)
    return _create


@pytest.fixture()
def raw_record():
    """Record with an arbitrary message (or none at all)."""
    return make_record


@pytest.fixture()
def log_store_factory():
    def _create(*pages: QueryStatusPage, **kwargs):
        return FakeLogStore(list(pages), **kwargs)
    return _create


@pytest.fixture()
def completed_log_store(log_store_factory):
    """Store that completes on the first poll with the given records."""
    def _create(records: list[list[dict]]):
        return log_store_factory(QueryStatusPage(status=QUERY_STATUS_COMPLETE, results=records))
    return _create


@pytest.fixture()
def subscriber_store_factory():
    def _create(**kwargs):
        return FakeSubscriberStore(**kwargs)
    return _create


@pytest.fixture()
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def override_stores():
    """Point the API dependencies at fakes for the duration of a test."""
    def _install(log_store: LogStore, subscriber_store: SubscriberStore):
        app.dependency_overrides[deps.get_log_store] = lambda: log_store
        app.dependency_overrides[deps.get_subscriber_store] = lambda: subscriber_store
    yield _install
    app.dependency_overrides.clear()
