import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from unsubscribe_reconciler import config
from unsubscribe_reconciler.exceptions import QueryFailed, QueryTimedOut
from unsubscribe_reconciler.handler import process_unsubscribe_logs
from unsubscribe_reconciler.integrations.base import QueryStatusPage, QUERY_STATUS_FAILED, QUERY_STATUS_RUNNING
from unsubscribe_reconciler.models.domain import RunStage
from unsubscribe_reconciler.services.log_query_client import LogQueryClient
from unsubscribe_reconciler.services.reconciliation_batcher import ReconciliationBatcher
from unsubscribe_reconciler.services.reconciliation_engine import ReconciliationRun, run_reconciliation

from conftest import FIXED_NOW, TEST_LOG_GROUP


@pytest.fixture()
def week_of_logs(record_factory, raw_record):
    """Five raw records: three distinct acme addresses, one repeat, one junk line."""
    return [
        record_factory("acme", "a@example.com", timestamp="2025-05-31 10:00:00.000"),
        record_factory("acme", "b@example.com"),
        record_factory("acme", "A@Example.com", timestamp="2025-05-28 10:00:00.000"),
        raw_record("START RequestId: 6f1c Version: $LATEST"),
        record_factory("acme", "c@example.com"),
    ]


def _run(log_store, subscriber_store, sleep_recorder, fixed_clock):
    run = ReconciliationRun(
        LogQueryClient(log_store, sleep=sleep_recorder),
        ReconciliationBatcher(subscriber_store, sleep=sleep_recorder, clock=fixed_clock),
        clock=fixed_clock,
    )
    return run, asyncio.run(run.execute(FIXED_NOW))


def test_full_run_reports_every_stage(completed_log_store, subscriber_store_factory, week_of_logs, sleep_recorder, fixed_clock):
    log_store = completed_log_store(week_of_logs)
    subscribers = subscriber_store_factory()

    run, report = _run(log_store, subscribers, sleep_recorder, fixed_clock)

    assert report.total_log_events == 5
    assert report.unique_unsubscribe_attempts == 3
    assert report.successful == 3
    assert report.failed == 0
    assert report.processed_at == "2025-06-01T12:00:00.000Z"
    assert report.time_range.end_time == int(FIXED_NOW.timestamp())

    assert run.stage is RunStage.DONE
    assert run.history == [
        RunStage.QUERYING,
        RunStage.PARSING,
        RunStage.DEDUPLICATING,
        RunStage.GROUPING,
        RunStage.RECONCILING,
        RunStage.REPORTING,
        RunStage.DONE,
    ]
    assert log_store.submitted[0]["log_source"] == TEST_LOG_GROUP
    assert sorted(subscribers.calls) == [("acme", "a@example.com"), ("acme", "b@example.com"), ("acme", "c@example.com")]


def test_removal_error_is_counted_not_raised(completed_log_store, subscriber_store_factory, week_of_logs, sleep_recorder, fixed_clock):
    subscribers = subscriber_store_factory(explode={"b@example.com"})
    run, report = _run(completed_log_store(week_of_logs), subscribers, sleep_recorder, fixed_clock)
    assert (report.successful, report.failed) == (2, 1)
    assert run.stage is RunStage.DONE


def test_empty_window_still_reports(completed_log_store, subscriber_store_factory, sleep_recorder, fixed_clock):
    subscribers = subscriber_store_factory()
    run, report = _run(completed_log_store([]), subscribers, sleep_recorder, fixed_clock)
    assert report.total_log_events == report.unique_unsubscribe_attempts == 0
    assert subscribers.calls == []
    assert run.stage is RunStage.DONE


def test_query_failure_aborts_run(log_store_factory, subscriber_store_factory, sleep_recorder, fixed_clock):
    subscribers = subscriber_store_factory()
    run = ReconciliationRun(
        LogQueryClient(log_store_factory(QueryStatusPage(status=QUERY_STATUS_FAILED)), sleep=sleep_recorder),
        ReconciliationBatcher(subscribers, sleep=sleep_recorder, clock=fixed_clock),
        clock=fixed_clock,
    )
    with pytest.raises(QueryFailed):
        asyncio.run(run.execute(FIXED_NOW))
    assert run.stage is RunStage.FAILED
    assert run.history == [RunStage.QUERYING, RunStage.FAILED]
    assert subscribers.calls == []


def test_timeout_aborts_run(log_store_factory, subscriber_store_factory, sleep_recorder, fixed_clock):
    with pytest.raises(QueryTimedOut):
        asyncio.run(run_reconciliation(
            log_store=log_store_factory(QueryStatusPage(status=QUERY_STATUS_RUNNING)),
            subscriber_store=subscriber_store_factory(),
            now=FIXED_NOW,
            clock=fixed_clock,
            sleep=sleep_recorder,
        ))
    assert len(sleep_recorder.calls) == 60


def test_handler_success_envelope(completed_log_store, subscriber_store_factory, week_of_logs, fixed_clock):
    result = process_unsubscribe_logs(
        log_store=completed_log_store(week_of_logs),
        subscriber_store=subscriber_store_factory(fail={"c@example.com"}),
        now=FIXED_NOW,
        clock=fixed_clock,
    )
    assert result["statusCode"] == 200
    body = json.loads(result["body"])
    assert body["totalLogEvents"] == 5
    assert body["uniqueUnsubscribeAttempts"] == 3
    assert body["successful"] == 2
    assert body["failed"] == 1
    assert body["timeRange"]["endTimeISO"] == "2025-06-01T12:00:00.000Z"


def test_handler_failure_envelope(log_store_factory, subscriber_store_factory):
    result = process_unsubscribe_logs(
        log_store=log_store_factory(submit_error=RuntimeError("AccessDeniedException")),
        subscriber_store=subscriber_store_factory(),
        now=FIXED_NOW,
    )
    assert result["statusCode"] == 500
    body = json.loads(result["body"])
    assert body["error"] == "Failed to process unsubscribe logs"
    assert "AccessDeniedException" in body["message"]
    assert body["stage"] == "QUERYING"


def test_api_trigger_runs_reconciliation(client: TestClient, override_stores, completed_log_store, subscriber_store_factory, week_of_logs):
    subscribers = subscriber_store_factory()
    override_stores(completed_log_store(week_of_logs), subscribers)

    r = client.post("/api/v1/reconciliation/run", json={"windowEnd": "2025-06-01T12:00:00Z"})
    assert r.status_code == 200, r.text
    payload = r.json()
    assert payload["success"] is True
    assert payload["data"]["successful"] == 3
    assert payload["data"]["timeRange"]["endTime"] == int(FIXED_NOW.timestamp())
    assert "X-Request-ID" in r.headers
    assert len(subscribers.calls) == 3


def test_api_trigger_without_body(client: TestClient, override_stores, completed_log_store, subscriber_store_factory):
    override_stores(completed_log_store([]), subscriber_store_factory())
    r = client.post("/api/v1/reconciliation/run")
    assert r.status_code == 200, r.text
    assert r.json()["data"]["uniqueUnsubscribeAttempts"] == 0


def test_api_trigger_query_failure_is_502(client: TestClient, override_stores, log_store_factory, subscriber_store_factory):
    override_stores(log_store_factory(QueryStatusPage(status=QUERY_STATUS_FAILED)), subscriber_store_factory())
    r = client.post("/api/v1/reconciliation/run")
    assert r.status_code == 502
    payload = r.json()
    assert payload["success"] is False
    assert payload["data"]["stage"] == "QUERYING"
    assert "failed" in payload["data"]["message"]


def test_api_trigger_requires_token_when_configured(client: TestClient, override_stores, completed_log_store, subscriber_store_factory, monkeypatch):
    monkeypatch.setattr(config, "INTERNAL_TRIGGER_TOKEN", "s3cret")
    override_stores(completed_log_store([]), subscriber_store_factory())

    r = client.post("/api/v1/reconciliation/run")
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid trigger token"

    r = client.post("/api/v1/reconciliation/run", headers={"Authorization": "Bearer s3cret"})
    assert r.status_code == 200, r.text


def test_health(client: TestClient):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "healthy"
    assert set(body["checks"]) == {"log_group_configured", "table_configured"}
