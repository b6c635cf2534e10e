"""Shared test fixtures and configuration for pagerduty-notify tests."""

import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List

import httpx
import pytest

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from pagerduty_notify.config import NotifierSettings
from pagerduty_notify.execution import Execution, ExecutionState, RunContext, TaskRun


PAGERDUTY_URL = "https://events.pagerduty.com/v2/enqueue"

RAW_PAYLOAD = """{
  "dedup_key": "samplekey",
  "routing_key": "samplekey",
  "event_action": "trigger",
  "payload" : {
      "summary": "PagerDuty alert",
      "source": "kestra",
      "severity": "error"
  }
}
"""


class RecordingHandler:
    """httpx.MockTransport handler that records requests and replays a canned response."""

    def __init__(self, status_code: int = 200, body: str = '{"status":"success"}', error: Exception = None):
        self.status_code = status_code
        self.body = body
        self.error = error
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, text=self.body)

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def last_json(self):
        return json.loads(self.requests[-1].content)


@pytest.fixture
def start_date():
    return datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def failed_execution(start_date):
    """Execution that failed in its second task."""
    return Execution(
        id="4Hq2Xw8sVjP1",
        namespace="company.team",
        flow_id="nightly_etl",
        state=ExecutionState.FAILED,
        start_date=start_date,
        end_date=start_date + timedelta(minutes=1, seconds=30),
        task_runs=[
            TaskRun(id="tr1", task_id="extract", state=ExecutionState.SUCCESS),
            TaskRun(id="tr2", task_id="transform", state=ExecutionState.FAILED),
            TaskRun(id="tr3", task_id="load", state=ExecutionState.FAILED),
        ],
    )


@pytest.fixture
def successful_execution(start_date):
    return Execution(
        id="9kLm3Np0QrSt",
        namespace="company.team",
        flow_id="nightly_etl",
        state=ExecutionState.SUCCESS,
        start_date=start_date,
        end_date=start_date + timedelta(seconds=42),
        task_runs=[
            TaskRun(id="tr1", task_id="extract", state=ExecutionState.SUCCESS),
        ],
    )


@pytest.fixture
def run_context(failed_execution):
    """Run context whose current execution is the failed one."""
    return RunContext(
        execution=failed_execution,
        variables={"env": "prod"},
        ui_base_url="https://kestra.example.com",
    )


@pytest.fixture
def settings():
    return NotifierSettings()


@pytest.fixture
def ok_handler():
    return RecordingHandler(status_code=200)


@pytest.fixture
def ok_transport(ok_handler):
    return httpx.MockTransport(ok_handler)


@pytest.fixture
def pagerduty_url():
    return PAGERDUTY_URL


@pytest.fixture
def raw_payload():
    return RAW_PAYLOAD


@pytest.fixture
def make_handler():
    """Factory for recording mock transport handlers."""
    return RecordingHandler
