from __future__ import annotations

from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.gateway.config import AppConfig, ProviderKeys
from src.gateway.main import app, create_app
from src.gateway.providers.providers_api import get_provider_service
from src.gateway.tasks.tasks_errors import (
    ConfigurationError,
    PollCancelledError,
    PollingUnreachableError,
    RemoteTaskFailure,
    SubmissionError,
    TaskTimeoutError,
)
from src.gateway.tasks.tasks_models import (
    PollBudget,
    TaskHandle,
    TaskOutcome,
    TaskState,
    TaskStatus,
)
from tests.mocks.http import DummyHTTPResponse, HttpScript, configure_httpx


class FakeDriver:
    provider_id = "fake"
    poll_budget = PollBudget()

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[str, Any]] = []

    async def submit(self, payload, credential=None) -> TaskHandle:
        self.calls.append(("submit", credential))
        if self.error:
            raise self.error
        return TaskHandle(task_id="t-1", credential=None, provider="fake")

    async def poll(self, task_id, credential=None) -> TaskStatus:
        self.calls.append(("poll", credential))
        if self.error:
            raise self.error
        return TaskStatus(task_id=task_id, state=TaskState.COMPLETED, result={"url": "u"})

    async def finalize(self, status: TaskStatus) -> TaskStatus:
        status.result = {"url": "rehosted"}
        return status

    async def submit_and_wait(self, payload, credential=None, budget=None, *, is_cancelled=None):
        self.calls.append(("generate", budget))
        if self.error:
            raise self.error
        return TaskOutcome(task_id="t-1", result={"url": "rehosted"}, attempts=2)


class FakeService:
    def __init__(self, driver: FakeDriver) -> None:
        self._driver = driver

    def providers(self) -> tuple[str, ...]:
        return ("fake",)

    def driver(self, name: str, *, operation: str | None = None) -> FakeDriver:
        if name != "fake":
            raise KeyError(name)
        if operation == "bad":
            raise ValueError("Unsupported operation 'bad'")
        return self._driver


def make_client(driver: FakeDriver) -> TestClient:
    app = create_app(AppConfig())
    app.dependency_overrides[get_provider_service] = lambda: FakeService(driver)
    return TestClient(app)


def test_submit_returns_accepted_task_id() -> None:
    client = make_client(FakeDriver())

    response = client.post("/api/providers/fake/tasks", json={"input": {"prompt": "p"}})

    assert response.status_code == 202
    assert response.json() == {"task_id": "t-1", "provider": "fake"}


def test_status_query_parses_credential_header() -> None:
    driver = FakeDriver()
    client = make_client(driver)

    response = client.get(
        "/api/providers/fake/tasks/t-1", headers={"X-Credential": '{"apiKey": "k"}'}
    )

    assert response.status_code == 200
    assert response.json() == {"task_id": "t-1", "status": "completed", "result": {"url": "rehosted"}}
    assert driver.calls == [("poll", {"apiKey": "k"})]


def test_generate_applies_poll_overrides() -> None:
    driver = FakeDriver()
    client = make_client(driver)

    response = client.post(
        "/api/providers/fake/generate",
        json={"input": {}, "poll": {"max_attempts": 5}},
    )

    assert response.status_code == 200
    assert response.json()["attempts"] == 2
    assert driver.calls[0][1].max_attempts == 5


def test_unknown_provider_is_404() -> None:
    response = make_client(FakeDriver()).post("/api/providers/nope/tasks", json={})

    assert response.status_code == 404
    assert response.json()["detail"]["failure_reason"] == "provider_not_found"


def test_invalid_operation_is_400() -> None:
    response = make_client(FakeDriver()).post(
        "/api/providers/fake/tasks", json={"operation": "bad"}
    )

    assert response.status_code == 400
    assert response.json()["detail"]["failure_reason"] == "invalid_request"


@pytest.mark.parametrize(
    ("error", "status_code", "reason"),
    [
        (ConfigurationError("no key"), 400, "configuration_error"),
        (SubmissionError("rejected", status_code=422, body={"x": 1}), 502, "submission_rejected"),
        (RemoteTaskFailure("t-1", {"reason": "nsfw"}), 502, "remote_failure"),
        (TaskTimeoutError("t-1", 60), 504, "timeout"),
        (PollingUnreachableError("t-1", 3, None), 503, "polling_unreachable"),
        (PollCancelledError("t-1"), 499, "cancelled"),
    ],
)
def test_generate_error_mapping(error: Exception, status_code: int, reason: str) -> None:
    response = make_client(FakeDriver(error)).post("/api/providers/fake/generate", json={})

    assert response.status_code == status_code
    assert response.json()["detail"]["failure_reason"] == reason


def test_timeout_is_distinguishable_from_failure() -> None:
    timeout = make_client(FakeDriver(TaskTimeoutError("t-1", 60))).post(
        "/api/providers/fake/generate", json={}
    )
    failure = make_client(FakeDriver(RemoteTaskFailure("t-1", "bad"))).post(
        "/api/providers/fake/generate", json={}
    )

    assert timeout.json()["detail"]["status"] == "timeout"
    assert timeout.json()["detail"]["attempts"] == 60
    assert failure.json()["detail"]["status"] == "error"
    assert failure.json()["detail"]["diagnostic"] == "bad"


def test_submission_error_carries_upstream_body() -> None:
    error = SubmissionError("rejected", status_code=422, body={"detail": "bad"})
    response = make_client(FakeDriver(error)).post("/api/providers/fake/tasks", json={})

    detail = response.json()["detail"]
    assert detail["upstream_status"] == 422
    assert detail["upstream_body"] == {"detail": "bad"}


def test_health_reports_providers() -> None:
    client = TestClient(create_app(AppConfig()))

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "providers": ["bfl", "tripo", "runway", "jimeng"],
        "rehosting": False,
    }


def test_bfl_generate_end_to_end(monkeypatch) -> None:
    script = HttpScript()
    script.queue("POST", DummyHTTPResponse(200, {"id": "t1"}))
    script.queue(
        "GET",
        DummyHTTPResponse(200, {"status": "Queued"}),
        DummyHTTPResponse(200, {"status": "Ready", "result": {"sample": "https://x/img.png"}}),
    )
    configure_httpx(monkeypatch, script)
    client = TestClient(create_app(AppConfig(provider_keys=ProviderKeys(bfl="cfg-key"))))

    response = client.post(
        "/api/providers/bfl/generate",
        json={"input": {"prompt": "cat"}, "poll": {"interval_seconds": 0}},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["result"]["images"] == ["https://x/img.png"]
    assert body["attempts"] == 2
    assert script.calls_for("POST")[0].kwargs["headers"]["x-key"] == "cfg-key"


def test_bfl_without_key_is_configuration_error() -> None:
    client = TestClient(create_app(AppConfig()))

    response = client.post("/api/providers/bfl/tasks", json={"input": {"prompt": "cat"}})

    assert response.status_code == 400
    assert response.json()["detail"]["failure_reason"] == "configuration_error"


def test_module_exposes_asgi_app() -> None:
    assert isinstance(app, FastAPI)
    assert TestClient(app).get("/health").json()["status"] == "ok"
