from __future__ import annotations

import httpx
import pytest

from src.gateway.providers.providers_bfl import BflDriver
from src.gateway.providers.providers_http import ProviderHttp
from src.gateway.tasks.tasks_errors import (
    ConfigurationError,
    RemoteTaskFailure,
    SubmissionError,
    TaskTimeoutError,
)
from src.gateway.tasks.tasks_models import PollBudget, TaskState
from tests.mocks.http import DummyHTTPResponse, HttpScript, configure_httpx


async def no_sleep(seconds: float) -> None:
    return None


def make_driver(**kwargs) -> BflDriver:
    kwargs.setdefault("api_key", "bfl-key")
    return BflDriver(http=ProviderHttp(), sleep=no_sleep, **kwargs)


def status(value: str, **extra) -> DummyHTTPResponse:
    return DummyHTTPResponse(200, {"id": "t1", "status": value, **extra})


@pytest.mark.asyncio
async def test_queued_processing_ready_completes(monkeypatch) -> None:
    script = HttpScript()
    script.queue("POST", DummyHTTPResponse(200, {"id": "t1", "polling_url": "x"}))
    script.queue(
        "GET",
        status("Queued"),
        status("Processing", progress=0.5),
        status("Ready", result={"sample": "https://x/img.png"}),
    )
    configure_httpx(monkeypatch, script)

    outcome = await make_driver().submit_and_wait({"prompt": "cat", "seed": None})

    assert outcome.task_id == "t1"
    assert outcome.attempts == 3
    assert outcome.result["images"] == ["https://x/img.png"]

    submit = script.calls_for("POST")[0]
    assert submit.url == "https://api.bfl.ai/v1/flux-kontext-max"
    assert submit.kwargs["headers"]["x-key"] == "bfl-key"
    assert submit.kwargs["json"] == {"prompt": "cat"}
    polls = script.calls_for("GET")
    assert polls[0].url == "https://api.bfl.ai/v1/get_result"
    assert polls[0].kwargs["params"] == {"id": "t1"}


@pytest.mark.asyncio
async def test_task_not_found_is_treated_as_processing(monkeypatch) -> None:
    script = HttpScript()
    script.queue("POST", DummyHTTPResponse(200, {"id": "t1"}))
    script.queue(
        "GET",
        status("Task not found"),
        DummyHTTPResponse(404, {"detail": "Task not found"}),
        status("Ready", result={"sample": "https://x/img.png"}),
    )
    configure_httpx(monkeypatch, script)

    outcome = await make_driver().submit_and_wait({"prompt": "cat"})

    assert outcome.attempts == 3


@pytest.mark.asyncio
async def test_error_status_fails_without_more_rounds(monkeypatch) -> None:
    script = HttpScript()
    script.queue("POST", DummyHTTPResponse(200, {"id": "t1"}))
    script.queue(
        "GET",
        status("Error", result={"reason": "bad prompt"}),
        status("Ready"),
    )
    configure_httpx(monkeypatch, script)

    with pytest.raises(RemoteTaskFailure) as excinfo:
        await make_driver().submit_and_wait({"prompt": "cat"})

    assert len(script.calls_for("GET")) == 1
    assert excinfo.value.diagnostic["status"] == "Error"


@pytest.mark.asyncio
async def test_budget_exhaustion_times_out(monkeypatch) -> None:
    script = HttpScript()
    script.queue("POST", DummyHTTPResponse(200, {"id": "t1"}))
    script.queue("GET", status("Pending"))
    configure_httpx(monkeypatch, script)

    driver = make_driver(poll_budget=PollBudget(interval_seconds=0, max_attempts=4))
    with pytest.raises(TaskTimeoutError) as excinfo:
        await driver.submit_and_wait({"prompt": "cat"})

    assert excinfo.value.attempts == 4
    assert len(script.calls_for("GET")) == 4


@pytest.mark.asyncio
async def test_payload_model_overrides_default(monkeypatch) -> None:
    script = HttpScript().queue("POST", DummyHTTPResponse(200, {"id": "t9"}))
    configure_httpx(monkeypatch, script)

    handle = await make_driver().submit({"prompt": "cat", "model": "flux-pro-1.1"}, "req-key")

    assert handle.task_id == "t9"
    call = script.calls_for("POST")[0]
    assert call.url.endswith("/flux-pro-1.1")
    assert call.kwargs["headers"]["x-key"] == "req-key"
    assert "model" not in call.kwargs["json"]


@pytest.mark.asyncio
async def test_missing_request_id_is_submission_error(monkeypatch) -> None:
    script = HttpScript().queue("POST", DummyHTTPResponse(200, {"status": "ok"}))
    configure_httpx(monkeypatch, script)

    with pytest.raises(SubmissionError):
        await make_driver().submit({"prompt": "cat"})


@pytest.mark.asyncio
async def test_rejected_submission_keeps_upstream_details(monkeypatch) -> None:
    script = HttpScript().queue("POST", DummyHTTPResponse(422, {"detail": "bad"}))
    configure_httpx(monkeypatch, script)

    with pytest.raises(SubmissionError) as excinfo:
        await make_driver().submit({"prompt": "cat"})

    assert excinfo.value.status_code == 422
    assert excinfo.value.body == {"detail": "bad"}


@pytest.mark.asyncio
async def test_transport_error_on_submit(monkeypatch) -> None:
    script = HttpScript().queue("POST", httpx.ConnectError("refused"))
    configure_httpx(monkeypatch, script)

    with pytest.raises(SubmissionError):
        await make_driver().submit({"prompt": "cat"})


@pytest.mark.asyncio
async def test_single_poll_reports_progress(monkeypatch) -> None:
    script = HttpScript().queue("GET", status("Processing", progress=0.4))
    configure_httpx(monkeypatch, script)

    result = await make_driver().poll("t1")

    assert result.state is TaskState.PROCESSING
    assert result.as_dict() == {"task_id": "t1", "status": "processing", "progress": 0.4}


def test_missing_key_raises_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        make_driver(api_key=None).resolve_credential(None)
