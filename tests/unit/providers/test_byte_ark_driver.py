from __future__ import annotations

import pytest

from src.gateway.providers.providers_byte_ark import ByteArkDriver
from src.gateway.providers.providers_http import ProviderHttp
from src.gateway.tasks.tasks_errors import ConfigurationError, SubmissionError
from tests.mocks.http import DummyHTTPResponse, HttpScript, configure_httpx


@pytest.mark.asyncio
async def test_byte_ark_generation(monkeypatch) -> None:
    script = HttpScript().queue(
        "POST",
        DummyHTTPResponse(
            200,
            {"data": [{"url": "https://ark/img.png"}]},
            headers={"x-request-id": "req-42"},
        ),
    )
    configure_httpx(monkeypatch, script)

    seen: list[object] = []

    async def post_process(value):
        seen.append(value)
        return {"processed": True, **value}

    driver = ByteArkDriver(http=ProviderHttp(), api_key="ark-key", post_processor=post_process)
    result = await driver.call({"prompt": "fox", "size": None})

    assert result.as_dict() == {
        "data": {"processed": True, "data": [{"url": "https://ark/img.png"}]},
        "request_id": "req-42",
    }
    call = script.calls_for("POST")[0]
    assert call.url == "https://ark.cn-beijing.volces.com/api/v3/images/generations"
    assert call.kwargs["json"] == {"prompt": "fox", "model": "doubao-seedream-4-0-250828"}
    assert call.kwargs["headers"]["Authorization"] == "Bearer ark-key"
    assert seen == [{"data": [{"url": "https://ark/img.png"}]}]


@pytest.mark.asyncio
async def test_byte_ark_error_response(monkeypatch) -> None:
    script = HttpScript().queue("POST", DummyHTTPResponse(401, {"error": {"code": "Unauthorized"}}))
    configure_httpx(monkeypatch, script)

    driver = ByteArkDriver(http=ProviderHttp(), api_key="ark-key")
    with pytest.raises(SubmissionError) as excinfo:
        await driver.call({"prompt": "fox"})

    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_byte_ark_without_key() -> None:
    driver = ByteArkDriver(http=ProviderHttp())
    with pytest.raises(ConfigurationError):
        await driver.call({"prompt": "fox"})
