"""Scripted stand-ins for ``httpx.AsyncClient`` used by driver tests."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

import httpx


class DummyHTTPResponse:
    def __init__(
        self,
        status_code: int,
        json_data: Any = None,
        text: str = "",
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.status_code = status_code
        self._json_data = json_data
        self.text = text
        self.content = content or b""
        self.headers = headers or {}

    def json(self) -> Any:
        if self._json_data is None:
            raise ValueError("No JSON data")
        return self._json_data

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            request = httpx.Request("GET", "https://dummy.invalid")
            raise httpx.HTTPStatusError(
                f"status {self.status_code}",
                request=request,
                response=httpx.Response(self.status_code, request=request),
            )


@dataclass
class RecordedCall:
    method: str
    url: str
    kwargs: dict[str, Any]


@dataclass
class HttpScript:
    """Per-method response queues shared by every client the factory creates.

    Queue items may be responses or exceptions; exceptions are raised.
    """

    responses: dict[str, list[Any]] = field(default_factory=dict)
    calls: list[RecordedCall] = field(default_factory=list)
    client_kwargs: list[dict[str, Any]] = field(default_factory=list)

    def queue(self, method: str, *items: Any) -> "HttpScript":
        self.responses.setdefault(method.upper(), []).extend(items)
        return self

    def next(self, method: str, url: str, kwargs: dict[str, Any]) -> DummyHTTPResponse:
        self.calls.append(RecordedCall(method.upper(), url, kwargs))
        queue = self.responses.get(method.upper())
        if not queue:
            raise RuntimeError(f"No {method.upper()} responses queued for {url}")
        item = queue[0] if len(queue) == 1 else queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def calls_for(self, method: str) -> list[RecordedCall]:
        return [call for call in self.calls if call.method == method.upper()]


class DummyAsyncClient:
    def __init__(self, script: HttpScript) -> None:
        self._script = script

    async def __aenter__(self) -> "DummyAsyncClient":
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        return None

    async def request(self, method: str, url: str, **kwargs: Any) -> DummyHTTPResponse:
        return self._script.next(method, url, kwargs)

    async def get(self, url: str, **kwargs: Any) -> DummyHTTPResponse:
        return self._script.next("GET", url, kwargs)

    async def head(self, url: str, **kwargs: Any) -> DummyHTTPResponse:
        return self._script.next("HEAD", url, kwargs)

    @asynccontextmanager
    async def stream(self, method: str, url: str, **kwargs: Any):
        yield self._script.next(method, url, kwargs)


def configure_httpx(monkeypatch, script: HttpScript) -> HttpScript:
    def factory(*args, **kwargs):
        script.client_kwargs.append(kwargs)
        return DummyAsyncClient(script)

    monkeypatch.setattr("httpx.AsyncClient", factory)
    return script
