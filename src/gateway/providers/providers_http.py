"""Outbound HTTP helpers shared by provider drivers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx

from ..config import ProxyConfig
from ..tasks.tasks_errors import SubmissionError, TransientPollError
from ..tasks.tasks_models import RemoteSnapshot

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = frozenset({408, 425, 429})

TokenFn = Callable[[Any], "str | None"]


def response_body(response: httpx.Response) -> Any:
    """Return the decoded JSON body, or the raw text when it is not JSON."""
    try:
        return response.json()
    except ValueError:
        return response.text


def _is_transient(status_code: int) -> bool:
    return status_code in TRANSIENT_STATUS_CODES or status_code >= 500


@dataclass(slots=True)
class ProviderHttp:
    """Thin wrapper creating one ``httpx.AsyncClient`` per outbound call."""

    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    timeout_seconds: float = 30.0

    def client_for(self, url: str) -> httpx.AsyncClient:
        proxy = self.proxy.proxy_for(url)
        if proxy:
            return httpx.AsyncClient(timeout=self.timeout_seconds, proxy=proxy)
        return httpx.AsyncClient(timeout=self.timeout_seconds)

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json: Any = None,
        content: str | bytes | None = None,
    ) -> httpx.Response:
        kwargs: dict[str, Any] = {"headers": headers or {}}
        if params is not None:
            kwargs["params"] = params
        if json is not None:
            kwargs["json"] = json
        if content is not None:
            kwargs["content"] = content
        async with self.client_for(url) as client:
            return await client.request(method, url, **kwargs)

    async def send_submission(
        self, provider: str, method: str, url: str, **kwargs: Any
    ) -> httpx.Response:
        """Send a task-creating request; any failure becomes :class:`SubmissionError`."""
        try:
            response = await self.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.error(
                "provider.submit.transport_error",
                extra={"provider": provider, "url": url, "error": str(exc)},
            )
            raise SubmissionError(f"{provider} submission failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            body = response_body(response)
            logger.error(
                "provider.submit.rejected",
                extra={"provider": provider, "status_code": response.status_code, "body": body},
            )
            raise SubmissionError(
                f"{provider} rejected the task (status={response.status_code})",
                status_code=response.status_code,
                body=body,
            )
        return response

    async def send_status_query(
        self,
        provider: str,
        method: str,
        url: str,
        *,
        token: TokenFn,
        **kwargs: Any,
    ) -> RemoteSnapshot:
        """Query task status; network-level failures become :class:`TransientPollError`."""
        try:
            response = await self.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise TransientPollError(f"{provider} status query failed: {exc}") from exc

        if _is_transient(response.status_code):
            raise TransientPollError(
                f"{provider} status query returned {response.status_code}",
                status_code=response.status_code,
            )

        body = response_body(response)
        status_token = token(body) if 200 <= response.status_code < 300 else None
        return RemoteSnapshot(http_status=response.status_code, token=status_token, body=body)
