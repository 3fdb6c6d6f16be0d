"""ByteDance Ark (Seedream) image generation driver.

Ark answers generation requests synchronously, so there is nothing to poll.
"""

from __future__ import annotations

from typing import Any, Mapping

from ..credentials.credentials_resolver import resolve_api_key
from .providers_base import PostProcessor, SyncDriver, SyncResult, passthrough
from .providers_http import ProviderHttp, response_body


class ByteArkDriver(SyncDriver):
    provider_id = "byte-ark"

    def __init__(
        self,
        *,
        http: ProviderHttp,
        api_key: str | None = None,
        api_base_url: str = "https://ark.cn-beijing.volces.com/api/v3",
        default_model: str = "doubao-seedream-4-0-250828",
        post_processor: PostProcessor = passthrough,
    ) -> None:
        super().__init__(http=http, post_processor=post_processor)
        self.api_key = api_key
        self.api_base_url = api_base_url.rstrip("/")
        self.default_model = default_model

    async def call(self, payload: Mapping[str, Any], credential: Any = None) -> SyncResult:
        resolved = resolve_api_key(credential, fallback=self.api_key, provider="Byte Ark")
        body = {key: value for key, value in payload.items() if value is not None}
        body.setdefault("model", self.default_model)

        response = await self.http.send_submission(
            "Byte Ark",
            "POST",
            f"{self.api_base_url}/images/generations",
            headers={
                "Authorization": f"Bearer {resolved.api_key}",
                "Content-Type": "application/json",
            },
            json=body,
        )
        data = response_body(response)
        self.log.info(
            "byte_ark.response.received",
            extra={"status_code": response.status_code, "model": body["model"]},
        )
        output = await self.post_processor(data)
        return SyncResult(data=output, request_id=response.headers.get("x-request-id", ""))
