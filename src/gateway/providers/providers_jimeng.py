"""Jimeng text-to-image driver on the Volcengine Visual OpenAPI.

Requests are signed with an access-key pair (see
:mod:`src.gateway.security.volc_signer`); both actions go through the same
``POST /?Action=...&Version=...`` endpoint.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

from ..config import VolcVisualConfig
from ..credentials.credentials_models import Credential
from ..credentials.credentials_resolver import resolve_ak_sk
from ..security.volc_signer import canonical_query_string, sign_request
from ..tasks.tasks_errors import SubmissionError
from ..tasks.tasks_models import PollBudget, RemoteSnapshot
from ..tasks.tasks_poller import SleepFn
from ..tasks.tasks_status import StatusTable
from .providers_base import AsyncTaskDriver, PostProcessor, passthrough
from .providers_http import ProviderHttp, response_body

VOLC_SUCCESS_CODE = 10000
API_VERSION = "2022-08-31"
SUBMIT_ACTION = "CVSync2AsyncSubmitTask"
RESULT_ACTION = "CVSync2AsyncGetResult"

# "not_found" shows up right after submission as well as for unknown ids;
# treat it as still indexing and let the attempt budget end the wait.
JIMENG_STATUS_TABLE = StatusTable.build(
    "jimeng",
    success={"done"},
    failure={"expired", "error"},
    processing={"in_queue", "generating", "not_found"},
)

JIMENG_POLL_BUDGET = PollBudget(interval_seconds=3.0, max_attempts=100)


def _status_token(body: Any) -> str | None:
    if not isinstance(body, Mapping):
        return None
    code = body.get("code")
    if code is not None and code != VOLC_SUCCESS_CODE:
        return "error"
    data = body.get("data")
    if isinstance(data, Mapping) and data.get("status") is not None:
        return str(data["status"])
    return None


class JimengDriver(AsyncTaskDriver):
    provider_id = "jimeng"
    status_table = JIMENG_STATUS_TABLE

    def __init__(
        self,
        *,
        http: ProviderHttp,
        volc: VolcVisualConfig = VolcVisualConfig(),
        req_key: str = "jimeng_t2i_v40",
        result_options: Mapping[str, Any] | None = None,
        poll_budget: PollBudget = JIMENG_POLL_BUDGET,
        post_processor: PostProcessor = passthrough,
        sleep: SleepFn | None = None,
    ) -> None:
        super().__init__(
            http=http, poll_budget=poll_budget, post_processor=post_processor, sleep=sleep
        )
        self.volc = volc
        self.req_key = req_key
        self.result_options = dict(result_options or {"return_url": True})

    def resolve_credential(self, envelope: Any) -> Credential:
        return resolve_ak_sk(
            envelope,
            fallback_access_key_id=self.volc.access_key_id,
            fallback_secret_access_key=self.volc.secret_access_key,
            provider="Volcengine Visual",
        )

    def _signed_call(
        self, action: str, body_obj: Mapping[str, Any], credential: Credential
    ) -> tuple[str, dict[str, str], str]:
        query = {"Action": action, "Version": API_VERSION}
        body = json.dumps(body_obj, ensure_ascii=False, separators=(",", ":"))
        signed = sign_request(
            "POST",
            self.volc.host,
            "/",
            body=body,
            query=query,
            access_key_id=credential.access_key_id,
            secret_access_key=credential.secret_access_key,
            region=self.volc.region,
            service=self.volc.service,
        )
        url = f"https://{self.volc.host}/?{canonical_query_string(query)}"
        return url, signed.headers, body

    async def _create_task(self, payload: Mapping[str, Any], credential: Credential) -> str:
        body_obj = {"req_key": self.req_key, **{k: v for k, v in payload.items() if v is not None}}
        url, headers, body = self._signed_call(SUBMIT_ACTION, body_obj, credential)
        response = await self.http.send_submission(
            "Jimeng", "POST", url, headers=headers, content=body.encode("utf-8")
        )
        data = response_body(response)
        if not isinstance(data, Mapping) or data.get("code") != VOLC_SUCCESS_CODE:
            raise SubmissionError(
                f"Jimeng rejected the task: {_message(data)}",
                status_code=response.status_code,
                body=data,
            )
        task_id = (data.get("data") or {}).get("task_id")
        if not task_id:
            raise SubmissionError(
                "Jimeng response did not include data.task_id",
                status_code=response.status_code,
                body=data,
            )
        return str(task_id)

    async def _query_status(self, task_id: str, credential: Credential) -> RemoteSnapshot:
        body_obj: dict[str, Any] = {"req_key": self.req_key, "task_id": task_id}
        if self.result_options:
            body_obj["req_json"] = json.dumps(self.result_options, separators=(",", ":"))
        url, headers, body = self._signed_call(RESULT_ACTION, body_obj, credential)
        return await self.http.send_status_query(
            "Jimeng",
            "POST",
            url,
            token=_status_token,
            headers=headers,
            content=body.encode("utf-8"),
        )

    def _extract_result(self, snapshot: RemoteSnapshot) -> Any:
        return snapshot.body.get("data")


def _message(data: Any) -> str:
    if isinstance(data, Mapping):
        return str(data.get("message") or data.get("code") or "unknown error")
    return str(data)
