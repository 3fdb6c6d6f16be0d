"""Tripo 3D model generation driver."""

from __future__ import annotations

from typing import Any, Mapping

from ..credentials.credentials_models import Credential
from ..credentials.credentials_resolver import resolve_api_key
from ..tasks.tasks_errors import SubmissionError
from ..tasks.tasks_models import PollBudget, RemoteSnapshot
from ..tasks.tasks_poller import SleepFn
from ..tasks.tasks_status import StatusTable
from .providers_base import AsyncTaskDriver, PostProcessor, passthrough
from .providers_http import ProviderHttp, response_body

TRIPO_STATUS_TABLE = StatusTable.build(
    "tripo",
    success={"success"},
    failure={"failed", "cancelled", "banned", "expired"},
    processing={"queued", "running", "unknown"},
)

TRIPO_POLL_BUDGET = PollBudget(interval_seconds=3.0, max_attempts=60)

TASK_TYPES = frozenset(
    {
        "text_to_model",
        "image_to_model",
        "multiview_to_model",
        "texture_model",
        "refine_model",
    }
)


def _data(body: Any) -> Mapping[str, Any]:
    if isinstance(body, Mapping) and isinstance(body.get("data"), Mapping):
        return body["data"]
    return {}


def _status_token(body: Any) -> str | None:
    status = _data(body).get("status")
    return str(status) if status is not None else None


class TripoDriver(AsyncTaskDriver):
    provider_id = "tripo"
    status_table = TRIPO_STATUS_TABLE

    def __init__(
        self,
        *,
        http: ProviderHttp,
        api_key: str | None = None,
        api_base_url: str = "https://api.tripo3d.ai/v2/openapi",
        poll_budget: PollBudget = TRIPO_POLL_BUDGET,
        post_processor: PostProcessor = passthrough,
        sleep: SleepFn | None = None,
    ) -> None:
        super().__init__(
            http=http, poll_budget=poll_budget, post_processor=post_processor, sleep=sleep
        )
        self.api_key = api_key
        self.api_base_url = api_base_url.rstrip("/")

    def resolve_credential(self, envelope: Any) -> Credential:
        return resolve_api_key(envelope, fallback=self.api_key, provider="Tripo")

    def _headers(self, credential: Credential) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {credential.api_key}",
            "Content-Type": "application/json",
        }

    async def _create_task(self, payload: Mapping[str, Any], credential: Credential) -> str:
        body = {key: value for key, value in payload.items() if value is not None}
        body.setdefault("type", "text_to_model")
        if body["type"] not in TASK_TYPES:
            raise ValueError(f"Unsupported Tripo task type '{body['type']}'")

        response = await self.http.send_submission(
            "Tripo",
            "POST",
            f"{self.api_base_url}/task",
            headers=self._headers(credential),
            json=body,
        )
        data = response_body(response)
        task_id = _data(data).get("task_id")
        if not task_id:
            raise SubmissionError(
                "Tripo response did not include data.task_id",
                status_code=response.status_code,
                body=data,
            )
        return str(task_id)

    async def _query_status(self, task_id: str, credential: Credential) -> RemoteSnapshot:
        return await self.http.send_status_query(
            "Tripo",
            "GET",
            f"{self.api_base_url}/task/{task_id}",
            token=_status_token,
            headers=self._headers(credential),
        )

    def _extract_result(self, snapshot: RemoteSnapshot) -> Any:
        return _data(snapshot.body).get("output")

    def _extract_progress(self, snapshot: RemoteSnapshot) -> Any:
        return _data(snapshot.body).get("progress")
