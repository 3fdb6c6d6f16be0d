"""Black Forest Labs (FLUX) provider driver."""

from __future__ import annotations

from typing import Any, Mapping

from ..credentials.credentials_models import Credential
from ..credentials.credentials_resolver import resolve_api_key
from ..logging import mask_secret
from ..tasks.tasks_errors import SubmissionError
from ..tasks.tasks_models import PollBudget, RemoteSnapshot, TaskState
from ..tasks.tasks_poller import SleepFn
from ..tasks.tasks_status import StatusTable
from .providers_base import AsyncTaskDriver, PostProcessor, passthrough
from .providers_http import ProviderHttp, response_body

# "Task not found" is what BFL reports while a fresh task is still being
# indexed, both in the body and as a bare 404.
BFL_STATUS_TABLE = StatusTable.build(
    "bfl",
    success={"Ready"},
    failure={"Error", "Failed", "Request Moderated", "Content Moderated"},
    processing={"Processing", "Queued", "Pending", "Task not found"},
    http_status={404: TaskState.PROCESSING},
)

BFL_POLL_BUDGET = PollBudget(interval_seconds=3.0, max_attempts=60)


def _status_token(body: Any) -> str | None:
    if isinstance(body, Mapping):
        status = body.get("status")
        return str(status) if status is not None else None
    return None


class BflDriver(AsyncTaskDriver):
    """Submit FLUX generations and poll ``get_result``."""

    provider_id = "bfl"
    status_table = BFL_STATUS_TABLE

    def __init__(
        self,
        *,
        http: ProviderHttp,
        api_key: str | None = None,
        model: str = "flux-kontext-max",
        api_base_url: str = "https://api.bfl.ai/v1",
        poll_budget: PollBudget = BFL_POLL_BUDGET,
        post_processor: PostProcessor = passthrough,
        sleep: SleepFn | None = None,
    ) -> None:
        super().__init__(
            http=http, poll_budget=poll_budget, post_processor=post_processor, sleep=sleep
        )
        self.api_key = api_key
        self.model = model
        self.api_base_url = api_base_url.rstrip("/")

    def resolve_credential(self, envelope: Any) -> Credential:
        return resolve_api_key(envelope, fallback=self.api_key, provider="BFL")

    async def _create_task(self, payload: Mapping[str, Any], credential: Credential) -> str:
        body = {key: value for key, value in payload.items() if value is not None}
        model = str(body.pop("model", None) or self.model)
        url = f"{self.api_base_url}/{model}"
        self.log.info(
            "bfl.task.submit",
            extra={"url": url, "api_key": mask_secret(credential.api_key), "fields": sorted(body)},
        )
        response = await self.http.send_submission(
            "BFL",
            "POST",
            url,
            headers={"x-key": credential.api_key, "Content-Type": "application/json"},
            json=body,
        )
        data = response_body(response)
        request_id = data.get("id") if isinstance(data, Mapping) else None
        if not request_id:
            raise SubmissionError(
                "BFL response did not include a request id",
                status_code=response.status_code,
                body=data,
            )
        return str(request_id)

    async def _query_status(self, task_id: str, credential: Credential) -> RemoteSnapshot:
        return await self.http.send_status_query(
            "BFL",
            "GET",
            f"{self.api_base_url}/get_result",
            token=_status_token,
            headers={"accept": "application/json", "x-key": credential.api_key},
            params={"id": task_id},
        )

    def _extract_result(self, snapshot: RemoteSnapshot) -> Any:
        result = snapshot.body.get("result") or {}
        sample = result.get("sample") if isinstance(result, Mapping) else None
        return {"images": [sample] if sample else [], "result": result}

    def _extract_progress(self, snapshot: RemoteSnapshot) -> Any:
        if isinstance(snapshot.body, Mapping):
            return snapshot.body.get("progress")
        return None
