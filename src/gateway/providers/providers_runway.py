"""Runway video / image generation driver."""

from __future__ import annotations

from typing import Any, Mapping

from ..credentials.credentials_models import Credential
from ..credentials.credentials_resolver import resolve_api_key
from ..tasks.tasks_errors import SubmissionError
from ..tasks.tasks_models import PollBudget, RemoteSnapshot, TaskState
from ..tasks.tasks_poller import SleepFn
from ..tasks.tasks_status import StatusTable
from .providers_base import AsyncTaskDriver, PostProcessor, passthrough
from .providers_http import ProviderHttp, response_body

RUNWAY_STATUS_TABLE = StatusTable.build(
    "runway",
    success={"SUCCEEDED"},
    failure={"FAILED", "CANCELLED"},
    processing={"PENDING", "THROTTLED", "RUNNING"},
    http_status={404: TaskState.FAILED},
)

# Runway tasks are slow to register; wait before the first poll.
RUNWAY_POLL_BUDGET = PollBudget(initial_delay_seconds=10.0, interval_seconds=5.0, max_attempts=120)

OPERATIONS = frozenset(
    {
        "image_to_video",
        "video_to_video",
        "text_to_image",
        "video_upscale",
        "character_performance",
    }
)


def _status_token(body: Any) -> str | None:
    if isinstance(body, Mapping) and body.get("status") is not None:
        return str(body["status"])
    return None


class RunwayDriver(AsyncTaskDriver):
    provider_id = "runway"
    status_table = RUNWAY_STATUS_TABLE

    def __init__(
        self,
        *,
        http: ProviderHttp,
        operation: str = "image_to_video",
        api_key: str | None = None,
        api_base_url: str = "https://api.dev.runwayml.com/v1",
        api_version: str = "2024-11-06",
        poll_budget: PollBudget = RUNWAY_POLL_BUDGET,
        post_processor: PostProcessor = passthrough,
        sleep: SleepFn | None = None,
    ) -> None:
        if operation not in OPERATIONS:
            raise ValueError(f"Unsupported Runway operation '{operation}'")
        super().__init__(
            http=http, poll_budget=poll_budget, post_processor=post_processor, sleep=sleep
        )
        self.operation = operation
        self.api_key = api_key
        self.api_base_url = api_base_url.rstrip("/")
        self.api_version = api_version

    def resolve_credential(self, envelope: Any) -> Credential:
        return resolve_api_key(envelope, fallback=self.api_key, provider="Runway")

    def _headers(self, credential: Credential) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {credential.api_key}",
            "Content-Type": "application/json",
            "X-Runway-Version": self.api_version,
        }

    async def _create_task(self, payload: Mapping[str, Any], credential: Credential) -> str:
        response = await self.http.send_submission(
            "Runway",
            "POST",
            f"{self.api_base_url}/{self.operation}",
            headers=self._headers(credential),
            json=dict(payload),
        )
        data = response_body(response)
        task_id = data.get("id") if isinstance(data, Mapping) else None
        if not task_id:
            raise SubmissionError(
                "Runway response did not include a task id",
                status_code=response.status_code,
                body=data,
            )
        return str(task_id)

    async def _query_status(self, task_id: str, credential: Credential) -> RemoteSnapshot:
        return await self.http.send_status_query(
            "Runway",
            "GET",
            f"{self.api_base_url}/tasks/{task_id}",
            token=_status_token,
            headers=self._headers(credential),
        )

    def _extract_error(self, snapshot: RemoteSnapshot) -> Any:
        if snapshot.http_status == 404:
            return {"message": "Task does not exist or was deleted", "body": snapshot.body}
        body = snapshot.body
        if isinstance(body, Mapping) and body.get("failure"):
            return {"failure": body.get("failure"), "failure_code": body.get("failureCode")}
        return body

    def _extract_progress(self, snapshot: RemoteSnapshot) -> Any:
        if isinstance(snapshot.body, Mapping):
            return snapshot.body.get("progress")
        return None
