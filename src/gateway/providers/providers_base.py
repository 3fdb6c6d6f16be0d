"""Abstract provider driver definitions."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, ClassVar, Mapping

from ..credentials.credentials_models import Credential
from ..tasks.tasks_models import (
    PollBudget,
    RemoteSnapshot,
    TaskHandle,
    TaskOutcome,
    TaskState,
    TaskStatus,
)
from ..tasks.tasks_poller import CancelCheck, SleepFn, TaskPoller
from ..tasks.tasks_status import StatusTable
from .providers_http import ProviderHttp

PostProcessor = Callable[[Any], Awaitable[Any]]


async def passthrough(value: Any) -> Any:
    return value


@dataclass(slots=True)
class SyncResult:
    """Standard response from synchronous provider drivers."""

    data: Any
    request_id: str

    def as_dict(self) -> dict[str, Any]:
        return {"data": self.data, "request_id": self.request_id}


class AsyncTaskDriver(ABC):
    """Base for providers exposing a submit / poll task API.

    Subclasses implement credential resolution, task creation and one status
    query; polling, classification and post-processing live here.
    """

    provider_id: ClassVar[str]
    status_table: ClassVar[StatusTable]

    def __init__(
        self,
        *,
        http: ProviderHttp,
        poll_budget: PollBudget,
        post_processor: PostProcessor = passthrough,
        sleep: SleepFn | None = None,
    ) -> None:
        self.http = http
        self.poll_budget = poll_budget
        self.post_processor = post_processor
        self._sleep = sleep
        self.log = logging.getLogger(type(self).__module__)

    @abstractmethod
    def resolve_credential(self, envelope: Any) -> Credential:
        """Resolve the caller's credential envelope (fresh on every call)."""

    @abstractmethod
    async def _create_task(self, payload: Mapping[str, Any], credential: Credential) -> str:
        """Create the remote task and return its identifier."""

    @abstractmethod
    async def _query_status(self, task_id: str, credential: Credential) -> RemoteSnapshot:
        """Fetch the raw remote status of ``task_id``."""

    def _extract_result(self, snapshot: RemoteSnapshot) -> Any:
        return snapshot.body

    def _extract_error(self, snapshot: RemoteSnapshot) -> Any:
        return snapshot.body

    def _extract_progress(self, snapshot: RemoteSnapshot) -> Any:
        return None

    async def submit(self, payload: Mapping[str, Any], credential: Any = None) -> TaskHandle:
        resolved = self.resolve_credential(credential)
        task_id = await self._create_task(payload, resolved)
        self.log.info(
            "provider.task.submitted",
            extra={"provider": self.provider_id, "task_id": task_id},
        )
        return TaskHandle(task_id=task_id, credential=resolved, provider=self.provider_id)

    async def poll(self, task_id: str, credential: Any = None) -> TaskStatus:
        resolved = self.resolve_credential(credential)
        snapshot = await self._query_status(task_id, resolved)
        state = self.status_table.classify(snapshot)
        status = TaskStatus(
            task_id=task_id,
            state=state,
            progress=self._extract_progress(snapshot),
            raw=snapshot.body,
        )
        if state is TaskState.COMPLETED:
            status.result = self._extract_result(snapshot)
        elif state is TaskState.FAILED:
            status.error = self._extract_error(snapshot)
        return status

    async def finalize(self, status: TaskStatus) -> TaskStatus:
        """Rehost output URLs of a completed status."""
        if status.state is TaskState.COMPLETED and status.result is not None:
            status.result = await self.post_processor(status.result)
        return status

    def _poller(self, budget: PollBudget) -> TaskPoller:
        if self._sleep is None:
            return TaskPoller(budget=budget)
        return TaskPoller(budget=budget, sleep=self._sleep)

    async def submit_and_wait(
        self,
        payload: Mapping[str, Any],
        credential: Any = None,
        budget: PollBudget | None = None,
        *,
        is_cancelled: CancelCheck | None = None,
    ) -> TaskOutcome:
        """Create a task and poll it until a terminal state, using one credential."""
        handle = await self.submit(payload, credential)

        async def poll_once() -> TaskStatus:
            return await self.poll(handle.task_id, handle.credential)

        polled = await self._poller(budget or self.poll_budget).wait(
            handle, poll_once, is_cancelled=is_cancelled
        )
        status = await self.finalize(polled.status)
        self.log.info(
            "provider.task.completed",
            extra={
                "provider": self.provider_id,
                "task_id": handle.task_id,
                "attempts": polled.attempts,
            },
        )
        return TaskOutcome(task_id=handle.task_id, result=status.result, attempts=polled.attempts)


class SyncDriver(ABC):
    """Base for providers answering in a single request."""

    provider_id: ClassVar[str]

    def __init__(self, *, http: ProviderHttp, post_processor: PostProcessor = passthrough) -> None:
        self.http = http
        self.post_processor = post_processor
        self.log = logging.getLogger(type(self).__module__)

    @abstractmethod
    async def call(self, payload: Mapping[str, Any], credential: Any = None) -> SyncResult:
        """Execute the request and return the post-processed response."""
