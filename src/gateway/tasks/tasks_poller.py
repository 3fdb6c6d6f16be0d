"""Provider-agnostic polling loop for remote asynchronous tasks."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import structlog

from .tasks_errors import (
    PollCancelledError,
    PollingUnreachableError,
    RemoteTaskFailure,
    TaskTimeoutError,
    TransientPollError,
)
from .tasks_models import PollBudget, TaskHandle, TaskState, TaskStatus

logger = structlog.get_logger(__name__)

PollFn = Callable[[], Awaitable[TaskStatus]]
CancelCheck = Callable[[], Awaitable[bool]]
SleepFn = Callable[[float], Awaitable[None]]


@dataclass(slots=True)
class PollResult:
    status: TaskStatus
    attempts: int


@dataclass(slots=True)
class TaskPoller:
    """Drive ``poll`` until the task completes, fails or the budget runs out.

    Each :meth:`wait` call owns its counters, so one poller instance may
    serve concurrent tasks.
    """

    budget: PollBudget = field(default_factory=PollBudget)
    sleep: SleepFn = asyncio.sleep
    log: Any = field(default_factory=lambda: logger)

    async def wait(
        self,
        handle: TaskHandle,
        poll: PollFn,
        *,
        is_cancelled: CancelCheck | None = None,
    ) -> PollResult:
        budget = self.budget
        log = self.log.bind(provider=handle.provider, task_id=handle.task_id)

        if budget.initial_delay_seconds > 0:
            await self.sleep(budget.initial_delay_seconds)

        consecutive_errors = 0
        last_error: TransientPollError | None = None
        last_state = TaskState.PROCESSING

        for attempt in range(1, budget.max_attempts + 1):
            if is_cancelled is not None and await is_cancelled():
                log.warning("poller.cancelled", attempt=attempt)
                raise PollCancelledError(handle.task_id)

            try:
                status = await poll()
            except TransientPollError as exc:
                consecutive_errors += 1
                last_error = exc
                log.warning(
                    "poller.round.transient_error",
                    attempt=attempt,
                    consecutive_errors=consecutive_errors,
                    error=str(exc),
                )
                if consecutive_errors >= budget.max_consecutive_errors:
                    raise PollingUnreachableError(handle.task_id, attempt, exc) from exc
            else:
                consecutive_errors = 0
                if status.state is not last_state:
                    log.info(
                        "poller.state.changed",
                        attempt=attempt,
                        from_state=last_state.value,
                        state=status.state.value,
                    )
                    last_state = status.state

                if status.state is TaskState.COMPLETED:
                    return PollResult(status=status, attempts=attempt)
                if status.state is TaskState.FAILED:
                    raise RemoteTaskFailure(handle.task_id, status.error)

                log.debug("poller.round", attempt=attempt, max_attempts=budget.max_attempts)

            if attempt < budget.max_attempts:
                await self.sleep(budget.interval_seconds)

        log.error(
            "poller.timeout",
            attempts=budget.max_attempts,
            last_error=str(last_error or ""),
        )
        raise TaskTimeoutError(handle.task_id, budget.max_attempts)
