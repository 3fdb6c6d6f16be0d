"""Data structures describing remote asynchronous tasks."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from ..credentials.credentials_models import Credential


class TaskState(StrEnum):
    """Internal task lifecycle states."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"


TERMINAL_STATES = frozenset({TaskState.COMPLETED, TaskState.FAILED, TaskState.TIMEOUT})


@dataclass(slots=True, frozen=True)
class TaskHandle:
    """In-flight remote job: provider id plus the credential used to create it."""

    task_id: str
    credential: "Credential"
    provider: str

    def __post_init__(self) -> None:
        if not self.task_id:
            raise ValueError("task_id must be a non-empty string")


@dataclass(slots=True, frozen=True)
class RemoteSnapshot:
    """Raw outcome of one status query before classification."""

    http_status: int
    token: str | None
    body: Any = None


@dataclass(slots=True)
class TaskStatus:
    """Classified view of a remote task after one poll round."""

    task_id: str
    state: TaskState
    result: Any = None
    error: Any = None
    progress: Any = None
    raw: Any = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"task_id": self.task_id, "status": self.state.value}
        if self.result is not None:
            data["result"] = self.result
        if self.error is not None:
            data["error"] = self.error
        if self.progress is not None:
            data["progress"] = self.progress
        return data


@dataclass(slots=True, frozen=True)
class PollBudget:
    """Timing limits for one polling loop."""

    initial_delay_seconds: float = 0.0
    interval_seconds: float = 3.0
    max_attempts: int = 60
    max_consecutive_errors: int = 3

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.max_consecutive_errors < 1:
            raise ValueError("max_consecutive_errors must be at least 1")
        if self.initial_delay_seconds < 0 or self.interval_seconds < 0:
            raise ValueError("poll delays must be non-negative")

    def with_overrides(self, **overrides: Any) -> "PollBudget":
        """Return a copy with the non-``None`` overrides applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes) if changes else self


@dataclass(slots=True, frozen=True)
class TaskOutcome:
    """Completed task returned by submit-and-wait."""

    task_id: str
    result: Any
    attempts: int

    def as_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "status": TaskState.COMPLETED.value,
            "result": self.result,
            "attempts": self.attempts,
        }
