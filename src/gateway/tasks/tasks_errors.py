"""Error taxonomy for task submission and polling."""

from __future__ import annotations

from typing import Any


class GatewayError(Exception):
    """Base class for provider gateway errors."""


class ConfigurationError(GatewayError):
    """Raised when no credential (or required setting) can be resolved."""


class SubmissionError(GatewayError):
    """Raised when the remote provider rejects task creation."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TransientPollError(GatewayError):
    """Raised when a single status query fails at the network layer."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteTaskFailure(GatewayError):
    """Raised when the provider reports a terminal task failure."""

    def __init__(self, task_id: str, diagnostic: Any) -> None:
        super().__init__(f"Task {task_id} failed on the provider side")
        self.task_id = task_id
        self.diagnostic = diagnostic


class TaskTimeoutError(GatewayError):
    """Raised when the attempt budget runs out while the task is still processing."""

    def __init__(self, task_id: str, attempts: int) -> None:
        super().__init__(
            f"Task {task_id} still processing after {attempts} attempts; query its status later"
        )
        self.task_id = task_id
        self.attempts = attempts


class PollingUnreachableError(GatewayError):
    """Raised when consecutive status queries keep failing at the network layer."""

    def __init__(self, task_id: str, attempts: int, last_error: Exception | None) -> None:
        super().__init__(
            f"Task {task_id} status endpoint unreachable after {attempts} attempts: {last_error}"
        )
        self.task_id = task_id
        self.attempts = attempts
        self.last_error = last_error


class PollCancelledError(GatewayError):
    """Raised when the caller went away before the task reached a terminal state."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Polling for task {task_id} cancelled by caller")
        self.task_id = task_id
