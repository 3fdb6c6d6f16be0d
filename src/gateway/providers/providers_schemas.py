"""Request models and failure codes for provider routes."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from ..tasks.tasks_models import PollBudget


class FailureReason(StrEnum):
    """Failure reasons returned in error bodies."""

    INVALID_REQUEST = "invalid_request"
    PROVIDER_NOT_FOUND = "provider_not_found"
    CONFIGURATION_ERROR = "configuration_error"
    SUBMISSION_REJECTED = "submission_rejected"
    REMOTE_FAILURE = "remote_failure"
    TIMEOUT = "timeout"
    POLLING_UNREACHABLE = "polling_unreachable"
    CANCELLED = "cancelled"


CredentialEnvelope = str | dict[str, Any] | None


class PollOverrides(BaseModel):
    initial_delay_seconds: float | None = Field(default=None, ge=0)
    interval_seconds: float | None = Field(default=None, ge=0)
    max_attempts: int | None = Field(default=None, ge=1)
    max_consecutive_errors: int | None = Field(default=None, ge=1)

    def apply(self, budget: PollBudget) -> PollBudget:
        return budget.with_overrides(**self.model_dump())


class TaskRequest(BaseModel):
    """Provider payload plus the caller's credential envelope."""

    input: dict[str, Any] = Field(default_factory=dict)
    credential: CredentialEnvelope = None
    operation: str | None = None


class GenerateRequest(TaskRequest):
    poll: PollOverrides | None = None


class SyncRequest(BaseModel):
    input: dict[str, Any] = Field(default_factory=dict)
    credential: CredentialEnvelope = None
