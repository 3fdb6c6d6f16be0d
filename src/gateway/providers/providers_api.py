"""HTTP routes for provider task submission and polling."""

from __future__ import annotations

import json
import logging
from typing import Any, NoReturn

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from ..tasks.tasks_errors import (
    ConfigurationError,
    GatewayError,
    PollCancelledError,
    PollingUnreachableError,
    RemoteTaskFailure,
    SubmissionError,
    TaskTimeoutError,
)
from ..tasks.tasks_models import TaskState
from .providers_base import AsyncTaskDriver
from .providers_schemas import (
    CredentialEnvelope,
    FailureReason,
    GenerateRequest,
    SyncRequest,
    TaskRequest,
)
from .providers_service import ProviderService

router = APIRouter(prefix="/api/providers", tags=["providers"])
logger = logging.getLogger(__name__)

HTTP_499_CLIENT_CLOSED_REQUEST = 499


def get_provider_service(request: Request) -> ProviderService:
    """Fetch provider service from application state."""
    try:
        return request.app.state.provider_service  # type: ignore[attr-defined]
    except AttributeError as exc:  # pragma: no cover
        raise RuntimeError("ProviderService is not configured") from exc


def _error(status_code: int, reason: FailureReason, message: str, **extra: Any) -> HTTPException:
    detail = {"status": "error", "failure_reason": reason.value, "message": message}
    detail.update(extra)
    return HTTPException(status_code=status_code, detail=detail)


def raise_for_gateway_error(exc: GatewayError, *, provider: str) -> NoReturn:
    """Translate gateway errors into distinguishable HTTP responses."""
    logger.warning(
        "providers.request.failed",
        extra={"provider": provider, "error_type": type(exc).__name__, "error": str(exc)},
    )
    if isinstance(exc, ConfigurationError):
        raise _error(
            status.HTTP_400_BAD_REQUEST, FailureReason.CONFIGURATION_ERROR, str(exc)
        ) from exc
    if isinstance(exc, SubmissionError):
        raise _error(
            status.HTTP_502_BAD_GATEWAY,
            FailureReason.SUBMISSION_REJECTED,
            str(exc),
            upstream_status=exc.status_code,
            upstream_body=exc.body,
        ) from exc
    if isinstance(exc, RemoteTaskFailure):
        raise _error(
            status.HTTP_502_BAD_GATEWAY,
            FailureReason.REMOTE_FAILURE,
            str(exc),
            task_id=exc.task_id,
            diagnostic=exc.diagnostic,
        ) from exc
    if isinstance(exc, TaskTimeoutError):
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail={
                "status": TaskState.TIMEOUT.value,
                "failure_reason": FailureReason.TIMEOUT.value,
                "message": str(exc),
                "task_id": exc.task_id,
                "attempts": exc.attempts,
            },
        ) from exc
    if isinstance(exc, PollingUnreachableError):
        raise _error(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            FailureReason.POLLING_UNREACHABLE,
            str(exc),
            task_id=exc.task_id,
        ) from exc
    if isinstance(exc, PollCancelledError):
        raise _error(
            HTTP_499_CLIENT_CLOSED_REQUEST,
            FailureReason.CANCELLED,
            str(exc),
            task_id=exc.task_id,
        ) from exc
    raise _error(status.HTTP_502_BAD_GATEWAY, FailureReason.REMOTE_FAILURE, str(exc)) from exc


def _driver(service: ProviderService, provider: str, operation: str | None) -> AsyncTaskDriver:
    try:
        return service.driver(provider, operation=operation)
    except KeyError:
        raise _error(
            status.HTTP_404_NOT_FOUND,
            FailureReason.PROVIDER_NOT_FOUND,
            f"Unknown provider '{provider}'",
            providers=list(service.providers()),
        ) from None
    except ValueError as exc:
        raise _error(
            status.HTTP_400_BAD_REQUEST, FailureReason.INVALID_REQUEST, str(exc)
        ) from exc


def _parse_credential_header(raw: str | None) -> CredentialEnvelope:
    if not raw:
        return None
    try:
        decoded = json.loads(raw)
    except ValueError:
        return raw
    return decoded if isinstance(decoded, dict) else raw


@router.post("/byte-ark/images")
async def byte_ark_images(
    body: SyncRequest,
    service: ProviderService = Depends(get_provider_service),
) -> dict[str, Any]:
    """Synchronous Seedream image generation."""
    driver = service.byte_ark()
    try:
        result = await driver.call(body.input, body.credential)
    except GatewayError as exc:
        raise_for_gateway_error(exc, provider=driver.provider_id)
    return result.as_dict()


@router.post("/{provider}/tasks", status_code=status.HTTP_202_ACCEPTED)
async def submit_task(
    provider: str,
    body: TaskRequest,
    service: ProviderService = Depends(get_provider_service),
) -> dict[str, Any]:
    """Create a remote task and return its identifier without waiting."""
    driver = _driver(service, provider, body.operation)
    try:
        handle = await driver.submit(body.input, body.credential)
    except GatewayError as exc:
        raise_for_gateway_error(exc, provider=provider)
    except ValueError as exc:
        raise _error(
            status.HTTP_400_BAD_REQUEST, FailureReason.INVALID_REQUEST, str(exc)
        ) from exc
    return {"task_id": handle.task_id, "provider": handle.provider}


@router.get("/{provider}/tasks/{task_id}")
async def get_task_status(
    provider: str,
    task_id: str,
    x_credential: str | None = Header(default=None),
    service: ProviderService = Depends(get_provider_service),
) -> dict[str, Any]:
    """Single status query for a task submitted earlier (or one that timed out)."""
    driver = _driver(service, provider, None)
    credential = _parse_credential_header(x_credential)
    try:
        task_status = await driver.poll(task_id, credential)
        task_status = await driver.finalize(task_status)
    except GatewayError as exc:
        raise_for_gateway_error(exc, provider=provider)
    return task_status.as_dict()


@router.post("/{provider}/generate")
async def generate(
    provider: str,
    body: GenerateRequest,
    request: Request,
    service: ProviderService = Depends(get_provider_service),
) -> dict[str, Any]:
    """Submit a task and wait for its terminal state."""
    driver = _driver(service, provider, body.operation)
    budget = body.poll.apply(driver.poll_budget) if body.poll else None
    try:
        outcome = await driver.submit_and_wait(
            body.input,
            body.credential,
            budget,
            is_cancelled=request.is_disconnected,
        )
    except GatewayError as exc:
        raise_for_gateway_error(exc, provider=provider)
    except ValueError as exc:
        raise _error(
            status.HTTP_400_BAD_REQUEST, FailureReason.INVALID_REQUEST, str(exc)
        ) from exc
    return outcome.as_dict()
