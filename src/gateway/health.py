"""Liveness endpoint."""

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, object]:
    service = request.app.state.provider_service
    return {
        "status": "ok",
        "providers": list(service.providers()),
        "rehosting": service.rehoster.enabled,
    }
