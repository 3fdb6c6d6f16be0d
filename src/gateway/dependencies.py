"""Dependency wiring helpers."""

from fastapi import FastAPI

from .config import AppConfig
from .health import router as health_router
from .media.media_rehost import ContentUrlRehoster
from .media.media_storage import S3ObjectStorage
from .providers.providers_api import router as providers_router
from .providers.providers_factory import build_http
from .providers.providers_service import ProviderService


def build_rehoster(config: AppConfig) -> ContentUrlRehoster:
    storage = S3ObjectStorage(config.storage) if config.storage.configured else None
    return ContentUrlRehoster(
        storage=storage,
        http=build_http(config),
        key_prefix=config.storage.key_prefix,
    )


def include_routers(app: FastAPI, config: AppConfig) -> None:
    """Mount module routers and attach services."""
    provider_service = ProviderService(config=config, rehoster=build_rehoster(config))

    app.state.config = config
    app.state.provider_service = provider_service

    app.include_router(health_router)
    app.include_router(providers_router)
