"""Factory for provider drivers."""

from __future__ import annotations

from typing import Any

from ..config import AppConfig
from .providers_base import AsyncTaskDriver, PostProcessor, passthrough
from .providers_bfl import BflDriver
from .providers_byte_ark import ByteArkDriver
from .providers_http import ProviderHttp
from .providers_jimeng import JimengDriver
from .providers_runway import RunwayDriver
from .providers_tripo import TripoDriver

ASYNC_PROVIDERS = ("bfl", "tripo", "runway", "jimeng")


def build_http(config: AppConfig) -> ProviderHttp:
    return ProviderHttp(proxy=config.proxy, timeout_seconds=config.http_timeout_seconds)


def create_driver(
    name: str,
    *,
    config: AppConfig,
    post_processor: PostProcessor = passthrough,
    **options: Any,
) -> AsyncTaskDriver:
    """Instantiate an async task driver by name."""
    lower = name.lower()
    http = build_http(config)
    keys = config.provider_keys
    if lower == "bfl":
        return BflDriver(http=http, api_key=keys.bfl, post_processor=post_processor, **options)
    if lower == "tripo":
        return TripoDriver(http=http, api_key=keys.tripo, post_processor=post_processor, **options)
    if lower == "runway":
        return RunwayDriver(
            http=http, api_key=keys.runway, post_processor=post_processor, **options
        )
    if lower == "jimeng":
        return JimengDriver(
            http=http, volc=config.volc_visual, post_processor=post_processor, **options
        )
    raise KeyError(f"Unsupported provider '{name}'")


def create_byte_ark_driver(
    *, config: AppConfig, post_processor: PostProcessor = passthrough
) -> ByteArkDriver:
    return ByteArkDriver(
        http=build_http(config), api_key=config.provider_keys.byte_ark, post_processor=post_processor
    )
