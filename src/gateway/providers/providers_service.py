"""Per-request driver construction shared by the HTTP routes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..config import AppConfig
from ..media.media_rehost import ContentUrlRehoster
from .providers_base import AsyncTaskDriver
from .providers_byte_ark import ByteArkDriver
from .providers_factory import ASYNC_PROVIDERS, create_byte_ark_driver, create_driver


@dataclass(slots=True)
class ProviderService:
    """Builds fresh drivers for each request; holds only read-only state."""

    config: AppConfig
    rehoster: ContentUrlRehoster

    def providers(self) -> tuple[str, ...]:
        return ASYNC_PROVIDERS

    def driver(self, name: str, *, operation: str | None = None) -> AsyncTaskDriver:
        options: dict[str, Any] = {}
        if operation and name.lower() == "runway":
            options["operation"] = operation
        return create_driver(
            name, config=self.config, post_processor=self.rehoster, **options
        )

    def byte_ark(self) -> ByteArkDriver:
        return create_byte_ark_driver(config=self.config, post_processor=self.rehoster)
