"""Application configuration builder."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from urllib.parse import urlsplit

from .tasks.tasks_errors import ConfigurationError

_ALWAYS_DIRECT = ("localhost", "127.0.0.1")


@dataclass(slots=True, frozen=True)
class ProxyConfig:
    """Outbound proxy settings, consulted per request URL."""

    enabled: bool = False
    url: str | None = None
    exclude: tuple[str, ...] = ()

    def proxy_for(self, target_url: str) -> str | None:
        """Return the proxy URL for ``target_url`` or ``None`` for a direct call."""
        if not self.enabled or not self.url:
            return None
        host = (urlsplit(target_url).hostname or "").lower()
        for pattern in (*self.exclude, *_ALWAYS_DIRECT):
            pattern = pattern.strip().lower()
            if not pattern:
                continue
            if host == pattern or host.endswith("." + pattern.lstrip(".")):
                return None
        return self.url


@dataclass(slots=True, frozen=True)
class ProviderKeys:
    """Process-wide fallback API keys used when a request carries no credential."""

    bfl: str | None = None
    tripo: str | None = None
    runway: str | None = None
    byte_ark: str | None = None


@dataclass(slots=True, frozen=True)
class VolcVisualConfig:
    host: str = "visual.volcengineapi.com"
    region: str = "cn-north-1"
    service: str = "cv"
    access_key_id: str | None = None
    secret_access_key: str | None = None


@dataclass(slots=True, frozen=True)
class StorageConfig:
    """S3-compatible bucket used to rehost provider output files."""

    bucket: str | None = None
    region: str | None = None
    endpoint_url: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    public_base_url: str | None = None
    key_prefix: str = "uploads"

    @property
    def configured(self) -> bool:
        return bool(self.bucket and self.access_key_id and self.secret_access_key)


@dataclass(slots=True, frozen=True)
class AppConfig:
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    provider_keys: ProviderKeys = field(default_factory=ProviderKeys)
    volc_visual: VolcVisualConfig = field(default_factory=VolcVisualConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    http_timeout_seconds: float = 30.0


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str) -> tuple[str, ...]:
    raw = os.getenv(name, "")
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _validate_proxy(proxy: ProxyConfig) -> None:
    if proxy.enabled and not proxy.url:
        raise ConfigurationError("Proxy enabled but PROXY_URL is not set")


def load_config() -> AppConfig:
    """Load configuration from environment."""
    proxy = ProxyConfig(
        enabled=_env_flag("PROXY_ENABLED"),
        url=os.getenv("PROXY_URL") or None,
        exclude=_env_list("PROXY_EXCLUDE"),
    )
    _validate_proxy(proxy)

    provider_keys = ProviderKeys(
        bfl=os.getenv("BFL_API_KEY") or None,
        tripo=os.getenv("TRIPO_API_KEY") or None,
        runway=os.getenv("RUNWAY_API_KEY") or None,
        byte_ark=os.getenv("BYTE_ARK_API_KEY") or None,
    )

    volc_visual = VolcVisualConfig(
        host=os.getenv("VOLC_VISUAL_HOST", "visual.volcengineapi.com"),
        region=os.getenv("VOLC_VISUAL_REGION", "cn-north-1"),
        service=os.getenv("VOLC_VISUAL_SERVICE", "cv"),
        access_key_id=os.getenv("VOLC_VISUAL_ACCESS_KEY_ID") or None,
        secret_access_key=os.getenv("VOLC_VISUAL_SECRET_ACCESS_KEY") or None,
    )

    storage = StorageConfig(
        bucket=os.getenv("S3_BUCKET") or None,
        region=os.getenv("S3_REGION") or None,
        endpoint_url=os.getenv("S3_ENDPOINT_URL") or None,
        access_key_id=os.getenv("S3_ACCESS_KEY_ID") or None,
        secret_access_key=os.getenv("S3_SECRET_ACCESS_KEY") or None,
        public_base_url=os.getenv("S3_PUBLIC_BASE_URL") or None,
        key_prefix=os.getenv("S3_KEY_PREFIX", "uploads").strip("/") or "uploads",
    )

    return AppConfig(
        proxy=proxy,
        provider_keys=provider_keys,
        volc_visual=volc_visual,
        storage=storage,
        http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", 30)),
    )
