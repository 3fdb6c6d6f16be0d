"""Resolve caller-supplied credential envelopes into concrete secrets.

Callers send credentials in several shapes: a bare key string, an object
with a key field, or an object whose ``encryptedData`` field holds a JSON
blob (or, for older clients, the raw key itself). Resolution order:

1. a plain string is the key;
2. direct key fields on the object;
3. the decoded ``encryptedData`` payload (raw payload when it is not JSON);
4. the process-wide default from configuration;
5. otherwise :class:`ConfigurationError`.

Nothing is cached: every request resolves its own envelope.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from ..tasks.tasks_errors import ConfigurationError
from .credentials_models import (
    ABSENT,
    AbsentCredential,
    AkSkCredential,
    ApiKeyCredential,
    Credential,
)

logger = logging.getLogger(__name__)

API_KEY_FIELDS = ("apiKey", "api_key", "key")
ACCESS_KEY_FIELDS = ("access_key_id", "accessKeyId", "ak", "AK")
SECRET_KEY_FIELDS = ("secret_access_key", "secretAccessKey", "sk", "SK")
ENCODED_FIELDS = ("encryptedData", "encrypted_data")


class CredentialKind(StrEnum):
    API_KEY = "api_key"
    AK_SK = "ak_sk"


def _as_mapping(envelope: Any) -> Mapping[str, Any] | None:
    if isinstance(envelope, Mapping):
        return envelope
    dump = getattr(envelope, "model_dump", None)
    if callable(dump):
        return dump(by_alias=True, exclude_none=True)
    if hasattr(envelope, "__dict__"):
        return {k: v for k, v in vars(envelope).items() if not k.startswith("_")}
    return None


def _first_str(data: Mapping[str, Any], names: tuple[str, ...]) -> str | None:
    for name in names:
        value = data.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _from_fields(data: Mapping[str, Any], kind: CredentialKind) -> Credential:
    if kind is CredentialKind.API_KEY:
        api_key = _first_str(data, API_KEY_FIELDS)
        return ApiKeyCredential(api_key) if api_key else ABSENT
    access_key = _first_str(data, ACCESS_KEY_FIELDS)
    secret_key = _first_str(data, SECRET_KEY_FIELDS)
    if access_key and secret_key:
        return AkSkCredential(access_key_id=access_key, secret_access_key=secret_key)
    return ABSENT


def _from_encoded(encoded: str, kind: CredentialKind) -> Credential:
    try:
        decoded = json.loads(encoded)
    except ValueError:
        if kind is CredentialKind.API_KEY:
            logger.info("credentials.encoded.not_json", extra={"kind": kind.value})
            return ApiKeyCredential(encoded.strip())
        return ABSENT
    if isinstance(decoded, Mapping):
        return _from_fields(decoded, kind)
    if kind is CredentialKind.API_KEY and isinstance(decoded, str) and decoded.strip():
        return ApiKeyCredential(decoded.strip())
    return ABSENT


def parse_credential(envelope: Any, kind: CredentialKind = CredentialKind.API_KEY) -> Credential:
    """Turn an envelope of unknown shape into a credential of ``kind`` (or absent)."""
    if envelope is None:
        return ABSENT
    if isinstance(envelope, (ApiKeyCredential, AkSkCredential, AbsentCredential)):
        if isinstance(envelope, AbsentCredential):
            return envelope
        wanted = ApiKeyCredential if kind is CredentialKind.API_KEY else AkSkCredential
        return envelope if isinstance(envelope, wanted) else ABSENT
    if isinstance(envelope, str):
        if not envelope.strip():
            return ABSENT
        if kind is CredentialKind.API_KEY:
            return ApiKeyCredential(envelope.strip())
        return _from_encoded(envelope, kind)

    data = _as_mapping(envelope)
    if data is None:
        return ABSENT

    direct = _from_fields(data, kind)
    if not isinstance(direct, AbsentCredential):
        return direct

    encoded = _first_str(data, ENCODED_FIELDS)
    if encoded:
        return _from_encoded(encoded, kind)
    return ABSENT


def resolve_api_key(
    envelope: Any, *, fallback: str | None, provider: str
) -> ApiKeyCredential:
    """Resolve an API key for ``provider`` or raise :class:`ConfigurationError`."""
    credential = parse_credential(envelope, CredentialKind.API_KEY)
    if isinstance(credential, ApiKeyCredential):
        return credential
    if fallback:
        logger.debug("credentials.fallback.default", extra={"provider": provider})
        return ApiKeyCredential(fallback)
    raise ConfigurationError(
        f"No API key configured for {provider}: pass a credential with the request "
        "or set the provider key in the gateway configuration"
    )


def resolve_ak_sk(
    envelope: Any,
    *,
    fallback_access_key_id: str | None,
    fallback_secret_access_key: str | None,
    provider: str,
) -> AkSkCredential:
    """Resolve an access-key/secret-key pair or raise :class:`ConfigurationError`."""
    credential = parse_credential(envelope, CredentialKind.AK_SK)
    if isinstance(credential, AkSkCredential):
        return credential
    if fallback_access_key_id and fallback_secret_access_key:
        logger.debug("credentials.fallback.default", extra={"provider": provider})
        return AkSkCredential(
            access_key_id=fallback_access_key_id,
            secret_access_key=fallback_secret_access_key,
        )
    raise ConfigurationError(
        f"No access key pair configured for {provider}: pass access_key_id and "
        "secret_access_key with the request or set them in the gateway configuration"
    )
