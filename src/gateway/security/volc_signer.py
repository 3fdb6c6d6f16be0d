"""HMAC-SHA256 request signing for Volcengine OpenAPI endpoints."""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping
from urllib.parse import quote

ALGORITHM = "HMAC-SHA256"
CONTENT_TYPE = "application/json"
KEY_SEED = "VOLC"
SCOPE_TERMINATOR = "request"


@dataclass(slots=True, frozen=True)
class SignedRequest:
    headers: dict[str, str]
    signed_header_names: tuple[str, ...]
    canonical_request: str
    string_to_sign: str
    authorization: str
    x_date: str


def sha256_hex(data: str | bytes) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def _hmac_sha256(key: bytes, data: str) -> bytes:
    return hmac.new(key, data.encode("utf-8"), hashlib.sha256).digest()


def format_x_date(moment: datetime | None = None) -> str:
    """Format ``moment`` (default: now) as ``YYYYMMDDTHHMMSSZ`` in UTC."""
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_rfc3986(value: str) -> str:
    # RFC 3986 unreserved set only; !*'() are escaped too.
    return quote(value, safe="-_.~")


def canonical_query_string(query: Mapping[str, Any] | None) -> str:
    if not query:
        return ""
    pairs = sorted(
        (str(key), _stringify(value)) for key, value in query.items() if value is not None
    )
    return "&".join(f"{encode_rfc3986(key)}={encode_rfc3986(value)}" for key, value in pairs)


def derive_signing_key(secret_access_key: str, date: str, region: str, service: str) -> bytes:
    k_date = _hmac_sha256((KEY_SEED + secret_access_key).encode("utf-8"), date)
    k_region = _hmac_sha256(k_date, region)
    k_service = _hmac_sha256(k_region, service)
    return _hmac_sha256(k_service, SCOPE_TERMINATOR)


def _capitalize(name: str) -> str:
    return name[:1].upper() + name[1:]


def sign_request(
    method: str,
    host: str,
    path: str,
    *,
    body: str,
    access_key_id: str,
    secret_access_key: str,
    region: str,
    service: str,
    query: Mapping[str, Any] | None = None,
    headers: Mapping[str, Any] | None = None,
    x_date: str | None = None,
) -> SignedRequest:
    """Sign a request and return the headers to send along with it.

    The signature depends only on the arguments: query parameters and extra
    headers are sorted before hashing, so their insertion order does not
    matter.
    """
    method = method.upper()
    path = path or "/"
    x_date = x_date or format_x_date()
    date = x_date[:8]
    payload_hash = sha256_hex(body or "")

    extra_headers = {
        str(key).lower(): _stringify(value)
        for key, value in (headers or {}).items()
        if value is not None
    }
    all_headers = {
        "host": host,
        "content-type": CONTENT_TYPE,
        "x-content-sha256": payload_hash,
        "x-date": x_date,
        **extra_headers,
    }

    signed_names = tuple(sorted(all_headers))
    canonical_headers = "\n".join(f"{name}:{all_headers[name].strip()}" for name in signed_names)
    signed_headers = ";".join(signed_names)

    canonical_request = "\n".join(
        [
            method,
            path,
            canonical_query_string(query),
            canonical_headers + "\n",
            signed_headers,
            payload_hash,
        ]
    )

    scope = f"{date}/{region}/{service}/{SCOPE_TERMINATOR}"
    string_to_sign = "\n".join([ALGORITHM, x_date, scope, sha256_hex(canonical_request)])

    signing_key = derive_signing_key(secret_access_key, date, region, service)
    signature = hmac.new(signing_key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

    authorization = (
        f"{ALGORITHM} Credential={access_key_id}/{scope}, "
        f"SignedHeaders={signed_headers}, Signature={signature}"
    )

    headers_out = {
        "Host": host,
        "Content-Type": CONTENT_TYPE,
        "X-Content-Sha256": payload_hash,
        "X-Date": x_date,
        "Authorization": authorization,
    }
    for name, value in extra_headers.items():
        headers_out[_capitalize(name)] = value

    return SignedRequest(
        headers=headers_out,
        signed_header_names=signed_names,
        canonical_request=canonical_request,
        string_to_sign=string_to_sign,
        authorization=authorization,
        x_date=x_date,
    )
