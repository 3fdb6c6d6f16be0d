"""Resolved credential variants."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union


@dataclass(slots=True, frozen=True)
class ApiKeyCredential:
    """Single bearer-style secret."""

    api_key: str = field(repr=False)


@dataclass(slots=True, frozen=True)
class AkSkCredential:
    """Access-key / secret-key pair for signed requests."""

    access_key_id: str
    secret_access_key: str = field(repr=False)


@dataclass(slots=True, frozen=True)
class AbsentCredential:
    """Envelope carried nothing usable."""


Credential = Union[ApiKeyCredential, AkSkCredential, AbsentCredential]

ABSENT = AbsentCredential()
