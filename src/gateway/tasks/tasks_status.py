"""Mapping of provider status vocabularies onto :class:`TaskState`."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

from .tasks_models import RemoteSnapshot, TaskState

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class StatusTable:
    """Per-provider classification table.

    Success and failure tokens are terminal; anything else reported with a
    2xx response stays ``processing``. Non-2xx responses are looked up in
    ``http_status`` and default to ``failed``.
    """

    provider: str
    success: frozenset[str]
    failure: frozenset[str]
    processing: frozenset[str] = frozenset()
    http_status: Mapping[int, TaskState] = field(default_factory=dict)
    default: TaskState = TaskState.PROCESSING

    @classmethod
    def build(
        cls,
        provider: str,
        *,
        success: Iterable[str],
        failure: Iterable[str],
        processing: Iterable[str] = (),
        http_status: Mapping[int, TaskState] | None = None,
        default: TaskState = TaskState.PROCESSING,
    ) -> "StatusTable":
        success_set = frozenset(success)
        failure_set = frozenset(failure)
        processing_set = frozenset(processing)
        overlap = (success_set & failure_set) | (processing_set & (success_set | failure_set))
        if overlap:
            raise ValueError(f"{provider} status tokens mapped twice: {sorted(overlap)}")
        if default is TaskState.TIMEOUT:
            raise ValueError("timeout is never a classification result")
        return cls(
            provider=provider,
            success=success_set,
            failure=failure_set,
            processing=processing_set,
            http_status=MappingProxyType(dict(http_status or {})),
            default=default,
        )

    def classify_token(self, token: str | None) -> TaskState:
        if token in self.success:
            return TaskState.COMPLETED
        if token in self.failure:
            return TaskState.FAILED
        if token in self.processing:
            return TaskState.PROCESSING
        logger.info(
            "status.token.unrecognized",
            extra={"provider": self.provider, "token": token, "state": self.default.value},
        )
        return self.default

    def classify(self, snapshot: RemoteSnapshot) -> TaskState:
        if not 200 <= snapshot.http_status < 300:
            return self.http_status.get(snapshot.http_status, TaskState.FAILED)
        return self.classify_token(snapshot.token)
