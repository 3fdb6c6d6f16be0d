"""Rewrite file URLs in provider results to durable object-storage URLs."""

from __future__ import annotations

import logging
import mimetypes
import re
import secrets
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from botocore.exceptions import BotoCoreError, ClientError

from ..providers.providers_http import ProviderHttp

logger = logging.getLogger(__name__)

_MARKDOWN_IMAGE_RE = re.compile(r"!\[.*?\]\((.*?)\)")
_URL_RE = re.compile(r"https?://[^\s<>\"']+")
_FILENAME_RE = re.compile(r"filename\*?=[\"']?(?:UTF-8'')?([^\"';]+)[\"']?", re.IGNORECASE)
_GENERIC_BINARY = {"octet-stream", "bin", "binary"}
# httpx.InvalidURL does not derive from httpx.HTTPError.
_FETCH_ERRORS = (httpx.HTTPError, httpx.InvalidURL, ValueError)
_REHOST_ERRORS = (*_FETCH_ERRORS, BotoCoreError, ClientError)


class ObjectStorage(Protocol):
    def owns(self, url: str) -> bool: ...

    async def upload(self, data: bytes, key: str, content_type: str) -> str: ...


def extract_urls(text: str) -> list[str]:
    """Return URLs found in ``text`` (markdown images first), without duplicates."""
    found: dict[str, None] = {}
    for match in _MARKDOWN_IMAGE_RE.finditer(text):
        if match.group(1):
            found[match.group(1)] = None
    for match in _URL_RE.finditer(text):
        found[match.group(0).rstrip(").,;")] = None
    return list(found)


def substitute_urls(text: str, replacements: Mapping[str, str]) -> str:
    """Swap whole URLs in ``text``; a URL that merely starts with a key is kept."""

    def _markdown(match: re.Match[str]) -> str:
        url = match.group(1)
        if url not in replacements:
            return match.group(0)
        return match.group(0).replace(f"({url})", f"({replacements[url]})")

    def _bare(match: re.Match[str]) -> str:
        raw = match.group(0)
        url = raw.rstrip(").,;")
        return replacements.get(url, url) + raw[len(url):]

    return _URL_RE.sub(_bare, _MARKDOWN_IMAGE_RE.sub(_markdown, text))


def extension_from_url(url: str) -> str:
    path = url.split("?", 1)[0].split("#", 1)[0]
    tail = path.rsplit("/", 1)[-1]
    if "." in tail:
        return tail.rsplit(".", 1)[1] or "bin"
    return "bin"


def guess_extension(url: str, headers: Mapping[str, str]) -> str:
    disposition = headers.get("content-disposition")
    if disposition:
        match = _FILENAME_RE.search(disposition)
        if match and "." in match.group(1):
            return match.group(1).rsplit(".", 1)[1]

    content_type = (headers.get("content-type") or "").split(";", 1)[0].strip()
    if "/" in content_type:
        subtype = content_type.split("/", 1)[1]
        if subtype not in _GENERIC_BINARY:
            guessed = mimetypes.guess_extension(content_type, strict=False)
            return guessed.lstrip(".") if guessed else subtype
    return extension_from_url(url)


@dataclass(slots=True)
class ContentUrlRehoster:
    """Walks JSON-like values and rehosts every downloadable file URL.

    Without storage the value is returned untouched. URLs already served from
    the storage are left alone, so processing a result twice changes nothing.
    """

    storage: ObjectStorage | None
    http: ProviderHttp
    key_prefix: str = "uploads"

    @property
    def enabled(self) -> bool:
        return self.storage is not None

    async def __call__(self, value: Any) -> Any:
        return await self.process_content_urls(value)

    async def process_content_urls(self, value: Any) -> Any:
        if self.storage is None:
            return value
        return await self._process(value)

    async def _process(self, value: Any) -> Any:
        if isinstance(value, str):
            return await self._process_text(value)
        if isinstance(value, Mapping):
            return {key: await self._process(item) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return [await self._process(item) for item in value]
        return value

    async def _process_text(self, text: str) -> str:
        replacements: dict[str, str] = {}
        for url in extract_urls(text):
            if self.storage.owns(url):
                continue
            if not await self.is_file_url(url):
                continue
            new_url = await self.rehost(url)
            if new_url != url:
                replacements[url] = new_url
        if not replacements:
            return text
        return substitute_urls(text, replacements)

    async def is_file_url(self, url: str) -> bool:
        try:
            async with self.http.client_for(url) as client:
                try:
                    response = await client.head(url, follow_redirects=True)
                    response.raise_for_status()
                    content_type = response.headers.get("content-type")
                except httpx.HTTPError:
                    async with client.stream("GET", url, follow_redirects=True) as streamed:
                        streamed.raise_for_status()
                        content_type = streamed.headers.get("content-type")
        except _FETCH_ERRORS as exc:
            logger.warning("media.rehost.probe_failed", extra={"url": url, "error": str(exc)})
            return False
        return bool(content_type) and not content_type.startswith("text/html")

    def _object_key(self, extension: str) -> str:
        stamp = int(time.time() * 1000)
        return f"{self.key_prefix}/{stamp}-{secrets.token_hex(4)}.{extension}"

    async def rehost(self, url: str) -> str:
        """Copy ``url`` into storage; keep the original URL when that fails."""
        try:
            async with self.http.client_for(url) as client:
                response = await client.get(url, follow_redirects=True)
                response.raise_for_status()
            headers = {key.lower(): value for key, value in response.headers.items()}
            content_type = headers.get("content-type", "application/octet-stream")
            key = self._object_key(guess_extension(url, headers))
            new_url = await self.storage.upload(response.content, key, content_type)
        except _REHOST_ERRORS as exc:
            logger.error("media.rehost.failed", extra={"url": url, "error": str(exc)})
            return url
        logger.info("media.rehost.done", extra={"source_url": url, "url": new_url})
        return new_url
