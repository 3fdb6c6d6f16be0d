"""S3-compatible object storage used to rehost provider output files."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from anyio import to_thread
import boto3

from ..config import StorageConfig

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class S3ObjectStorage:
    config: StorageConfig
    _client: Any = field(default=None, init=False, repr=False)

    def _get_client(self) -> Any:
        if self._client is None:
            session = boto3.session.Session()
            self._client = session.client(
                "s3",
                region_name=self.config.region,
                endpoint_url=self.config.endpoint_url,
                aws_access_key_id=self.config.access_key_id,
                aws_secret_access_key=self.config.secret_access_key,
            )
        return self._client

    @property
    def public_base_url(self) -> str:
        if self.config.public_base_url:
            return self.config.public_base_url.rstrip("/")
        if self.config.endpoint_url:
            return f"{self.config.endpoint_url.rstrip('/')}/{self.config.bucket}"
        region = self.config.region or "us-east-1"
        return f"https://{self.config.bucket}.s3.{region}.amazonaws.com"

    def url_for(self, key: str) -> str:
        return f"{self.public_base_url}/{key.lstrip('/')}"

    def owns(self, url: str) -> bool:
        """Tell whether ``url`` already points into this bucket."""
        return url.startswith(self.public_base_url + "/")

    async def upload(self, data: bytes, key: str, content_type: str) -> str:
        client = self._get_client()

        def _put() -> None:
            client.put_object(
                Bucket=self.config.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )

        await to_thread.run_sync(_put)
        logger.info("media.storage.uploaded", extra={"key": key, "size": len(data)})
        return self.url_for(key)
