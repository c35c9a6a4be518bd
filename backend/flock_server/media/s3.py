"""
S3 object storage backend.

Uploads are written with aiobotocore under a configurable prefix and
addressed by a public URL (either S3_PUBLIC_URL or the bucket's
virtual-host style URL).

Invariants:
    - One S3 client per backend instance, opened in connect()
    - Object keys are never reused

How to change safely:
    - Test against MinIO (S3_ENDPOINT) before touching the URL scheme;
      stored URLs are persisted in user and post records
"""

from __future__ import annotations

import logging
from typing import Any

from aiobotocore.session import get_session

from ..config import S3Config
from .base import ALLOWED_IMAGE_TYPES, MediaError, MediaUploadError, Upload, object_key

logger = logging.getLogger(__name__)


class S3ObjectStorage:
    """ObjectStorage backed by an S3 bucket.

    Example:
        >>> storage = S3ObjectStorage(S3Config(bucket="flock-media"))
        >>> await storage.connect()
        >>> url = await storage.put(upload)
        >>> await storage.close()
    """

    def __init__(self, config: S3Config) -> None:
        self.config = config
        self._session = None
        self._s3_ctx: Any = None
        self._s3_client: Any = None

    @property
    def base_url(self) -> str:
        if self.config.public_url:
            return self.config.public_url.rstrip("/")
        if self.config.endpoint_url:
            return f"{self.config.endpoint_url.rstrip('/')}/{self.config.bucket}"
        return f"https://{self.config.bucket}.s3.{self.config.region}.amazonaws.com"

    async def connect(self) -> None:
        """Initialize S3 client."""
        if self._s3_client is not None:
            return

        self._session = get_session()

        client_kwargs: dict[str, Any] = {
            "region_name": self.config.region,
        }

        if self.config.endpoint_url:
            client_kwargs["endpoint_url"] = self.config.endpoint_url

        if self.config.access_key_id:
            client_kwargs["aws_access_key_id"] = self.config.access_key_id
            client_kwargs["aws_secret_access_key"] = self.config.secret_access_key

        self._s3_ctx = self._session.create_client("s3", **client_kwargs)
        self._s3_client = await self._s3_ctx.__aenter__()
        logger.info("Connected object storage", extra={"bucket": self.config.bucket})

    async def close(self) -> None:
        """Close S3 client."""
        if self._s3_client:
            await self._s3_ctx.__aexit__(None, None, None)
            self._s3_client = None
            logger.info("Closed object storage", extra={"bucket": self.config.bucket})

    async def put(self, upload: Upload) -> str:
        if self._s3_client is None:
            raise MediaError("Object storage is not connected")
        if upload.content_type not in ALLOWED_IMAGE_TYPES:
            raise MediaUploadError(f"Unsupported content type: {upload.content_type}")

        key = object_key(self.config.prefix, upload)
        try:
            await self._s3_client.put_object(
                Bucket=self.config.bucket,
                Key=key,
                Body=upload.data,
                ContentType=upload.content_type,
            )
        except Exception as e:
            logger.error(f"Failed to upload object {key}: {e}", exc_info=True)
            raise MediaError("Failed to store upload") from e

        logger.debug("Stored object", extra={"key": key, "size": len(upload.data)})
        return f"{self.base_url}/{key}"
