"""
In-memory object storage for testing and local development.

Objects live in a dict and are addressed with a ``memory://`` URL.
Not suitable for production: contents are lost on restart.
"""

from __future__ import annotations

import asyncio
import logging

from .base import ALLOWED_IMAGE_TYPES, MediaUploadError, Upload, object_key

logger = logging.getLogger(__name__)


class InMemoryObjectStorage:
    """Dict-backed ObjectStorage.

    Attributes:
        base_url: URL prefix for returned object URLs
        max_bytes: Largest accepted upload

    Example:
        >>> storage = InMemoryObjectStorage()
        >>> url = await storage.put(Upload(b"png", "a.png", "image/png"))
        >>> storage.get(url)
        b'png'
    """

    def __init__(
        self,
        base_url: str = "memory://flock-media",
        prefix: str = "uploads",
        max_bytes: int = 10 * 1024 * 1024,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.prefix = prefix
        self.max_bytes = max_bytes
        self._objects: dict[str, bytes] = {}
        self._lock = asyncio.Lock()
        self._connected = False

    async def connect(self) -> None:
        self._connected = True

    async def close(self) -> None:
        self._connected = False

    async def put(self, upload: Upload) -> str:
        if upload.content_type not in ALLOWED_IMAGE_TYPES:
            raise MediaUploadError(f"Unsupported content type: {upload.content_type}")
        if len(upload.data) > self.max_bytes:
            raise MediaUploadError("Upload exceeds maximum size")

        key = object_key(self.prefix, upload)
        async with self._lock:
            self._objects[key] = upload.data

        url = f"{self.base_url}/{key}"
        logger.debug("Stored object", extra={"key": key, "size": len(upload.data)})
        return url

    # Testing helpers

    def get(self, url: str) -> bytes | None:
        """Return the stored bytes for a URL previously returned by put()."""
        key = url.removeprefix(f"{self.base_url}/")
        return self._objects.get(key)

    def object_count(self) -> int:
        return len(self._objects)
