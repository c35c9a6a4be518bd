"""
Base protocol and types for object storage.

Uploaded profile, banner and post images are handed to an ObjectStorage
backend which returns a stable URL. The core persists only that URL.

Invariants:
    - put() returns a URL that stays valid for the object's lifetime
    - Object keys are unique per upload, so re-uploads never overwrite

How to change safely:
    - Protocol changes require updating all implementations
    - Add new methods as optional with default implementations
"""

from __future__ import annotations

import logging
import mimetypes
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..config import MediaConfig

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = frozenset(
    {"image/jpeg", "image/png", "image/gif", "image/webp"}
)


class MediaError(Exception):
    """Base exception for object storage operations."""

    pass


class MediaUploadError(MediaError):
    """The upload was rejected (unsupported type or too large)."""

    pass


@dataclass(frozen=True)
class Upload:
    """A binary upload received at the transport boundary.

    Attributes:
        data: Raw file content
        filename: Client supplied file name
        content_type: MIME type reported by the client
    """

    data: bytes
    filename: str
    content_type: str = "application/octet-stream"

    @property
    def extension(self) -> str:
        if "." in self.filename:
            return "." + self.filename.rsplit(".", 1)[1].lower()
        return mimetypes.guess_extension(self.content_type) or ""


def object_key(prefix: str, upload: Upload) -> str:
    """Build a unique key for an upload under ``prefix``."""
    key = f"{uuid.uuid4().hex}{upload.extension}"
    return f"{prefix.strip('/')}/{key}" if prefix else key


@runtime_checkable
class ObjectStorage(Protocol):
    """Protocol for object storage backends.

    Example:
        >>> storage = create_object_storage(config.media)
        >>> await storage.connect()
        >>> url = await storage.put(Upload(b"...", "me.png", "image/png"))
    """

    async def connect(self) -> None:
        """Acquire backend resources."""
        ...

    async def close(self) -> None:
        """Release backend resources."""
        ...

    async def put(self, upload: Upload) -> str:
        """Store an upload.

        Returns:
            Stable URL of the stored object

        Raises:
            MediaUploadError: If the upload was rejected
            MediaError: If the backend failed to store it
        """
        ...


def create_object_storage(config: MediaConfig) -> ObjectStorage:
    """Create the configured object storage backend.

    Args:
        config: Media configuration

    Returns:
        ObjectStorage implementation
    """
    from ..config import MediaBackend

    if config.backend == MediaBackend.S3:
        from .s3 import S3ObjectStorage

        return S3ObjectStorage(config.s3)

    from .memory import InMemoryObjectStorage

    return InMemoryObjectStorage()
