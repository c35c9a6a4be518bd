"""
Object storage module for Flock.

Uploaded images are stored outside the database; only the returned URL
is persisted on user and post records.

Backends:
- S3ObjectStorage: aiobotocore client against S3 or MinIO
- InMemoryObjectStorage: dict-backed, for tests and local development
"""

from .base import (
    MediaError,
    MediaUploadError,
    ObjectStorage,
    Upload,
    create_object_storage,
)
from .memory import InMemoryObjectStorage

__all__ = [
    "InMemoryObjectStorage",
    "MediaError",
    "MediaUploadError",
    "ObjectStorage",
    "Upload",
    "create_object_storage",
]
