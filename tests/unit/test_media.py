"""
Unit tests for object storage backends.

Tests cover:
- In-memory put/get and upload validation
- Upload extension derivation
- Backend selection from configuration
- S3 public URL construction (no network)
"""

import pytest

from backend.flock_server.config import MediaBackend, MediaConfig, S3Config
from backend.flock_server.media import (
    InMemoryObjectStorage,
    MediaError,
    MediaUploadError,
    Upload,
    create_object_storage,
)
from backend.flock_server.media.s3 import S3ObjectStorage


class TestInMemoryObjectStorage:
    """Tests for InMemoryObjectStorage."""

    @pytest.mark.asyncio
    async def test_put_returns_unique_urls(self):
        """Each upload gets its own key, even with the same file name."""
        storage = InMemoryObjectStorage()
        await storage.connect()

        first = await storage.put(Upload(b"one", "me.png", "image/png"))
        second = await storage.put(Upload(b"two", "me.png", "image/png"))

        assert first != second
        assert first.startswith("memory://flock-media/uploads/")
        assert first.endswith(".png")
        assert storage.get(first) == b"one"
        assert storage.get(second) == b"two"
        assert storage.object_count() == 2

    @pytest.mark.asyncio
    async def test_rejects_non_image(self):
        """Only image content types are accepted."""
        storage = InMemoryObjectStorage()

        with pytest.raises(MediaUploadError, match="Unsupported content type"):
            await storage.put(Upload(b"#!/bin/sh", "run.sh", "text/x-shellscript"))

        assert storage.object_count() == 0

    @pytest.mark.asyncio
    async def test_rejects_oversize(self):
        """Uploads above max_bytes are rejected."""
        storage = InMemoryObjectStorage(max_bytes=4)

        with pytest.raises(MediaUploadError, match="maximum size"):
            await storage.put(Upload(b"12345", "big.jpg", "image/jpeg"))

    def test_unknown_url(self):
        assert InMemoryObjectStorage().get("memory://flock-media/uploads/nope.png") is None


class TestUpload:
    """Tests for Upload."""

    def test_extension_from_filename(self):
        assert Upload(b"", "Photo.JPG", "image/jpeg").extension == ".jpg"

    def test_extension_from_content_type(self):
        """Without a file extension the MIME type decides."""
        assert Upload(b"", "blob", "image/png").extension == ".png"


class TestBackendSelection:
    """Tests for create_object_storage."""

    def test_memory_backend(self):
        storage = create_object_storage(MediaConfig())

        assert isinstance(storage, InMemoryObjectStorage)

    def test_s3_backend(self):
        """The S3 backend is built but not connected."""
        storage = create_object_storage(
            MediaConfig(backend=MediaBackend.S3, s3=S3Config(bucket="pics"))
        )

        assert isinstance(storage, S3ObjectStorage)
        assert storage.config.bucket == "pics"


class TestS3ObjectStorage:
    """Tests for S3ObjectStorage that need no network."""

    def test_virtual_host_url(self):
        storage = S3ObjectStorage(S3Config(bucket="pics", region="eu-west-1"))

        assert storage.base_url == "https://pics.s3.eu-west-1.amazonaws.com"

    def test_endpoint_url(self):
        """Custom endpoints (MinIO) use path-style URLs."""
        storage = S3ObjectStorage(S3Config(bucket="pics", endpoint_url="http://minio:9000/"))

        assert storage.base_url == "http://minio:9000/pics"

    def test_public_url_wins(self):
        storage = S3ObjectStorage(
            S3Config(
                bucket="pics",
                endpoint_url="http://minio:9000",
                public_url="https://cdn.example.com/",
            )
        )

        assert storage.base_url == "https://cdn.example.com"

    @pytest.mark.asyncio
    async def test_put_requires_connect(self):
        """Writing before connect() is a storage error."""
        storage = S3ObjectStorage(S3Config())

        with pytest.raises(MediaError, match="not connected"):
            await storage.put(Upload(b"png", "a.png", "image/png"))
