"""
Configuration management for the Flock server.

All configuration is done via environment variables - no config files inside containers.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Production deployments MUST set an explicit TOKEN_SECRET
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Deprecate settings by logging warnings but continuing to support them
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)

DEV_TOKEN_SECRET = "flock-dev-secret-change-me-before-deploying"


class MediaBackend(Enum):
    """Supported object storage backends for uploaded images."""

    S3 = "s3"
    MEMORY = "memory"


@dataclass(frozen=True)
class StorageConfig:
    """Local storage configuration.

    Attributes:
        data_dir: Directory for the SQLite database
        db_filename: Database file name inside data_dir
        wal_mode: SQLite WAL mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
        cache_size_pages: SQLite cache size in pages (negative = KB)
    """

    data_dir: str = "./data"
    db_filename: str = "flock.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000
    cache_size_pages: int = -64000  # 64MB

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            data_dir=os.getenv("DATA_DIR", "./data"),
            db_filename=os.getenv("DB_FILENAME", "flock.db"),
            wal_mode=os.getenv("SQLITE_WAL_MODE", "true").lower() == "true",
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
            cache_size_pages=int(os.getenv("SQLITE_CACHE_SIZE", "-64000")),
        )


@dataclass(frozen=True)
class AuthConfig:
    """Credential and password hashing configuration.

    Attributes:
        token_secret: HMAC secret used to sign access tokens
        token_ttl_seconds: Lifetime of an issued token
        token_algorithm: JWT signing algorithm
        password_hash_method: werkzeug hashing method
    """

    token_secret: str = DEV_TOKEN_SECRET
    token_ttl_seconds: int = 24 * 60 * 60  # 1 day
    token_algorithm: str = "HS256"
    password_hash_method: str = "scrypt"

    @classmethod
    def from_env(cls) -> AuthConfig:
        """Load configuration from environment variables."""
        return cls(
            token_secret=os.getenv("TOKEN_SECRET", DEV_TOKEN_SECRET),
            token_ttl_seconds=int(os.getenv("TOKEN_TTL_SECONDS", str(24 * 60 * 60))),
            token_algorithm=os.getenv("TOKEN_ALGORITHM", "HS256"),
            password_hash_method=os.getenv("PASSWORD_HASH_METHOD", "scrypt"),
        )


@dataclass(frozen=True)
class S3Config:
    """S3 configuration for uploaded images.

    Attributes:
        bucket: S3 bucket name
        region: AWS region
        endpoint_url: Custom endpoint URL (for MinIO)
        public_url: Base URL objects are served from (defaults to virtual-host style)
        prefix: Key prefix for uploaded objects
        access_key_id: AWS access key ID (optional, uses AWS credential chain)
        secret_access_key: AWS secret access key (optional)
    """

    bucket: str = "flock-media"
    region: str = "us-east-1"
    endpoint_url: str | None = None
    public_url: str | None = None
    prefix: str = "uploads"
    access_key_id: str | None = None
    secret_access_key: str | None = None

    @classmethod
    def from_env(cls) -> S3Config:
        """Load configuration from environment variables."""
        return cls(
            bucket=os.getenv("S3_BUCKET", "flock-media"),
            region=os.getenv("S3_REGION", os.getenv("AWS_REGION", "us-east-1")),
            endpoint_url=os.getenv("S3_ENDPOINT"),
            public_url=os.getenv("S3_PUBLIC_URL"),
            prefix=os.getenv("S3_PREFIX", "uploads"),
            access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        )


@dataclass(frozen=True)
class MediaConfig:
    """Object storage configuration.

    Attributes:
        backend: Which object storage backend to use
        s3: S3 settings (if backend is S3)
    """

    backend: MediaBackend = MediaBackend.MEMORY
    s3: S3Config = field(default_factory=S3Config)

    @classmethod
    def from_env(cls) -> MediaConfig:
        """Load configuration from environment variables."""
        backend_str = os.getenv("MEDIA_BACKEND", "memory").lower()
        try:
            backend = MediaBackend(backend_str)
        except ValueError:
            raise ValueError(f"Invalid MEDIA_BACKEND '{backend_str}'. Must be one of: s3, memory")
        return cls(backend=backend, s3=S3Config.from_env())


@dataclass(frozen=True)
class RequestConfig:
    """Per-request deadline and retry configuration.

    Attributes:
        deadline_ms: Time budget for one multi-step operation
        max_retries: Maximum retries for retryable failures
        retry_delay_ms: Delay between retries
    """

    deadline_ms: int = 5000
    max_retries: int = 3
    retry_delay_ms: int = 50

    @classmethod
    def from_env(cls) -> RequestConfig:
        """Load configuration from environment variables."""
        return cls(
            deadline_ms=int(os.getenv("REQUEST_DEADLINE_MS", "5000")),
            max_retries=int(os.getenv("REQUEST_MAX_RETRIES", "3")),
            retry_delay_ms=int(os.getenv("REQUEST_RETRY_DELAY_MS", "50")),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class ServerConfig:
    """Complete server configuration.

    This aggregates all configuration sections and provides validation.
    HTTP binding lives in api.settings since it only concerns the transport.

    Attributes:
        environment: Deployment environment (development, production)
        storage: Local storage configuration
        auth: Credential configuration
        media: Object storage configuration
        request: Deadline and retry configuration
        observability: Logging configuration
    """

    environment: str = "development"
    storage: StorageConfig = field(default_factory=StorageConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    media: MediaConfig = field(default_factory=MediaConfig)
    request: RequestConfig = field(default_factory=RequestConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ServerConfig with all sections populated from environment.

        Raises:
            ValueError: If required configuration is missing or invalid.
        """
        config = cls(
            environment=os.getenv("FLOCK_ENV", "development").lower(),
            storage=StorageConfig.from_env(),
            auth=AuthConfig.from_env(),
            media=MediaConfig.from_env(),
            request=RequestConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.environment == "production" and self.auth.token_secret == DEV_TOKEN_SECRET:
            raise ValueError("TOKEN_SECRET is required when FLOCK_ENV=production")

        if not self.auth.token_secret:
            raise ValueError("TOKEN_SECRET must not be empty")

        if self.media.backend == MediaBackend.S3 and not self.media.s3.bucket:
            raise ValueError("S3_BUCKET is required when MEDIA_BACKEND=s3")

        if self.request.deadline_ms <= 0:
            raise ValueError("REQUEST_DEADLINE_MS must be positive")

        if not os.path.exists(self.storage.data_dir):
            logger.warning(
                f"Data directory does not exist: {self.storage.data_dir}. "
                "It will be created on startup."
            )

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Server configuration loaded",
            extra={
                "environment": self.environment,
                "data_dir": self.storage.data_dir,
                "db_filename": self.storage.db_filename,
                "media_backend": self.media.backend.value,
                "s3_bucket": self.media.s3.bucket
                if self.media.backend == MediaBackend.S3
                else None,
                "token_ttl_seconds": self.auth.token_ttl_seconds,
                "deadline_ms": self.request.deadline_ms,
                "log_level": self.observability.log_level,
            },
        )
