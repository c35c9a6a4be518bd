"""
SQLite store handle for Flock.

This module owns the single SQLite database that stores:
- Users (identity records)
- Posts with their embedded, ordered comment list
- Notifications
- Typed membership edges (follows, likes, retweets, bookmarks)
- Revoked credentials

The handle is constructed once at startup, passed explicitly into every
component and closed at shutdown. Connections are opened per operation.

Invariants:
    - All multi-statement writes run inside BEGIN IMMEDIATE ... COMMIT
    - A transaction either commits completely or is rolled back
    - An expired deadline rolls back; it is never a partial success
    - Edge rows are unique per (edge_type, from_id, to_id)

How to change safely:
    - Schema migrations must be backward compatible
    - Use transaction() for every write that touches more than one row
    - Never write whole records blindly; update only the changed columns

Table schema:
    users:
        - user_id TEXT PRIMARY KEY
        - name, username (UNIQUE), email (UNIQUE), password_hash TEXT
        - bio, profile_image_url, banner_image_url TEXT
        - created_at, updated_at INTEGER (Unix ms)

    posts:
        - post_id TEXT PRIMARY KEY
        - author_id TEXT
        - description TEXT, image_url TEXT
        - is_edited INTEGER
        - comments_json TEXT (ordered JSON array)
        - created_at, updated_at INTEGER

    edges:
        - edge_type TEXT (follows, likes, retweets, bookmarks)
        - from_id TEXT, to_id TEXT
        - created_at INTEGER
        - PRIMARY KEY (edge_type, from_id, to_id)

    notifications:
        - notification_id TEXT PRIMARY KEY
        - type TEXT (like, comment, follow)
        - from_user, to_user TEXT (never equal)
        - post_id TEXT NULL
        - is_read INTEGER
        - created_at INTEGER

    revoked_credentials:
        - user_id TEXT PRIMARY KEY
        - revoked_at INTEGER
"""

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from ..config import StorageConfig
from ..errors import DeadlineExceededError, InternalError, StoreBusyError

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current wall-clock time in Unix milliseconds."""
    return int(time.time() * 1000)


class Deadline:
    """Time budget for one multi-step operation.

    Example:
        >>> deadline = Deadline.after(5000)
        >>> with db.transaction(deadline) as conn:
        ...     ...
    """

    def __init__(self, expires_at: float) -> None:
        self.expires_at = expires_at

    @classmethod
    def after(cls, budget_ms: int) -> Deadline:
        return cls(time.monotonic() + budget_ms / 1000.0)

    def remaining_ms(self) -> int:
        return max(0, int((self.expires_at - time.monotonic()) * 1000))

    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at

    def check(self, stage: str) -> None:
        """Raise DeadlineExceededError if the budget is spent."""
        if self.expired():
            raise DeadlineExceededError(f"Operation deadline exceeded ({stage})")


class Database:
    """Explicit handle over the Flock SQLite database.

    Thread safety:
        Each connection is created per-operation.
        SQLite serializes writers; BEGIN IMMEDIATE takes the write lock up
        front so read-check-write sequences cannot interleave.

    Example:
        >>> db = Database("/var/lib/flock/flock.db")
        >>> await db.initialize()
        >>> with db.transaction() as conn:
        ...     conn.execute("UPDATE posts SET ...")
        >>> await db.close()
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        path: str | Path,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
        cache_size_pages: int = -64000,
    ) -> None:
        """Initialize the handle.

        Args:
            path: SQLite database file
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
            cache_size_pages: SQLite cache size (negative = KB)
        """
        self.path = Path(path)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self.cache_size_pages = cache_size_pages
        self._initialized = False
        self._closed = False

    @classmethod
    def from_config(cls, config: StorageConfig) -> Database:
        return cls(
            Path(config.data_dir) / config.db_filename,
            wal_mode=config.wal_mode,
            busy_timeout_ms=config.busy_timeout_ms,
            cache_size_pages=config.cache_size_pages,
        )

    @property
    def is_open(self) -> bool:
        return self._initialized and not self._closed

    async def initialize(self) -> None:
        """Create the database file and schema if they don't exist."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._closed = False
        self._initialized = True
        with self.connect() as conn:
            self._create_schema(conn)
        logger.info("Initialized database", extra={"path": str(self.path)})

    async def close(self) -> None:
        """Close the handle. Further operations raise InternalError."""
        if self._closed:
            return
        self._closed = True
        logger.info("Closed database", extra={"path": str(self.path)})

    def _open(self, busy_timeout_ms: int) -> sqlite3.Connection:
        if not self._initialized or self._closed:
            raise InternalError("Database handle is not open")

        conn = sqlite3.connect(
            str(self.path),
            timeout=busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
        )
        conn.row_factory = sqlite3.Row
        conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms}")
        conn.execute(f"PRAGMA cache_size = {self.cache_size_pages}")
        if self.wal_mode:
            conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
        return conn

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Autocommit connection for single-statement reads and writes."""
        try:
            conn = self._open(self.busy_timeout_ms)
        except sqlite3.Error as e:
            raise _translate(e) from e
        try:
            yield conn
        except sqlite3.Error as e:
            raise _translate(e) from e
        finally:
            conn.close()

    @contextmanager
    def transaction(self, deadline: Deadline | None = None) -> Iterator[sqlite3.Connection]:
        """Run a block atomically under the database write lock.

        Args:
            deadline: Optional time budget; checked before BEGIN and before COMMIT

        Yields:
            SQLite connection inside an open transaction

        Raises:
            DeadlineExceededError: If the budget ran out (nothing applied)
            StoreBusyError: If the write lock could not be acquired
            InternalError: On any other SQLite failure
        """
        with self._begin("BEGIN IMMEDIATE", deadline) as conn:
            yield conn

    @contextmanager
    def snapshot(self, deadline: Deadline | None = None) -> Iterator[sqlite3.Connection]:
        """Read-only block that sees one consistent state across statements."""
        with self._begin("BEGIN DEFERRED", deadline) as conn:
            yield conn

    @contextmanager
    def _begin(self, begin_sql: str, deadline: Deadline | None) -> Iterator[sqlite3.Connection]:
        busy_timeout = self.busy_timeout_ms
        if deadline is not None:
            deadline.check("before begin")
            busy_timeout = max(1, min(busy_timeout, deadline.remaining_ms()))

        try:
            conn = self._open(busy_timeout)
        except sqlite3.Error as e:
            raise _translate(e) from e

        try:
            conn.execute(begin_sql)
            try:
                yield conn
                if deadline is not None:
                    deadline.check("before commit")
                conn.execute("COMMIT")
            except BaseException:
                conn.execute("ROLLBACK")
                raise
        except sqlite3.Error as e:
            raise _translate(e) from e
        finally:
            conn.close()

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create database schema."""
        conn.executescript("""
            -- Schema version tracking
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS users (
                user_id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                username TEXT NOT NULL UNIQUE,
                email TEXT NOT NULL UNIQUE,
                password_hash TEXT NOT NULL,
                bio TEXT NOT NULL DEFAULT '',
                profile_image_url TEXT NOT NULL DEFAULT '',
                banner_image_url TEXT NOT NULL DEFAULT '',
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS posts (
                post_id TEXT PRIMARY KEY,
                author_id TEXT NOT NULL,
                description TEXT NOT NULL,
                image_url TEXT NOT NULL DEFAULT '',
                is_edited INTEGER NOT NULL DEFAULT 0,
                comments_json TEXT NOT NULL DEFAULT '[]',
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_posts_author ON posts(author_id, created_at DESC);
            CREATE INDEX IF NOT EXISTS idx_posts_created ON posts(created_at DESC);
            CREATE INDEX IF NOT EXISTS idx_posts_updated ON posts(updated_at DESC);

            -- Typed membership relation; the primary key is the set uniqueness guarantee
            CREATE TABLE IF NOT EXISTS edges (
                edge_type TEXT NOT NULL,
                from_id TEXT NOT NULL,
                to_id TEXT NOT NULL,
                created_at INTEGER NOT NULL,
                PRIMARY KEY (edge_type, from_id, to_id),
                CHECK (NOT (edge_type = 'follows' AND from_id = to_id))
            );

            CREATE INDEX IF NOT EXISTS idx_edges_to ON edges(edge_type, to_id);
            CREATE INDEX IF NOT EXISTS idx_edges_from_any ON edges(from_id);
            CREATE INDEX IF NOT EXISTS idx_edges_to_any ON edges(to_id);

            CREATE TABLE IF NOT EXISTS notifications (
                notification_id TEXT PRIMARY KEY,
                type TEXT NOT NULL CHECK (type IN ('like', 'comment', 'follow')),
                from_user TEXT NOT NULL,
                to_user TEXT NOT NULL,
                post_id TEXT,
                is_read INTEGER NOT NULL DEFAULT 0,
                created_at INTEGER NOT NULL,
                CHECK (from_user <> to_user)
            );

            CREATE INDEX IF NOT EXISTS idx_notifications_to
                ON notifications(to_user, created_at DESC);
            CREATE INDEX IF NOT EXISTS idx_notifications_from ON notifications(from_user);
            CREATE INDEX IF NOT EXISTS idx_notifications_post ON notifications(post_id);

            CREATE TABLE IF NOT EXISTS revoked_credentials (
                user_id TEXT PRIMARY KEY,
                revoked_at INTEGER NOT NULL
            );

            -- Record schema version
            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES (1, strftime('%s', 'now') * 1000);
        """)


def _translate(error: sqlite3.Error) -> InternalError:
    """Map a raw SQLite error onto the Flock error taxonomy."""
    message = str(error).lower()
    if isinstance(error, sqlite3.OperationalError) and (
        "locked" in message or "busy" in message
    ):
        logger.warning("SQLite write lock unavailable", extra={"error": str(error)})
        return StoreBusyError()

    logger.error(f"SQLite error: {error}", exc_info=error)
    return InternalError()
