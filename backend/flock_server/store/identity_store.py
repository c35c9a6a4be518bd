"""
Identity store - user records and their graph-adjacent fields.

Followers, following and bookmarks are not columns of the users table; they
are read back from the edge relation whenever a User is hydrated, so the
two projections of the follow relation can never disagree.

All methods take a connection and compose inside a caller's transaction.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable
from typing import Any

from ..models import AuthorProjection, EdgeType, User
from .edges import EdgeIndex, chunked

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = ("name", "bio", "profile_image_url", "banner_image_url")


class IdentityStore:
    """User records over the shared database.

    Example:
        >>> identity = IdentityStore()
        >>> with db.transaction() as conn:
        ...     identity.insert_user(conn, user, password_hash="...")
    """

    def __init__(self, edges: EdgeIndex | None = None) -> None:
        self.edges = edges or EdgeIndex()

    def insert_user(self, conn: sqlite3.Connection, user: User, password_hash: str) -> None:
        conn.execute(
            """
            INSERT INTO users (user_id, name, username, email, password_hash, bio,
                               profile_image_url, banner_image_url, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                user.user_id,
                user.name,
                user.username,
                user.email,
                password_hash,
                user.bio,
                user.profile_image_url,
                user.banner_image_url,
                user.created_at,
                user.updated_at,
            ),
        )
        logger.debug("Created user", extra={"user_id": user.user_id})

    def exists(self, conn: sqlite3.Connection, user_id: str) -> bool:
        cursor = conn.execute("SELECT 1 FROM users WHERE user_id = ?", (user_id,))
        return cursor.fetchone() is not None

    def email_or_username_taken(self, conn: sqlite3.Connection, email: str, username: str) -> bool:
        cursor = conn.execute(
            "SELECT 1 FROM users WHERE email = ? OR username = ?",
            (email, username),
        )
        return cursor.fetchone() is not None

    def get_user(self, conn: sqlite3.Connection, user_id: str) -> User | None:
        """Get a user with followers, following and bookmarks hydrated."""
        cursor = conn.execute("SELECT * FROM users WHERE user_id = ?", (user_id,))
        row = cursor.fetchone()
        if not row:
            return None
        return self._hydrate(conn, row)

    def find_credentials(
        self, conn: sqlite3.Connection, identifier: str
    ) -> tuple[str, str] | None:
        """Look up (user_id, password_hash) by email or username."""
        cursor = conn.execute(
            "SELECT user_id, password_hash FROM users WHERE email = ? OR username = ?",
            (identifier, identifier),
        )
        row = cursor.fetchone()
        if not row:
            return None
        return row["user_id"], row["password_hash"]

    def list_users_except(self, conn: sqlite3.Connection, user_id: str) -> list[User]:
        cursor = conn.execute(
            "SELECT * FROM users WHERE user_id <> ? ORDER BY created_at DESC, rowid DESC",
            (user_id,),
        )
        return [self._hydrate(conn, row) for row in cursor.fetchall()]

    def update_profile(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        changes: dict[str, Any],
        updated_at: int,
    ) -> bool:
        """Update only the given profile columns.

        Returns:
            True if the user exists
        """
        unknown = set(changes) - set(PROFILE_COLUMNS)
        if unknown:
            raise ValueError(f"Not a profile column: {sorted(unknown)}")

        assignments = ", ".join(f"{column} = ?" for column in changes)
        params = [*changes.values(), updated_at, user_id]
        sql = (
            f"UPDATE users SET {assignments}, updated_at = ? WHERE user_id = ?"
            if assignments
            else "UPDATE users SET updated_at = ? WHERE user_id = ?"
        )
        cursor = conn.execute(sql, params)
        return cursor.rowcount > 0

    def touch(self, conn: sqlite3.Connection, user_ids: Iterable[str], updated_at: int) -> None:
        """Advance updated_at on each given user."""
        conn.executemany(
            "UPDATE users SET updated_at = ? WHERE user_id = ?",
            [(updated_at, user_id) for user_id in user_ids],
        )

    def delete_user(self, conn: sqlite3.Connection, user_id: str) -> bool:
        cursor = conn.execute("DELETE FROM users WHERE user_id = ?", (user_id,))
        return cursor.rowcount > 0

    def projections(
        self, conn: sqlite3.Connection, user_ids: Iterable[str]
    ) -> dict[str, AuthorProjection]:
        """Resolve display attributes for each id.

        Ids with no matching user map to an all-None projection.
        """
        ids = list(dict.fromkeys(user_ids))
        result = {user_id: AuthorProjection.missing(user_id) for user_id in ids}
        for chunk in chunked(ids):
            placeholders = ",".join("?" for _ in chunk)
            cursor = conn.execute(
                f"""
                SELECT user_id, name, username, profile_image_url FROM users
                WHERE user_id IN ({placeholders})
                """,
                chunk,
            )
            for row in cursor.fetchall():
                result[row["user_id"]] = AuthorProjection(
                    user_id=row["user_id"],
                    display_name=row["name"],
                    handle=row["username"],
                    avatar_url=row["profile_image_url"],
                )
        return result

    def _hydrate(self, conn: sqlite3.Connection, row: sqlite3.Row) -> User:
        user_id = row["user_id"]
        return User(
            user_id=user_id,
            name=row["name"],
            username=row["username"],
            email=row["email"],
            bio=row["bio"],
            profile_image_url=row["profile_image_url"],
            banner_image_url=row["banner_image_url"],
            followers=self.edges.sources(conn, EdgeType.FOLLOWS, user_id),
            following=set(self.edges.targets(conn, EdgeType.FOLLOWS, user_id)),
            bookmarks=self.edges.targets(conn, EdgeType.BOOKMARKS, user_id),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
