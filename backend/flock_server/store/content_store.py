"""
Content store - posts, their embedded comment thread and engagement sets.

Comments live in the post row as an ordered JSON array; they are appended
under the database write lock and never rewritten. likedBy and retweetedBy
are read from the edge relation when a post is hydrated.

All methods take a connection and compose inside a caller's transaction.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from enum import Enum
from typing import Any

from ..models import Comment, EdgeType, Post
from .edges import EdgeIndex

logger = logging.getLogger(__name__)


class PostOrder(Enum):
    """Sort keys used by the feed views. Ties fall back to insertion order."""

    CREATED_DESC = "created_at DESC, rowid DESC"
    UPDATED_DESC = "updated_at DESC, rowid DESC"


class ContentStore:
    """Post records over the shared database."""

    def __init__(self, edges: EdgeIndex | None = None) -> None:
        self.edges = edges or EdgeIndex()

    def insert_post(self, conn: sqlite3.Connection, post: Post) -> None:
        conn.execute(
            """
            INSERT INTO posts (post_id, author_id, description, image_url, is_edited,
                               comments_json, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                post.post_id,
                post.author_id,
                post.description,
                post.image_url,
                int(post.is_edited),
                json.dumps([c.to_record() for c in post.comments]),
                post.created_at,
                post.updated_at,
            ),
        )
        logger.debug(
            "Created post",
            extra={"post_id": post.post_id, "author_id": post.author_id},
        )

    def get_post(self, conn: sqlite3.Connection, post_id: str) -> Post | None:
        posts = self.select_posts(conn, "post_id = ?", (post_id,))
        return posts[0] if posts else None

    def author_of(self, conn: sqlite3.Connection, post_id: str) -> str | None:
        cursor = conn.execute("SELECT author_id FROM posts WHERE post_id = ?", (post_id,))
        row = cursor.fetchone()
        return row[0] if row else None

    def select_posts(
        self,
        conn: sqlite3.Connection,
        where: str | None = None,
        params: tuple[Any, ...] | list[Any] = (),
        order: PostOrder = PostOrder.CREATED_DESC,
    ) -> list[Post]:
        """Select and hydrate posts.

        Args:
            conn: Database connection
            where: Optional SQL predicate over the posts table
            params: Parameters bound to the predicate
            order: Sort key

        Returns:
            Hydrated posts in the requested order
        """
        query = "SELECT * FROM posts"
        if where:
            query += f" WHERE {where}"
        query += f" ORDER BY {order.value}"

        rows = conn.execute(query, params).fetchall()
        if not rows:
            return []

        post_ids = [row["post_id"] for row in rows]
        likes = self.edges.sources_by_target(conn, EdgeType.LIKES, post_ids)
        retweets = self.edges.sources_by_target(conn, EdgeType.RETWEETS, post_ids)

        return [
            Post(
                post_id=row["post_id"],
                author_id=row["author_id"],
                description=row["description"],
                image_url=row["image_url"],
                liked_by=likes[row["post_id"]],
                retweeted_by=retweets[row["post_id"]],
                is_edited=bool(row["is_edited"]),
                comments=[Comment.from_record(c) for c in json.loads(row["comments_json"])],
                created_at=row["created_at"],
                updated_at=row["updated_at"],
            )
            for row in rows
        ]

    def post_ids_by_author(self, conn: sqlite3.Connection, author_id: str) -> list[str]:
        cursor = conn.execute("SELECT post_id FROM posts WHERE author_id = ?", (author_id,))
        return [row[0] for row in cursor.fetchall()]

    def edit_description(
        self, conn: sqlite3.Connection, post_id: str, description: str, updated_at: int
    ) -> bool:
        cursor = conn.execute(
            """
            UPDATE posts SET description = ?, is_edited = 1, updated_at = ?
            WHERE post_id = ?
            """,
            (description, updated_at, post_id),
        )
        return cursor.rowcount > 0

    def touch(self, conn: sqlite3.Connection, post_id: str, updated_at: int) -> bool:
        """Advance updated_at after an engagement mutation."""
        cursor = conn.execute(
            "UPDATE posts SET updated_at = MAX(updated_at, ?) WHERE post_id = ?",
            (updated_at, post_id),
        )
        return cursor.rowcount > 0

    def append_comment(self, conn: sqlite3.Connection, post_id: str, comment: Comment) -> bool:
        """Append a comment to the post's thread and advance updated_at.

        Uses json_insert on the stored array so concurrent appends are
        applied against the current stored thread, never a stale copy.
        """
        cursor = conn.execute(
            """
            UPDATE posts
            SET comments_json = json_insert(comments_json, '$[#]', json(?)),
                updated_at = MAX(updated_at, ?)
            WHERE post_id = ?
            """,
            (json.dumps(comment.to_record()), comment.created_at, post_id),
        )
        return cursor.rowcount > 0

    def delete_post(self, conn: sqlite3.Connection, post_id: str) -> bool:
        cursor = conn.execute("DELETE FROM posts WHERE post_id = ?", (post_id,))
        return cursor.rowcount > 0
