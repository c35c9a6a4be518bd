"""
Typed membership edges.

Every set-valued field of the data model is a projection of one edge type:

    follows   (user -> user)   User.following / User.followers
    likes     (user -> post)   Post.likedBy
    retweets  (user -> post)   Post.retweetedBy
    bookmarks (user -> post)   User.bookmarks (insertion ordered)

Membership tests are primary-key lookups and uniqueness is enforced by the
table's primary key, so a set can never contain the same id twice.

Invariants:
    - add() and remove() are conditional: they report whether the stored
      membership actually changed, so callers can toggle without a blind
      overwrite of sibling data
    - Insertion order is the rowid order
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable

from ..models import EdgeType


class EdgeIndex:
    """Set operations over the edges table.

    All methods take a connection so they compose inside a caller's
    transaction.
    """

    def contains(
        self, conn: sqlite3.Connection, edge_type: EdgeType, from_id: str, to_id: str
    ) -> bool:
        cursor = conn.execute(
            "SELECT 1 FROM edges WHERE edge_type = ? AND from_id = ? AND to_id = ?",
            (edge_type.value, from_id, to_id),
        )
        return cursor.fetchone() is not None

    def add(
        self,
        conn: sqlite3.Connection,
        edge_type: EdgeType,
        from_id: str,
        to_id: str,
        created_at: int,
    ) -> bool:
        """Insert the edge if absent.

        Returns:
            True if the edge was inserted, False if it already existed
        """
        cursor = conn.execute(
            """
            INSERT OR IGNORE INTO edges (edge_type, from_id, to_id, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (edge_type.value, from_id, to_id, created_at),
        )
        return cursor.rowcount > 0

    def remove(
        self, conn: sqlite3.Connection, edge_type: EdgeType, from_id: str, to_id: str
    ) -> bool:
        """Delete the edge if present.

        Returns:
            True if the edge was deleted, False if it did not exist
        """
        cursor = conn.execute(
            "DELETE FROM edges WHERE edge_type = ? AND from_id = ? AND to_id = ?",
            (edge_type.value, from_id, to_id),
        )
        return cursor.rowcount > 0

    def targets(self, conn: sqlite3.Connection, edge_type: EdgeType, from_id: str) -> list[str]:
        """Ids reachable from ``from_id``, oldest first."""
        cursor = conn.execute(
            "SELECT to_id FROM edges WHERE edge_type = ? AND from_id = ? ORDER BY rowid",
            (edge_type.value, from_id),
        )
        return [row[0] for row in cursor.fetchall()]

    def sources(self, conn: sqlite3.Connection, edge_type: EdgeType, to_id: str) -> set[str]:
        """Ids that point at ``to_id``."""
        cursor = conn.execute(
            "SELECT from_id FROM edges WHERE edge_type = ? AND to_id = ?",
            (edge_type.value, to_id),
        )
        return {row[0] for row in cursor.fetchall()}

    def sources_by_target(
        self, conn: sqlite3.Connection, edge_type: EdgeType, to_ids: Iterable[str]
    ) -> dict[str, set[str]]:
        """Batch variant of sources() keyed by target id."""
        ids = list(dict.fromkeys(to_ids))
        result: dict[str, set[str]] = {to_id: set() for to_id in ids}
        for chunk in chunked(ids):
            placeholders = ",".join("?" for _ in chunk)
            cursor = conn.execute(
                f"""
                SELECT from_id, to_id FROM edges
                WHERE edge_type = ? AND to_id IN ({placeholders})
                """,
                (edge_type.value, *chunk),
            )
            for row in cursor.fetchall():
                result[row["to_id"]].add(row["from_id"])
        return result

    def remove_all_from(self, conn: sqlite3.Connection, from_id: str) -> int:
        """Delete every edge leaving ``from_id`` regardless of type."""
        cursor = conn.execute("DELETE FROM edges WHERE from_id = ?", (from_id,))
        return cursor.rowcount

    def remove_all_to(self, conn: sqlite3.Connection, to_id: str) -> int:
        """Delete every edge arriving at ``to_id`` regardless of type."""
        cursor = conn.execute("DELETE FROM edges WHERE to_id = ?", (to_id,))
        return cursor.rowcount


def chunked(ids: list[str], size: int = 500) -> Iterable[list[str]]:
    # SQLite caps bound parameters per statement
    for start in range(0, len(ids), size):
        yield ids[start : start + size]
