"""
Notification store - per-recipient notification records.

Notifications reference users and posts by id only; the sender projection
is resolved at read time by the fan-out service.

Invariants:
    - from_user <> to_user (enforced by a CHECK constraint as well)
    - is_read only ever flips from false to true
    - Listing for a recipient is newest first

Table schema: see store.database.
"""

from __future__ import annotations

import logging
import sqlite3

from ..models import Notification, NotificationType

logger = logging.getLogger(__name__)


class NotificationStore:
    """Notification records over the shared database."""

    def insert(self, conn: sqlite3.Connection, notification: Notification) -> None:
        conn.execute(
            """
            INSERT INTO notifications
            (notification_id, type, from_user, to_user, post_id, is_read, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                notification.notification_id,
                notification.type.value,
                notification.from_user,
                notification.to_user,
                notification.post_id,
                int(notification.is_read),
                notification.created_at,
            ),
        )
        logger.debug(
            "Created notification",
            extra={
                "notification_id": notification.notification_id,
                "type": notification.type.value,
                "to_user": notification.to_user,
            },
        )

    def list_for(self, conn: sqlite3.Connection, to_user: str) -> list[Notification]:
        cursor = conn.execute(
            """
            SELECT * FROM notifications
            WHERE to_user = ?
            ORDER BY created_at DESC, rowid DESC
            """,
            (to_user,),
        )
        return [self._row_to_notification(row) for row in cursor.fetchall()]

    def mark_all_read(self, conn: sqlite3.Connection, to_user: str) -> int:
        """Flip every unread notification of the recipient.

        Returns:
            Number of notifications that changed state
        """
        cursor = conn.execute(
            "UPDATE notifications SET is_read = 1 WHERE to_user = ? AND is_read = 0",
            (to_user,),
        )
        return cursor.rowcount

    def unread_count(self, conn: sqlite3.Connection, to_user: str) -> int:
        cursor = conn.execute(
            "SELECT COUNT(*) FROM notifications WHERE to_user = ? AND is_read = 0",
            (to_user,),
        )
        return cursor.fetchone()[0]

    def delete_for_recipient(self, conn: sqlite3.Connection, to_user: str) -> int:
        cursor = conn.execute("DELETE FROM notifications WHERE to_user = ?", (to_user,))
        return cursor.rowcount

    def delete_involving(self, conn: sqlite3.Connection, user_id: str) -> int:
        """Delete notifications where the user is either endpoint."""
        cursor = conn.execute(
            "DELETE FROM notifications WHERE from_user = ? OR to_user = ?",
            (user_id, user_id),
        )
        return cursor.rowcount

    def delete_for_post(self, conn: sqlite3.Connection, post_id: str) -> int:
        cursor = conn.execute("DELETE FROM notifications WHERE post_id = ?", (post_id,))
        return cursor.rowcount

    def _row_to_notification(self, row: sqlite3.Row) -> Notification:
        return Notification(
            notification_id=row["notification_id"],
            type=NotificationType(row["type"]),
            from_user=row["from_user"],
            to_user=row["to_user"],
            post_id=row["post_id"],
            is_read=bool(row["is_read"]),
            created_at=row["created_at"],
        )
