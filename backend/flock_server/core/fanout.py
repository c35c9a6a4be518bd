"""
Notification fan-out.

Turns follow, like and comment events into notification records and serves
the recipient-side views (list-and-mark-read, unread count, clear).

Invariants:
    - An event whose actor is also its owner never produces a notification
    - dispatch() runs inside the caller's transaction; the notification
      commits with the mutation that caused it
    - list_and_mark_read() reads and flips in one transaction and returns
      the state as it was before the flip
    - clear() only removes notifications addressed to the user

How to change safely:
    - New event kinds need a NotificationType and a CHECK constraint update
    - Keep mark-read monotonic (false -> true only)
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from collections.abc import Callable

from ..models import Notification, NotificationView
from ..store import Database, Deadline, IdentityStore, NotificationStore, now_ms
from .events import DomainEvent
from .projection import Projector

logger = logging.getLogger(__name__)


class NotificationFanout:
    """Creates and serves per-user notifications.

    Example:
        >>> fanout = NotificationFanout(db, NotificationStore(), IdentityStore())
        >>> with db.transaction() as conn:
        ...     fanout.dispatch(conn, LikeEvent("bob", "alice", "p1", now_ms()))
        >>> await fanout.unread_count("alice")
        1
    """

    def __init__(
        self,
        db: Database,
        notifications: NotificationStore,
        identity: IdentityStore,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.db = db
        self.notifications = notifications
        self.identity = identity
        self.projector = Projector(identity)
        self.clock = clock

    def dispatch(self, conn: sqlite3.Connection, event: DomainEvent) -> Notification | None:
        """Record the notification for an event.

        Returns:
            The created notification, or None if the event was self-triggered
        """
        if event.actor == event.owner:
            logger.debug(
                "Suppressed self notification",
                extra={"type": event.notification_type.value, "user_id": event.actor},
            )
            return None

        notification = Notification(
            notification_id=uuid.uuid4().hex,
            type=event.notification_type,
            from_user=event.actor,
            to_user=event.owner,
            post_id=event.post_id,
            is_read=False,
            created_at=event.created_at,
        )
        self.notifications.insert(conn, notification)
        return notification

    async def list_notifications(
        self, user_id: str, deadline: Deadline | None = None
    ) -> list[NotificationView]:
        """All notifications addressed to the user, newest first, no side effect."""
        with self.db.snapshot(deadline) as conn:
            items = self.notifications.list_for(conn, user_id)
            return self.projector.notification_views(conn, items)

    async def mark_all_read(self, user_id: str, deadline: Deadline | None = None) -> int:
        with self.db.transaction(deadline) as conn:
            return self.notifications.mark_all_read(conn, user_id)

    async def list_and_mark_read(
        self, user_id: str, deadline: Deadline | None = None
    ) -> list[NotificationView]:
        """Return the user's notifications and flip every unread one to read.

        The returned views carry the read state from before the flip, so the
        caller can tell which items were newly read.
        """
        with self.db.transaction(deadline) as conn:
            items = self.notifications.list_for(conn, user_id)
            views = self.projector.notification_views(conn, items)
            flipped = self.notifications.mark_all_read(conn, user_id)

        logger.debug(
            "Marked notifications read",
            extra={"user_id": user_id, "count": flipped},
        )
        return views

    async def unread_count(self, user_id: str, deadline: Deadline | None = None) -> int:
        with self.db.snapshot(deadline) as conn:
            return self.notifications.unread_count(conn, user_id)

    async def clear(self, user_id: str, deadline: Deadline | None = None) -> int:
        """Delete every notification addressed to the user.

        Returns:
            Number of notifications deleted
        """
        with self.db.transaction(deadline) as conn:
            deleted = self.notifications.delete_for_recipient(conn, user_id)

        logger.debug("Cleared notifications", extra={"user_id": user_id, "count": deleted})
        return deleted
