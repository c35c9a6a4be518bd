"""
Cascade deletion coordinator.

Removes an account together with every reference to it, as a single
transaction:

1. Delete every post authored by the account, with every like, retweet
   and bookmark edge pointing at those posts and every notification
   about them
2. Delete every notification where the account is sender or recipient
3. Remove the account's follow edges in both directions, advancing
   updated_at on each user whose followers or following set shrank
4. Remove the account's likes, retweets and bookmarks on surviving posts
5. Revoke the account's credentials
6. Delete the user record

Either all of it commits or none of it does; an expired deadline rolls
the whole cascade back.

Comments the account left on other users' posts are kept; their author
projection resolves to null fields.

How to change safely:
    - Any new reference type to users or posts needs a step here and a
      check in tools.repair
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from ..auth import RevocationList
from ..errors import AuthorizationError, NotFoundError
from ..models import EdgeType
from ..store import (
    ContentStore,
    Database,
    Deadline,
    EdgeIndex,
    IdentityStore,
    NotificationStore,
    now_ms,
)
from ..tools.repair import IntegrityChecker, RepairReport

logger = logging.getLogger(__name__)


@dataclass
class CascadeReport:
    """What a completed account deletion removed.

    Attributes:
        user_id: The deleted account
        username: Its handle at deletion time
        posts_deleted: Posts authored by the account
        notifications_deleted: Notifications about its posts or involving it
        edges_deleted: Membership edges removed
        users_touched: Other users whose follow sets changed
    """

    user_id: str
    username: str
    posts_deleted: int = 0
    notifications_deleted: int = 0
    edges_deleted: int = 0
    users_touched: int = 0


class CascadeDeletionCoordinator:
    """Delete an account and all references to it atomically."""

    def __init__(
        self,
        db: Database,
        identity: IdentityStore,
        content: ContentStore,
        notifications: NotificationStore,
        revocations: RevocationList | None = None,
        edges: EdgeIndex | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.db = db
        self.identity = identity
        self.content = content
        self.notifications = notifications
        self.revocations = revocations or RevocationList()
        self.edges = edges or identity.edges
        self.clock = clock

    async def delete_account(
        self, actor_id: str, target_id: str, deadline: Deadline | None = None
    ) -> CascadeReport:
        """Delete ``target_id`` on behalf of ``actor_id``.

        Raises:
            AuthorizationError: Unless actor and target are the same user
            NotFoundError: If the account does not exist
        """
        if actor_id != target_id:
            raise AuthorizationError(
                "Unauthorized. You can only delete your own account.",
                actor=actor_id,
                resource_id=target_id,
            )

        with self.db.transaction(deadline) as conn:
            user = self.identity.get_user(conn, target_id)
            if user is None:
                raise NotFoundError("User not found.", "user", target_id)

            report = CascadeReport(user_id=target_id, username=user.username)
            timestamp = self.clock()

            for post_id in self.content.post_ids_by_author(conn, target_id):
                report.edges_deleted += self.edges.remove_all_to(conn, post_id)
                report.notifications_deleted += self.notifications.delete_for_post(
                    conn, post_id
                )
                self.content.delete_post(conn, post_id)
                report.posts_deleted += 1

            report.notifications_deleted += self.notifications.delete_involving(
                conn, target_id
            )

            neighbours = (user.followers | user.following) - {target_id}
            report.edges_deleted += self.edges.remove_all_from(conn, target_id)
            report.edges_deleted += self.edges.remove_all_to(conn, target_id)
            self.identity.touch(conn, neighbours, timestamp)
            report.users_touched = len(neighbours)

            self.revocations.revoke(conn, target_id, timestamp)
            self.identity.delete_user(conn, target_id)

        logger.info(
            "Deleted account",
            extra={
                "user_id": target_id,
                "posts_deleted": report.posts_deleted,
                "notifications_deleted": report.notifications_deleted,
                "edges_deleted": report.edges_deleted,
            },
        )
        return report

    async def reconcile(
        self, dry_run: bool = False, deadline: Deadline | None = None
    ) -> RepairReport:
        """Run the integrity repair pass over the whole database."""
        return await IntegrityChecker(self.db).run(dry_run=dry_run, deadline=deadline)

    def references_to(self, conn, user_id: str) -> int:
        """Count stored references to ``user_id`` across all collections."""
        edge_refs = conn.execute(
            "SELECT COUNT(*) FROM edges WHERE from_id = ? OR (edge_type = ? AND to_id = ?)",
            (user_id, EdgeType.FOLLOWS.value, user_id),
        ).fetchone()[0]
        notification_refs = conn.execute(
            "SELECT COUNT(*) FROM notifications WHERE from_user = ? OR to_user = ?",
            (user_id, user_id),
        ).fetchone()[0]
        post_refs = conn.execute(
            "SELECT COUNT(*) FROM posts WHERE author_id = ?", (user_id,)
        ).fetchone()[0]
        return edge_refs + notification_refs + post_refs
