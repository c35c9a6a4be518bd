"""
Engagement ledger - likes, retweets, bookmarks and comments.

Every toggle is a conditional edge write against the current stored
membership (INSERT OR IGNORE / DELETE under the write lock), so two
concurrent toggles of the same membership serialize instead of overwriting
each other, and sibling fields of the post are never rewritten.

Invariants:
    - A like emits a LikeEvent only on the absent -> present transition
    - Likes and retweets advance the post's updated_at in both directions
    - Retweets never notify
    - Bookmarks touch the bookmarking user, never the post
    - Comments are append-only; content is stored as given after a
      non-blank check

How to change safely:
    - Never retry a toggle automatically; a retry would flip it back
    - Keep event emission inside the same transaction as the edge write
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from ..errors import NotFoundError, ValidationError
from ..models import Comment, EdgeType, Post, PostView, User
from ..store import ContentStore, Database, Deadline, EdgeIndex, IdentityStore, now_ms
from .events import CommentEvent, LikeEvent
from .fanout import NotificationFanout
from .projection import Projector

logger = logging.getLogger(__name__)


@dataclass
class ToggleResult:
    """Outcome of a like, retweet or bookmark toggle.

    Attributes:
        active: Membership after the toggle
        post: Projected post (likes and retweets)
        user: The acting user (bookmarks)
        event: LikeEvent when a like was added
    """

    active: bool
    post: PostView | None = None
    user: User | None = None
    event: LikeEvent | None = None


@dataclass
class CommentResult:
    post: PostView
    comment: Comment
    event: CommentEvent


class EngagementLedger:
    """Membership toggles and comment appends on posts."""

    def __init__(
        self,
        db: Database,
        content: ContentStore,
        identity: IdentityStore,
        fanout: NotificationFanout,
        edges: EdgeIndex | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.db = db
        self.content = content
        self.identity = identity
        self.fanout = fanout
        self.edges = edges or content.edges
        self.projector = Projector(identity)
        self.clock = clock

    async def toggle_like(
        self, actor_id: str, post_id: str, deadline: Deadline | None = None
    ) -> ToggleResult:
        """Like the post if not yet liked by the actor, otherwise unlike it.

        Raises:
            NotFoundError: If the actor or the post does not exist
        """
        with self.db.transaction(deadline) as conn:
            self._require_actor(conn, actor_id)
            owner_id = self._require_author(conn, post_id)
            timestamp = self.clock()

            event = None
            if self.edges.remove(conn, EdgeType.LIKES, actor_id, post_id):
                active = False
            else:
                self.edges.add(conn, EdgeType.LIKES, actor_id, post_id, timestamp)
                active = True
                event = LikeEvent(
                    actor=actor_id, owner=owner_id, post_id=post_id, created_at=timestamp
                )
                self.fanout.dispatch(conn, event)

            self.content.touch(conn, post_id, timestamp)
            view = self._view(conn, post_id)

        logger.debug(
            "Toggled like",
            extra={"actor": actor_id, "post_id": post_id, "active": active},
        )
        return ToggleResult(active=active, post=view, event=event)

    async def toggle_retweet(
        self, actor_id: str, post_id: str, deadline: Deadline | None = None
    ) -> ToggleResult:
        """Retweet or un-retweet; either transition resurfaces the post."""
        with self.db.transaction(deadline) as conn:
            self._require_actor(conn, actor_id)
            self._require_author(conn, post_id)
            timestamp = self.clock()

            if self.edges.remove(conn, EdgeType.RETWEETS, actor_id, post_id):
                active = False
            else:
                self.edges.add(conn, EdgeType.RETWEETS, actor_id, post_id, timestamp)
                active = True

            self.content.touch(conn, post_id, timestamp)
            view = self._view(conn, post_id)

        logger.debug(
            "Toggled retweet",
            extra={"actor": actor_id, "post_id": post_id, "active": active},
        )
        return ToggleResult(active=active, post=view)

    async def toggle_bookmark(
        self, actor_id: str, post_id: str, deadline: Deadline | None = None
    ) -> ToggleResult:
        """Add or remove the post from the actor's bookmarks.

        Re-adding a bookmark moves it to the end of the insertion order, so
        it lists first again.

        Raises:
            NotFoundError: If the actor or the post does not exist
        """
        with self.db.transaction(deadline) as conn:
            self._require_actor(conn, actor_id)
            self._require_author(conn, post_id)
            timestamp = self.clock()

            if self.edges.remove(conn, EdgeType.BOOKMARKS, actor_id, post_id):
                active = False
            else:
                self.edges.add(conn, EdgeType.BOOKMARKS, actor_id, post_id, timestamp)
                active = True

            self.identity.touch(conn, (actor_id,), timestamp)
            user = self.identity.get_user(conn, actor_id)

        logger.debug(
            "Toggled bookmark",
            extra={"actor": actor_id, "post_id": post_id, "active": active},
        )
        return ToggleResult(active=active, user=user)

    async def add_comment(
        self, actor_id: str, post_id: str, content: str, deadline: Deadline | None = None
    ) -> CommentResult:
        """Append a comment to the post's thread.

        Raises:
            ValidationError: If the content is empty or whitespace
            NotFoundError: If the actor or the post does not exist
        """
        if content is None or not content.strip():
            raise ValidationError("Comment cannot be empty.", field_name="comment")

        with self.db.transaction(deadline) as conn:
            self._require_actor(conn, actor_id)
            owner_id = self._require_author(conn, post_id)
            timestamp = self.clock()

            comment = Comment(
                comment_id=uuid.uuid4().hex,
                author_id=actor_id,
                content=content,
                created_at=timestamp,
            )
            self.content.append_comment(conn, post_id, comment)

            event = CommentEvent(
                actor=actor_id, owner=owner_id, post_id=post_id, created_at=timestamp
            )
            self.fanout.dispatch(conn, event)
            view = self._view(conn, post_id)

        logger.debug(
            "Added comment",
            extra={"actor": actor_id, "post_id": post_id, "comment_id": comment.comment_id},
        )
        return CommentResult(post=view, comment=comment, event=event)

    def _require_actor(self, conn: sqlite3.Connection, actor_id: str) -> None:
        # The actor may have been deleted after authentication
        if not self.identity.exists(conn, actor_id):
            raise NotFoundError("User not found.", "user", actor_id)

    def _require_author(self, conn: sqlite3.Connection, post_id: str) -> str:
        owner_id = self.content.author_of(conn, post_id)
        if owner_id is None:
            raise NotFoundError("Tweet not found.", "post", post_id)
        return owner_id

    def _view(self, conn: sqlite3.Connection, post_id: str) -> PostView:
        post: Post = self.content.get_post(conn, post_id)
        return self.projector.view(conn, post)
