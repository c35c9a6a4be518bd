"""
Feed composer - read-only feed views.

Each view is one SQL predicate over the posts table plus a sort key, read
inside a single snapshot so the posts, their engagement sets and the
author projections all come from the same state.

    personal_feed(viewer)
        posts authored by anyone the viewer follows
        UNION posts retweeted by the viewer or by anyone the viewer follows
        sorted by updated_at DESC
        The viewer's own non-retweeted posts are not included.

    following_feed(viewer)
        posts authored by anyone the viewer follows
        sorted by created_at DESC (unaffected by retweets)

    author_feed(author)
        posts authored by one user, sorted by created_at DESC

    public_feed()
        every post, sorted by updated_at DESC

    bookmarks(user)
        the user's bookmarked posts, most recently bookmarked first;
        ids of posts that no longer exist are skipped

Invariants:
    - Nothing here writes
    - Every post and comment carries an author projection; a missing
      author yields null fields, never an error
"""

from __future__ import annotations

import logging

from ..errors import NotFoundError
from ..models import EdgeType, PostView
from ..store import ContentStore, Database, Deadline, IdentityStore, PostOrder
from ..store.edges import chunked
from .projection import Projector

logger = logging.getLogger(__name__)

_FOLLOWED = (
    f"SELECT to_id FROM edges WHERE edge_type = '{EdgeType.FOLLOWS.value}' AND from_id = ?"
)

_PERSONAL_PREDICATE = f"""
    author_id IN ({_FOLLOWED})
    OR post_id IN (
        SELECT to_id FROM edges
        WHERE edge_type = '{EdgeType.RETWEETS.value}'
          AND (from_id = ? OR from_id IN ({_FOLLOWED}))
    )
"""


class FeedComposer:
    """Compose the feed views from identity and content state."""

    def __init__(self, db: Database, content: ContentStore, identity: IdentityStore) -> None:
        self.db = db
        self.content = content
        self.identity = identity
        self.projector = Projector(identity)

    async def personal_feed(
        self, viewer_id: str, deadline: Deadline | None = None
    ) -> list[PostView]:
        """Followees' posts plus posts retweeted by the viewer or a followee.

        Raises:
            NotFoundError: If the viewer does not exist
        """
        with self.db.snapshot(deadline) as conn:
            self._require_user(conn, viewer_id)
            posts = self.content.select_posts(
                conn,
                _PERSONAL_PREDICATE,
                (viewer_id, viewer_id, viewer_id),
                order=PostOrder.UPDATED_DESC,
            )
            return self.projector.views(conn, posts)

    async def following_feed(
        self, viewer_id: str, deadline: Deadline | None = None
    ) -> list[PostView]:
        """Posts authored by followees, newest first by creation time."""
        with self.db.snapshot(deadline) as conn:
            self._require_user(conn, viewer_id)
            posts = self.content.select_posts(
                conn,
                f"author_id IN ({_FOLLOWED})",
                (viewer_id,),
                order=PostOrder.CREATED_DESC,
            )
            return self.projector.views(conn, posts)

    async def author_feed(
        self, author_id: str, deadline: Deadline | None = None
    ) -> list[PostView]:
        with self.db.snapshot(deadline) as conn:
            posts = self.content.select_posts(
                conn, "author_id = ?", (author_id,), order=PostOrder.CREATED_DESC
            )
            return self.projector.views(conn, posts)

    async def public_feed(self, deadline: Deadline | None = None) -> list[PostView]:
        with self.db.snapshot(deadline) as conn:
            posts = self.content.select_posts(conn, order=PostOrder.UPDATED_DESC)
            return self.projector.views(conn, posts)

    async def bookmarks(self, user_id: str, deadline: Deadline | None = None) -> list[PostView]:
        """The user's bookmarks, most recently bookmarked first.

        Raises:
            NotFoundError: If the user does not exist
        """
        with self.db.snapshot(deadline) as conn:
            self._require_user(conn, user_id)
            post_ids = self.content.edges.targets(conn, EdgeType.BOOKMARKS, user_id)
            if not post_ids:
                return []

            found = {}
            for chunk in chunked(post_ids):
                placeholders = ",".join("?" for _ in chunk)
                where = f"post_id IN ({placeholders})"
                for post in self.content.select_posts(conn, where, chunk):
                    found[post.post_id] = post
            ordered = [found[pid] for pid in reversed(post_ids) if pid in found]

            if len(ordered) < len(post_ids):
                logger.debug(
                    "Skipped dangling bookmarks",
                    extra={"user_id": user_id, "count": len(post_ids) - len(ordered)},
                )
            return self.projector.views(conn, ordered)

    def _require_user(self, conn, user_id: str) -> None:
        if not self.identity.exists(conn, user_id):
            raise NotFoundError("User not found.", "user", user_id)
