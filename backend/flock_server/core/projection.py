"""
Read-time author projections.

Posts, comments and notifications store only user ids. Display attributes
(name, username, avatar) are resolved here in one batched query per read
so a deleted author degrades to null fields instead of failing the read.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable

from ..models import AuthorProjection, Notification, NotificationView, Post, PostView
from ..store import IdentityStore


class Projector:
    """Enrich stored records with author projections."""

    def __init__(self, identity: IdentityStore) -> None:
        self.identity = identity

    def views(self, conn: sqlite3.Connection, posts: Iterable[Post]) -> list[PostView]:
        posts = list(posts)
        user_ids: list[str] = []
        for post in posts:
            user_ids.append(post.author_id)
            user_ids.extend(comment.author_id for comment in post.comments)

        resolved = self.identity.projections(conn, user_ids)
        return [
            PostView(
                post=post,
                author=resolved[post.author_id],
                comment_authors={
                    comment.author_id: resolved[comment.author_id]
                    for comment in post.comments
                },
            )
            for post in posts
        ]

    def view(self, conn: sqlite3.Connection, post: Post) -> PostView:
        return self.views(conn, [post])[0]

    def notification_views(
        self, conn: sqlite3.Connection, notifications: Iterable[Notification]
    ) -> list[NotificationView]:
        notifications = list(notifications)
        resolved = self.identity.projections(conn, (n.from_user for n in notifications))
        return [
            NotificationView(
                notification=n,
                sender=resolved.get(n.from_user, AuthorProjection.missing(n.from_user)),
            )
            for n in notifications
        ]
