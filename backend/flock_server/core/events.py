"""
Domain events emitted by graph and engagement mutations.

Events are produced inside the mutation's transaction and consumed
synchronously by NotificationFanout before that transaction commits, so a
mutation and the notification it causes are applied together or not at all.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..models import NotificationType


@dataclass(frozen=True)
class FollowEvent:
    """``actor`` started following ``owner``."""

    actor: str
    owner: str
    created_at: int
    post_id: str | None = None

    notification_type = NotificationType.FOLLOW


@dataclass(frozen=True)
class LikeEvent:
    """``actor`` liked a post owned by ``owner``."""

    actor: str
    owner: str
    post_id: str
    created_at: int

    notification_type = NotificationType.LIKE


@dataclass(frozen=True)
class CommentEvent:
    """``actor`` commented on a post owned by ``owner``."""

    actor: str
    owner: str
    post_id: str
    created_at: int

    notification_type = NotificationType.COMMENT


DomainEvent = FollowEvent | LikeEvent | CommentEvent
