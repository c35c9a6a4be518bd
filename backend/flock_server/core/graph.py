"""
Social graph index - follow and unfollow.

The follow relation is stored once, as a ``follows`` edge from actor to
target. A user's ``following`` set is the edges leaving them and their
``followers`` set is the edges arriving at them, so the two projections
are updated by a single row write and cannot disagree.

Invariants:
    - No user follows themselves (also a CHECK constraint on the edges table)
    - follow() of an existing edge and unfollow() of a missing edge both
      fail with ConflictError and change nothing
    - The edge write, both users' updated_at and the follow notification
      commit together
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from ..errors import ConflictError, NotFoundError, SelfReferenceError
from ..models import EdgeType, User
from ..store import Database, Deadline, EdgeIndex, IdentityStore, now_ms
from .events import FollowEvent
from .fanout import NotificationFanout

logger = logging.getLogger(__name__)


@dataclass
class FollowResult:
    """Outcome of a follow or unfollow.

    Attributes:
        actor: The acting user after the change
        target: The target user after the change
        event: FollowEvent for a new follow, None for an unfollow
    """

    actor: User
    target: User
    event: FollowEvent | None = None


class SocialGraphIndex:
    """Follow/unfollow over the identity store."""

    def __init__(
        self,
        db: Database,
        identity: IdentityStore,
        fanout: NotificationFanout,
        edges: EdgeIndex | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.db = db
        self.identity = identity
        self.fanout = fanout
        self.edges = edges or identity.edges
        self.clock = clock

    async def follow(
        self, actor_id: str, target_id: str, deadline: Deadline | None = None
    ) -> FollowResult:
        """Make ``actor_id`` follow ``target_id``.

        Raises:
            SelfReferenceError: If actor and target are the same user
            NotFoundError: If either user does not exist
            ConflictError: If the actor already follows the target
        """
        if actor_id == target_id:
            raise SelfReferenceError("You cannot follow yourself.")

        with self.db.transaction(deadline) as conn:
            actor, target = self._load_pair(conn, actor_id, target_id)

            timestamp = self.clock()
            if not self.edges.add(conn, EdgeType.FOLLOWS, actor_id, target_id, timestamp):
                raise ConflictError(f"User already followed {target.name}")

            self.identity.touch(conn, (actor_id, target_id), timestamp)
            event = FollowEvent(actor=actor_id, owner=target_id, created_at=timestamp)
            self.fanout.dispatch(conn, event)

            actor = self.identity.get_user(conn, actor_id)
            target = self.identity.get_user(conn, target_id)

        logger.debug("Followed user", extra={"actor": actor_id, "target": target_id})
        return FollowResult(actor=actor, target=target, event=event)

    async def unfollow(
        self, actor_id: str, target_id: str, deadline: Deadline | None = None
    ) -> FollowResult:
        """Remove the follow edge from ``actor_id`` to ``target_id``.

        Raises:
            NotFoundError: If either user does not exist
            ConflictError: If the actor does not follow the target
        """
        with self.db.transaction(deadline) as conn:
            self._load_pair(conn, actor_id, target_id)

            if not self.edges.remove(conn, EdgeType.FOLLOWS, actor_id, target_id):
                raise ConflictError("User has not followed yet")

            self.identity.touch(conn, (actor_id, target_id), self.clock())
            actor = self.identity.get_user(conn, actor_id)
            target = self.identity.get_user(conn, target_id)

        logger.debug("Unfollowed user", extra={"actor": actor_id, "target": target_id})
        return FollowResult(actor=actor, target=target)

    def _load_pair(self, conn, actor_id: str, target_id: str) -> tuple[User, User]:
        actor = self.identity.get_user(conn, actor_id)
        if actor is None:
            raise NotFoundError("User not found", "user", actor_id)
        target = self.identity.get_user(conn, target_id)
        if target is None:
            raise NotFoundError("User not found", "user", target_id)
        return actor, target
