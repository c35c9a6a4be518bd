"""
Core module for Flock - the social-graph and feed-aggregation engine.

This module handles:
- Follow/unfollow over a single follows relation (SocialGraphIndex)
- Like, retweet and bookmark toggles and comment appends (EngagementLedger)
- Notification creation from domain events (NotificationFanout)
- The four feed views plus bookmarks (FeedComposer)
- Atomic account deletion (CascadeDeletionCoordinator)
- Account and post lifecycle (AccountDirectory, PostManager)

Mutations emit domain events which fan-out consumes inside the same
transaction. Reads go straight to the store; there is no cache.

Invariants:
    - Every mutation commits fully or not at all
    - Self-actions never notify
    - Feeds never write
"""

from .accounts import AccountDirectory, Session
from .cascade import CascadeDeletionCoordinator, CascadeReport
from .engagement import CommentResult, EngagementLedger, ToggleResult
from .events import CommentEvent, DomainEvent, FollowEvent, LikeEvent
from .fanout import NotificationFanout
from .feeds import FeedComposer
from .graph import FollowResult, SocialGraphIndex
from .posts import PostManager
from .projection import Projector

__all__ = [
    "AccountDirectory",
    "CascadeDeletionCoordinator",
    "CascadeReport",
    "CommentEvent",
    "CommentResult",
    "DomainEvent",
    "EngagementLedger",
    "FeedComposer",
    "FollowEvent",
    "FollowResult",
    "LikeEvent",
    "NotificationFanout",
    "PostManager",
    "Projector",
    "Session",
    "SocialGraphIndex",
    "ToggleResult",
]
