"""
Flock service facade.

FlockService is constructed once per process around an explicit Database
handle and an ObjectStorage backend. It wires every core component over
the same stores and gives each public operation its request deadline.

Retry policy:
    Reads, follow/unfollow and account deletion re-run their whole
    transaction on retryable failures (deadline expiry, busy store) up to
    RequestConfig.max_retries times. Each attempt re-validates stored state
    from scratch, so a retried follow that already committed reports a
    conflict rather than applying twice.
    Toggles, comments and post/profile writes are never retried.

Invariants:
    - One Database handle shared by every component
    - Every operation runs under a fresh Deadline per attempt

How to change safely:
    - Only add an operation to the retried set if re-running it after a
      commit is harmless
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .auth import Authenticator, PasswordHasher, RevocationList, TokenAuthority
from .config import ServerConfig
from .core import (
    AccountDirectory,
    CascadeDeletionCoordinator,
    CascadeReport,
    CommentResult,
    EngagementLedger,
    FeedComposer,
    FollowResult,
    NotificationFanout,
    PostManager,
    Session,
    SocialGraphIndex,
    ToggleResult,
)
from .errors import FlockError
from .media import ObjectStorage, Upload
from .models import NotificationView, PostView, User
from .store import (
    ContentStore,
    Database,
    Deadline,
    EdgeIndex,
    IdentityStore,
    NotificationStore,
    now_ms,
)
from .tools.repair import RepairReport

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FlockService:
    """All Flock operations over one database handle.

    Example:
        >>> db = Database.from_config(config.storage)
        >>> await db.initialize()
        >>> service = FlockService(db, config, InMemoryObjectStorage())
        >>> session = await service.register("Alice", "alice", "a@x.io", "pw")
        >>> await service.create_post(session.user.user_id, "hello")
    """

    def __init__(
        self,
        db: Database,
        config: ServerConfig,
        storage: ObjectStorage,
        clock: Callable[[], int] = now_ms,
        tokens: TokenAuthority | None = None,
    ) -> None:
        self.db = db
        self.config = config
        self.storage = storage
        self.clock = clock

        edges = EdgeIndex()
        self.identity = IdentityStore(edges)
        self.content = ContentStore(edges)
        self.notifications = NotificationStore()
        revocations = RevocationList()

        self.hasher = PasswordHasher(config.auth.password_hash_method)
        self.tokens = tokens or TokenAuthority.from_config(config.auth)
        self.authenticator = Authenticator(db, self.tokens, self.identity, revocations)

        self.fanout = NotificationFanout(db, self.notifications, self.identity, clock=clock)
        self.graph = SocialGraphIndex(db, self.identity, self.fanout, edges, clock=clock)
        self.engagement = EngagementLedger(
            db, self.content, self.identity, self.fanout, edges, clock=clock
        )
        self.feeds = FeedComposer(db, self.content, self.identity)
        self.posts = PostManager(
            db, self.content, self.identity, self.notifications, storage, edges, clock=clock
        )
        self.accounts = AccountDirectory(
            db, self.identity, self.hasher, self.tokens, storage, clock=clock
        )
        self.cascade = CascadeDeletionCoordinator(
            db, self.identity, self.content, self.notifications, revocations, edges, clock=clock
        )

    def deadline(self) -> Deadline:
        return Deadline.after(self.config.request.deadline_ms)

    async def _retrying(self, name: str, operation: Callable[[Deadline], Awaitable[T]]) -> T:
        """Run ``operation`` with a fresh deadline, retrying retryable failures."""
        max_retries = self.config.request.max_retries
        attempt = 0
        while True:
            try:
                return await operation(self.deadline())
            except FlockError as e:
                if not e.retryable or attempt >= max_retries:
                    raise
                attempt += 1
                logger.warning(
                    f"Retrying {name} after {e.code}",
                    extra={"operation": name, "attempt": attempt},
                )
                await asyncio.sleep(self.config.request.retry_delay_ms / 1000.0)

    # Credentials and accounts

    async def authenticate(self, token: str | None) -> str:
        return await self.authenticator.authenticate(token)

    async def register(self, name: str, username: str, email: str, password: str) -> Session:
        return await self.accounts.register(
            name, username, email, password, deadline=self.deadline()
        )

    async def login(self, identifier: str, password: str) -> Session:
        return await self.accounts.login(identifier, password, deadline=self.deadline())

    async def get_me(self, actor_id: str) -> User:
        return await self._retrying("get_me", lambda d: self.accounts.get_user(actor_id, d))

    async def get_profile(self, user_id: str) -> User:
        return await self._retrying("get_profile", lambda d: self.accounts.get_user(user_id, d))

    async def list_other_users(self, actor_id: str) -> list[User]:
        return await self._retrying(
            "list_other_users", lambda d: self.accounts.list_other_users(actor_id, d)
        )

    async def edit_profile(
        self,
        actor_id: str,
        name: str | None = None,
        bio: str | None = None,
        profile_image: Upload | None = None,
        banner_image: Upload | None = None,
    ) -> User:
        return await self.accounts.edit_profile(
            actor_id, name, bio, profile_image, banner_image, deadline=self.deadline()
        )

    async def delete_account(self, actor_id: str, target_id: str) -> CascadeReport:
        return await self._retrying(
            "delete_account", lambda d: self.cascade.delete_account(actor_id, target_id, d)
        )

    async def reconcile(self, dry_run: bool = False) -> RepairReport:
        return await self._retrying("reconcile", lambda d: self.cascade.reconcile(dry_run, d))

    # Social graph

    async def follow(self, actor_id: str, target_id: str) -> FollowResult:
        return await self._retrying("follow", lambda d: self.graph.follow(actor_id, target_id, d))

    async def unfollow(self, actor_id: str, target_id: str) -> FollowResult:
        return await self._retrying(
            "unfollow", lambda d: self.graph.unfollow(actor_id, target_id, d)
        )

    # Engagement

    async def toggle_like(self, actor_id: str, post_id: str) -> ToggleResult:
        return await self.engagement.toggle_like(actor_id, post_id, deadline=self.deadline())

    async def toggle_retweet(self, actor_id: str, post_id: str) -> ToggleResult:
        return await self.engagement.toggle_retweet(actor_id, post_id, deadline=self.deadline())

    async def toggle_bookmark(self, actor_id: str, post_id: str) -> ToggleResult:
        return await self.engagement.toggle_bookmark(actor_id, post_id, deadline=self.deadline())

    async def add_comment(self, actor_id: str, post_id: str, content: str) -> CommentResult:
        return await self.engagement.add_comment(
            actor_id, post_id, content, deadline=self.deadline()
        )

    # Posts

    async def create_post(
        self, actor_id: str, description: str, image: Upload | None = None
    ) -> PostView:
        return await self.posts.create_post(
            actor_id, description, image, deadline=self.deadline()
        )

    async def edit_post(self, actor_id: str, post_id: str, description: str) -> PostView:
        return await self.posts.edit_post(
            actor_id, post_id, description, deadline=self.deadline()
        )

    async def delete_post(self, actor_id: str, post_id: str) -> PostView:
        return await self.posts.delete_post(actor_id, post_id, deadline=self.deadline())

    async def get_post(self, post_id: str) -> PostView:
        return await self._retrying("get_post", lambda d: self.posts.get_post(post_id, d))

    # Feeds

    async def personal_feed(self, viewer_id: str) -> list[PostView]:
        return await self._retrying(
            "personal_feed", lambda d: self.feeds.personal_feed(viewer_id, d)
        )

    async def following_feed(self, viewer_id: str) -> list[PostView]:
        return await self._retrying(
            "following_feed", lambda d: self.feeds.following_feed(viewer_id, d)
        )

    async def author_feed(self, author_id: str) -> list[PostView]:
        return await self._retrying("author_feed", lambda d: self.feeds.author_feed(author_id, d))

    async def public_feed(self) -> list[PostView]:
        return await self._retrying("public_feed", lambda d: self.feeds.public_feed(d))

    async def bookmarks(self, actor_id: str) -> list[PostView]:
        return await self._retrying("bookmarks", lambda d: self.feeds.bookmarks(actor_id, d))

    # Notifications

    async def list_and_mark_read(self, actor_id: str) -> list[NotificationView]:
        return await self.fanout.list_and_mark_read(actor_id, deadline=self.deadline())

    async def unread_count(self, actor_id: str) -> int:
        return await self._retrying("unread_count", lambda d: self.fanout.unread_count(actor_id, d))

    async def clear_notifications(self, actor_id: str) -> int:
        return await self.fanout.clear(actor_id, deadline=self.deadline())
