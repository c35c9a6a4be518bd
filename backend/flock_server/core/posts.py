"""
Post lifecycle - create, edit, delete and fetch.

Images are handed to the object storage collaborator before the database
transaction opens; only the returned URL is written to the post row.

deletePost removes, in one transaction, the post row, every like,
retweet and bookmark edge pointing at it and every notification about it,
so no user is left holding a bookmark to a post that is gone.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from collections.abc import Callable

from ..errors import AuthorizationError, InternalError, NotFoundError, ValidationError
from ..media import MediaError, MediaUploadError, ObjectStorage, Upload
from ..models import Post, PostView
from ..store import (
    ContentStore,
    Database,
    Deadline,
    EdgeIndex,
    IdentityStore,
    NotificationStore,
    now_ms,
)
from .projection import Projector

logger = logging.getLogger(__name__)


async def upload_image(storage: ObjectStorage, upload: Upload | None, field_name: str) -> str:
    """Store an optional image and return its URL ("" when absent).

    Raises:
        ValidationError: If the storage backend rejected the file
        InternalError: If the storage backend failed
    """
    if upload is None or not upload.data:
        return ""
    try:
        return await storage.put(upload)
    except MediaUploadError as e:
        raise ValidationError(str(e), field_name=field_name) from e
    except MediaError as e:
        logger.error(f"Image upload failed: {e}", exc_info=True)
        raise InternalError() from e


class PostManager:
    """Author-side post operations."""

    def __init__(
        self,
        db: Database,
        content: ContentStore,
        identity: IdentityStore,
        notifications: NotificationStore,
        storage: ObjectStorage,
        edges: EdgeIndex | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.db = db
        self.content = content
        self.identity = identity
        self.notifications = notifications
        self.storage = storage
        self.edges = edges or content.edges
        self.projector = Projector(identity)
        self.clock = clock

    async def create_post(
        self,
        actor_id: str,
        description: str,
        image: Upload | None = None,
        deadline: Deadline | None = None,
    ) -> PostView:
        """Create a post authored by the actor.

        Raises:
            ValidationError: If the description is empty or the image is rejected
            NotFoundError: If the actor does not exist
        """
        if description is None or not description.strip():
            raise ValidationError("Description is required.", field_name="description")

        image_url = await upload_image(self.storage, image, "image")

        with self.db.transaction(deadline) as conn:
            if not self.identity.exists(conn, actor_id):
                raise NotFoundError("User not found.", "user", actor_id)

            timestamp = self.clock()
            post = Post(
                post_id=uuid.uuid4().hex,
                author_id=actor_id,
                description=description,
                image_url=image_url,
                created_at=timestamp,
                updated_at=timestamp,
            )
            self.content.insert_post(conn, post)
            view = self.projector.view(conn, post)

        logger.info("Created post", extra={"post_id": post.post_id, "author_id": actor_id})
        return view

    async def edit_post(
        self,
        actor_id: str,
        post_id: str,
        description: str,
        deadline: Deadline | None = None,
    ) -> PostView:
        """Replace the description and mark the post edited.

        Raises:
            NotFoundError: If the post does not exist
            AuthorizationError: If the actor is not the author
            ValidationError: If the new description is empty
        """
        with self.db.transaction(deadline) as conn:
            self._require_owned(conn, actor_id, post_id, "edit")
            if description is None or not description.strip():
                raise ValidationError("Description cannot be empty.", field_name="description")

            self.content.edit_description(conn, post_id, description, self.clock())
            view = self.projector.view(conn, self.content.get_post(conn, post_id))

        logger.debug("Edited post", extra={"post_id": post_id, "author_id": actor_id})
        return view

    async def delete_post(
        self, actor_id: str, post_id: str, deadline: Deadline | None = None
    ) -> PostView:
        """Delete the post and every reference to it.

        Returns:
            The post as it was just before deletion

        Raises:
            NotFoundError: If the post does not exist
            AuthorizationError: If the actor is not the author
        """
        with self.db.transaction(deadline) as conn:
            self._require_owned(conn, actor_id, post_id, "delete")
            view = self.projector.view(conn, self.content.get_post(conn, post_id))

            edges_deleted = self.edges.remove_all_to(conn, post_id)
            notifications_deleted = self.notifications.delete_for_post(conn, post_id)
            self.content.delete_post(conn, post_id)

        logger.info(
            "Deleted post",
            extra={
                "post_id": post_id,
                "author_id": actor_id,
                "edges_deleted": edges_deleted,
                "notifications_deleted": notifications_deleted,
            },
        )
        return view

    async def get_post(self, post_id: str, deadline: Deadline | None = None) -> PostView:
        """Single projected post.

        Raises:
            NotFoundError: If the post does not exist
        """
        with self.db.snapshot(deadline) as conn:
            post = self.content.get_post(conn, post_id)
            if post is None:
                raise NotFoundError("Tweet not found.", "post", post_id)
            return self.projector.view(conn, post)

    def _require_owned(
        self, conn: sqlite3.Connection, actor_id: str, post_id: str, action: str
    ) -> None:
        author_id = self.content.author_of(conn, post_id)
        if author_id is None:
            raise NotFoundError("Tweet not found.", "post", post_id)
        if author_id != actor_id:
            raise AuthorizationError(
                f"You are not authorized to {action} this tweet.",
                actor=actor_id,
                resource_id=post_id,
            )
