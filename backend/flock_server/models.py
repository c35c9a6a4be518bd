"""
Domain records for Flock.

Three record collections are persisted - users, posts (with embedded
ordered comments) and notifications - linked only by id reference.
Set-valued fields (followers, following, likedBy, retweetedBy, bookmarks)
are projections of the typed edge relation and are materialized here as
Python sets, except bookmarks which keep insertion order.

Timestamps are Unix milliseconds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EdgeType(str, Enum):
    """Typed membership relations stored in the edges table.

    FOLLOWS: user -> user
    LIKES, RETWEETS, BOOKMARKS: user -> post
    """

    FOLLOWS = "follows"
    LIKES = "likes"
    RETWEETS = "retweets"
    BOOKMARKS = "bookmarks"


class NotificationType(str, Enum):
    """Kinds of notification produced by fan-out."""

    LIKE = "like"
    COMMENT = "comment"
    FOLLOW = "follow"


@dataclass
class User:
    """A registered account.

    The password hash is deliberately not part of this record; it is only
    read by the account directory when verifying a login.
    """

    user_id: str
    name: str
    username: str
    email: str
    bio: str = ""
    profile_image_url: str = ""
    banner_image_url: str = ""
    followers: set[str] = field(default_factory=set)
    following: set[str] = field(default_factory=set)
    bookmarks: list[str] = field(default_factory=list)
    created_at: int = 0
    updated_at: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.user_id,
            "name": self.name,
            "username": self.username,
            "email": self.email,
            "bio": self.bio,
            "profileImg": self.profile_image_url,
            "bannerImg": self.banner_image_url,
            "followers": sorted(self.followers),
            "following": sorted(self.following),
            "bookmarks": list(self.bookmarks),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True)
class AuthorProjection:
    """Display attributes of a referenced user, resolved at read time.

    All fields are None when the referenced user no longer exists.
    """

    user_id: str
    display_name: str | None = None
    handle: str | None = None
    avatar_url: str | None = None

    @classmethod
    def missing(cls, user_id: str) -> AuthorProjection:
        return cls(user_id=user_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.user_id,
            "name": self.display_name,
            "username": self.handle,
            "profileImg": self.avatar_url,
        }


@dataclass(frozen=True)
class Comment:
    """An immutable comment embedded in a post."""

    comment_id: str
    author_id: str
    content: str
    created_at: int

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.comment_id,
            "author_id": self.author_id,
            "content": self.content,
            "created_at": self.created_at,
        }

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> Comment:
        return cls(
            comment_id=data["id"],
            author_id=data["author_id"],
            content=data["content"],
            created_at=data["created_at"],
        )


@dataclass
class Post:
    """A post with its engagement membership and comment thread."""

    post_id: str
    author_id: str
    description: str
    image_url: str = ""
    liked_by: set[str] = field(default_factory=set)
    retweeted_by: set[str] = field(default_factory=set)
    is_edited: bool = False
    comments: list[Comment] = field(default_factory=list)
    created_at: int = 0
    updated_at: int = 0


@dataclass
class PostView:
    """A post enriched with author projections for itself and its comments."""

    post: Post
    author: AuthorProjection
    comment_authors: dict[str, AuthorProjection] = field(default_factory=dict)

    @property
    def post_id(self) -> str:
        return self.post.post_id

    def to_dict(self) -> dict[str, Any]:
        post = self.post
        return {
            "id": post.post_id,
            "description": post.description,
            "image": post.image_url,
            "like": sorted(post.liked_by),
            "retweetedBy": sorted(post.retweeted_by),
            "isEdited": post.is_edited,
            "userId": self.author.to_dict(),
            "comments": [
                {
                    "id": comment.comment_id,
                    "content": comment.content,
                    "userId": self.comment_authors.get(
                        comment.author_id, AuthorProjection.missing(comment.author_id)
                    ).to_dict(),
                    "createdAt": comment.created_at,
                }
                for comment in post.comments
            ],
            "createdAt": post.created_at,
            "updatedAt": post.updated_at,
        }


@dataclass
class Notification:
    """A notification addressed to ``to_user``."""

    notification_id: str
    type: NotificationType
    from_user: str
    to_user: str
    post_id: str | None
    is_read: bool
    created_at: int


@dataclass
class NotificationView:
    """A notification enriched with the sender's projection."""

    notification: Notification
    sender: AuthorProjection

    def to_dict(self) -> dict[str, Any]:
        n = self.notification
        return {
            "id": n.notification_id,
            "type": n.type.value,
            "fromUser": self.sender.to_dict(),
            "toUser": n.to_user,
            "tweetId": n.post_id,
            "isRead": n.is_read,
            "createdAt": n.created_at,
        }
