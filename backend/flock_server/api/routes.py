"""
API routes for the Flock HTTP server.

Three routers mounted under /api/v1:
- /user: accounts, profiles, follow graph, bookmarks
- /tweet: posts, feeds, likes, retweets, comments
- /notifications: list-and-mark-read, unread count, clear

Every route except register, login and logout requires a credential,
read from the credential cookie or an ``Authorization: Bearer`` header.
Success bodies carry ``success: true``, a message and the resulting entity;
errors are rendered by the handlers installed in app.py.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile
from pydantic import BaseModel, Field

from ..media import Upload
from ..service import FlockService
from .settings import ApiSettings

logger = logging.getLogger(__name__)

user_router = APIRouter(prefix="/user", tags=["Users"])
tweet_router = APIRouter(prefix="/tweet", tags=["Tweets"])
notification_router = APIRouter(prefix="/notifications", tags=["Notifications"])


# --- Request Models ---


class RegisterRequest(BaseModel):
    """Request to create an account. Blank fields are rejected by the service."""

    name: str = Field("", description="Display name")
    username: str = Field("", description="Unique handle")
    email: str = Field("", description="Unique email address")
    password: str = Field("", description="Plaintext password")


class LoginRequest(BaseModel):
    """Request to sign in with an email or a username."""

    identifier: str = Field("", description="Email or username")
    password: str = Field("", description="Plaintext password")


class EditPostRequest(BaseModel):
    description: str = Field("", description="New post text")


class CommentRequest(BaseModel):
    comment: str = Field("", description="Comment text")


# --- Dependencies ---


def get_service(request: Request) -> FlockService:
    """Get the service from app state."""
    return request.app.state.service


def get_settings(request: Request) -> ApiSettings:
    return request.app.state.settings


def read_credential(request: Request, settings: ApiSettings) -> str | None:
    token = request.cookies.get(settings.cookie_name)
    if token:
        return token
    authorization = request.headers.get("Authorization", "")
    scheme, _, value = authorization.partition(" ")
    if scheme.lower() == "bearer" and value:
        return value.strip()
    return None


async def get_actor(
    request: Request,
    service: FlockService = Depends(get_service),
    settings: ApiSettings = Depends(get_settings),
) -> str:
    """Authenticate the request and return the actor id."""
    return await service.authenticate(read_credential(request, settings))


async def to_upload(file: UploadFile | None) -> Upload | None:
    if file is None:
        return None
    data = await file.read()
    if not data:
        return None
    return Upload(
        data=data,
        filename=file.filename or "",
        content_type=file.content_type or "application/octet-stream",
    )


def set_credential(response: Response, settings: ApiSettings, token: str) -> None:
    response.set_cookie(
        settings.cookie_name,
        token,
        max_age=settings.cookie_max_age,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="none" if settings.cookie_secure else "lax",
    )


def clear_credential(response: Response, settings: ApiSettings) -> None:
    response.delete_cookie(
        settings.cookie_name,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="none" if settings.cookie_secure else "lax",
    )


def ok(message: str | None = None, **payload: Any) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True}
    if message is not None:
        body["message"] = message
    body.update(payload)
    return body


# --- User Routes ---


@user_router.post("/register", status_code=201)
async def register(
    body: RegisterRequest,
    response: Response,
    service: FlockService = Depends(get_service),
    settings: ApiSettings = Depends(get_settings),
):
    """Create an account and sign it in."""
    session = await service.register(body.name, body.username, body.email, body.password)
    set_credential(response, settings, session.token)
    return ok(f"Welcome, {session.user.name}!", user=session.user.to_dict())


@user_router.post("/login", status_code=201)
async def login(
    body: LoginRequest,
    response: Response,
    service: FlockService = Depends(get_service),
    settings: ApiSettings = Depends(get_settings),
):
    """Sign in with an email or a username."""
    session = await service.login(body.identifier, body.password)
    set_credential(response, settings, session.token)
    return ok(f"Welcome back {session.user.name}", user=session.user.to_dict())


@user_router.get("/logout")
async def logout(response: Response, settings: ApiSettings = Depends(get_settings)):
    clear_credential(response, settings)
    return ok("user logged out successfully.")


@user_router.get("/me")
async def me(actor: str = Depends(get_actor), service: FlockService = Depends(get_service)):
    user = await service.get_me(actor)
    return ok(user=user.to_dict())


@user_router.get("/bookmarks")
async def bookmarks(
    actor: str = Depends(get_actor), service: FlockService = Depends(get_service)
):
    """The actor's bookmarked posts, most recently bookmarked first."""
    views = await service.bookmarks(actor)
    return ok(bookmarks=[view.to_dict() for view in views])


@user_router.put("/bookmark/{post_id}")
async def bookmark(
    post_id: str,
    actor: str = Depends(get_actor),
    service: FlockService = Depends(get_service),
):
    result = await service.toggle_bookmark(actor, post_id)
    message = "Saved to bookmarks." if result.active else "Removed from bookmarks."
    return ok(message, bookmarked=result.active, user=result.user.to_dict())


@user_router.post("/profile/edit")
async def edit_profile(
    name: str | None = Form(None),
    bio: str | None = Form(None),
    profileImg: UploadFile | None = File(None),
    bannerImg: UploadFile | None = File(None),
    actor: str = Depends(get_actor),
    service: FlockService = Depends(get_service),
):
    """Update the provided profile fields; images are multipart files."""
    user = await service.edit_profile(
        actor,
        name=name,
        bio=bio,
        profile_image=await to_upload(profileImg),
        banner_image=await to_upload(bannerImg),
    )
    return ok("Profile updated successfully.", user=user.to_dict())


@user_router.get("/profile/{user_id}")
async def profile(
    user_id: str,
    actor: str = Depends(get_actor),
    service: FlockService = Depends(get_service),
):
    user = await service.get_profile(user_id)
    return ok(user=user.to_dict())


@user_router.get("/otheruser")
async def other_users(
    actor: str = Depends(get_actor), service: FlockService = Depends(get_service)
):
    """Every user except the actor."""
    users = await service.list_other_users(actor)
    if not users:
        return ok("Currently do not have any users.", otherUsers=[])
    return ok(otherUsers=[user.to_dict() for user in users])


@user_router.post("/follow/{user_id}")
async def follow(
    user_id: str,
    actor: str = Depends(get_actor),
    service: FlockService = Depends(get_service),
):
    result = await service.follow(actor, user_id)
    return ok(
        f"{result.actor.name} just followed {result.target.name}",
        user=result.actor.to_dict(),
    )


@user_router.post("/unfollow/{user_id}")
async def unfollow(
    user_id: str,
    actor: str = Depends(get_actor),
    service: FlockService = Depends(get_service),
):
    result = await service.unfollow(actor, user_id)
    return ok(
        f"{result.actor.name} unfollowed {result.target.name}",
        user=result.actor.to_dict(),
    )


@user_router.delete("/delete/{user_id}")
async def delete_account(
    user_id: str,
    response: Response,
    actor: str = Depends(get_actor),
    service: FlockService = Depends(get_service),
    settings: ApiSettings = Depends(get_settings),
):
    """Delete the actor's own account and everything that references it."""
    report = await service.delete_account(actor, user_id)
    clear_credential(response, settings)
    return ok(f"User {report.username} has been successfully deleted.")


# --- Tweet Routes ---


@tweet_router.post("/create", status_code=201)
async def create_tweet(
    description: str = Form(""),
    image: UploadFile | None = File(None),
    actor: str = Depends(get_actor),
    service: FlockService = Depends(get_service),
):
    """Create a post; the optional image is a multipart file."""
    view = await service.create_post(actor, description, await to_upload(image))
    return ok("Tweet created successfully.", tweet=view.to_dict())


@tweet_router.get("/public")
async def public_tweets(
    actor: str = Depends(get_actor), service: FlockService = Depends(get_service)
):
    views = await service.public_feed()
    return ok(tweets=[view.to_dict() for view in views])


@tweet_router.get("/alltweets/{user_id}")
async def personal_tweets(
    user_id: str,
    actor: str = Depends(get_actor),
    service: FlockService = Depends(get_service),
):
    """Followees' posts plus posts retweeted by the user or a followee."""
    views = await service.personal_feed(user_id)
    return ok(tweets=[view.to_dict() for view in views])


@tweet_router.get("/followingtweets/{user_id}")
async def following_tweets(
    user_id: str,
    actor: str = Depends(get_actor),
    service: FlockService = Depends(get_service),
):
    views = await service.following_feed(user_id)
    return ok(tweets=[view.to_dict() for view in views])


@tweet_router.get("/user/{user_id}")
async def user_tweets(
    user_id: str,
    actor: str = Depends(get_actor),
    service: FlockService = Depends(get_service),
):
    views = await service.author_feed(user_id)
    return ok(tweets=[view.to_dict() for view in views])


# Must follow the fixed-prefix GET routes above
@tweet_router.get("/{post_id}")
async def get_tweet(
    post_id: str,
    actor: str = Depends(get_actor),
    service: FlockService = Depends(get_service),
):
    view = await service.get_post(post_id)
    return ok(tweet=view.to_dict())


@tweet_router.delete("/delete/{post_id}")
async def delete_tweet(
    post_id: str,
    actor: str = Depends(get_actor),
    service: FlockService = Depends(get_service),
):
    await service.delete_post(actor, post_id)
    return ok("Tweet deleted successfully.")


@tweet_router.put("/like/{post_id}")
async def like(
    post_id: str,
    actor: str = Depends(get_actor),
    service: FlockService = Depends(get_service),
):
    result = await service.toggle_like(actor, post_id)
    message = "User liked your tweet." if result.active else "User disliked your tweet."
    return ok(message, liked=result.active, tweet=result.post.to_dict())


@tweet_router.put("/edit/{post_id}")
async def edit_tweet(
    post_id: str,
    body: EditPostRequest,
    actor: str = Depends(get_actor),
    service: FlockService = Depends(get_service),
):
    view = await service.edit_post(actor, post_id, body.description)
    return ok("Tweet updated successfully.", tweet=view.to_dict())


@tweet_router.post("/comment/{post_id}", status_code=201)
async def comment(
    post_id: str,
    body: CommentRequest,
    actor: str = Depends(get_actor),
    service: FlockService = Depends(get_service),
):
    result = await service.add_comment(actor, post_id, body.comment)
    return ok("Comment added successfully.", tweet=result.post.to_dict())


@tweet_router.post("/retweet/{post_id}")
async def retweet(
    post_id: str,
    actor: str = Depends(get_actor),
    service: FlockService = Depends(get_service),
):
    result = await service.toggle_retweet(actor, post_id)
    message = "Tweet retweeted successfully." if result.active else "Retweet removed."
    return ok(message, retweeted=result.active, tweet=result.post.to_dict())


# --- Notification Routes ---


@notification_router.get("")
async def list_notifications(
    actor: str = Depends(get_actor), service: FlockService = Depends(get_service)
):
    """All notifications for the actor, newest first; marks them read."""
    views = await service.list_and_mark_read(actor)
    return ok(notifications=[view.to_dict() for view in views])


@notification_router.delete("/clear")
async def clear_notifications(
    actor: str = Depends(get_actor), service: FlockService = Depends(get_service)
):
    await service.clear_notifications(actor)
    return ok("Notifications cleared successfully.")


@notification_router.get("/unread-count")
async def unread_count(
    actor: str = Depends(get_actor), service: FlockService = Depends(get_service)
):
    count = await service.unread_count(actor)
    return ok(count=count)
