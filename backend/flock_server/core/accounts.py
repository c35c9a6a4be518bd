"""
Account directory - registration, login and profiles.

Passwords are hashed by the PasswordHasher collaborator before they reach
the store and are only read back to verify a login. Public user records
never carry the hash.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from ..auth import PasswordHasher, TokenAuthority
from ..errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from ..media import ObjectStorage, Upload
from ..models import User
from ..store import Database, Deadline, IdentityStore, now_ms
from .posts import upload_image

logger = logging.getLogger(__name__)

LOGIN_FAILED = "Incorrect email, username, or password"


@dataclass
class Session:
    """An authenticated user together with the credential issued to them."""

    user: User
    token: str


class AccountDirectory:
    """User-facing account operations."""

    def __init__(
        self,
        db: Database,
        identity: IdentityStore,
        hasher: PasswordHasher,
        tokens: TokenAuthority,
        storage: ObjectStorage,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.db = db
        self.identity = identity
        self.hasher = hasher
        self.tokens = tokens
        self.storage = storage
        self.clock = clock

    async def register(
        self,
        name: str,
        username: str,
        email: str,
        password: str,
        deadline: Deadline | None = None,
    ) -> Session:
        """Create an account and sign it in.

        Raises:
            ValidationError: If any field is missing or blank
            ConflictError: If the email or username is already taken
        """
        fields = {"name": name, "username": username, "email": email, "password": password}
        for field_name, value in fields.items():
            if value is None or not str(value).strip():
                raise ValidationError("All fields are required.", field_name=field_name)

        password_hash = self.hasher.hash(password)

        with self.db.transaction(deadline) as conn:
            if self.identity.email_or_username_taken(conn, email, username):
                raise ConflictError("User already exists.")

            timestamp = self.clock()
            user = User(
                user_id=uuid.uuid4().hex,
                name=name,
                username=username,
                email=email,
                created_at=timestamp,
                updated_at=timestamp,
            )
            self.identity.insert_user(conn, user, password_hash)

        logger.info("Registered user", extra={"user_id": user.user_id})
        return Session(user=user, token=self.tokens.issue(user.user_id))

    async def login(
        self, identifier: str, password: str, deadline: Deadline | None = None
    ) -> Session:
        """Sign in by email or username.

        Raises:
            ValidationError: If either field is missing
            AuthenticationError: On unknown identifier or wrong password
        """
        if not identifier or not password:
            raise ValidationError("All fields are required.")

        with self.db.snapshot(deadline) as conn:
            credentials = self.identity.find_credentials(conn, identifier)

        if credentials is None:
            raise AuthenticationError(LOGIN_FAILED)

        user_id, password_hash = credentials
        if not self.hasher.verify(password_hash, password):
            logger.info("Rejected login", extra={"user_id": user_id})
            raise AuthenticationError(LOGIN_FAILED)

        user = await self.get_user(user_id, deadline)
        logger.debug("User logged in", extra={"user_id": user_id})
        return Session(user=user, token=self.tokens.issue(user_id))

    async def get_user(self, user_id: str, deadline: Deadline | None = None) -> User:
        """Public user record (backs both getMe and getProfile).

        Raises:
            NotFoundError: If the user does not exist
        """
        with self.db.snapshot(deadline) as conn:
            return self._require_user(conn, user_id)

    async def list_other_users(
        self, actor_id: str, deadline: Deadline | None = None
    ) -> list[User]:
        with self.db.snapshot(deadline) as conn:
            return self.identity.list_users_except(conn, actor_id)

    async def edit_profile(
        self,
        actor_id: str,
        name: str | None = None,
        bio: str | None = None,
        profile_image: Upload | None = None,
        banner_image: Upload | None = None,
        deadline: Deadline | None = None,
    ) -> User:
        """Change the provided, non-empty profile fields.

        Raises:
            NotFoundError: If the user does not exist
            ValidationError: If an image is rejected by object storage
        """
        changes: dict[str, str] = {}
        if name and name.strip():
            changes["name"] = name
        if bio and bio.strip():
            changes["bio"] = bio

        profile_url = await upload_image(self.storage, profile_image, "profileImg")
        if profile_url:
            changes["profile_image_url"] = profile_url
        banner_url = await upload_image(self.storage, banner_image, "bannerImg")
        if banner_url:
            changes["banner_image_url"] = banner_url

        with self.db.transaction(deadline) as conn:
            if not self.identity.update_profile(conn, actor_id, changes, self.clock()):
                raise NotFoundError("User not found.", "user", actor_id)
            user = self.identity.get_user(conn, actor_id)

        logger.debug(
            "Updated profile",
            extra={"user_id": actor_id, "fields": sorted(changes)},
        )
        return user

    def _require_user(self, conn: sqlite3.Connection, user_id: str) -> User:
        user = self.identity.get_user(conn, user_id)
        if user is None:
            raise NotFoundError("User not found.", "user", user_id)
        return user
