"""
Credential and password collaborators for Flock.

This module handles:
- Password hashing and verification (werkzeug.security)
- Access token issuance and verification (HS256 JWT via PyJWT)
- Credential revocation (a per-user revocation timestamp)
- Authentication of a transport credential into an actor id

The core treats the authenticated actor id as opaque; nothing below the
transport ever sees a plaintext password beyond the hash/verify call.

Invariants:
    - A token is accepted only if its signature and expiry are valid,
      its subject still exists, and it was issued after any revocation
    - Revocation rows are written inside the caller's transaction
"""

from __future__ import annotations

import logging
import sqlite3
import time
from collections.abc import Callable

import jwt
from werkzeug.security import check_password_hash, generate_password_hash

from .config import AuthConfig
from .errors import AuthenticationError
from .store import Database, IdentityStore

logger = logging.getLogger(__name__)


class PasswordHasher:
    """Produces and verifies opaque password hashes."""

    def __init__(self, method: str = "scrypt") -> None:
        self.method = method

    def hash(self, password: str) -> str:
        return generate_password_hash(password, method=self.method)

    def verify(self, password_hash: str, password: str) -> bool:
        return check_password_hash(password_hash, password)


class TokenAuthority:
    """Issues and verifies signed access tokens.

    Example:
        >>> tokens = TokenAuthority("secret", ttl_seconds=3600)
        >>> token = tokens.issue("user-1")
        >>> tokens.verify(token)["sub"]
        'user-1'
    """

    def __init__(
        self,
        secret: str,
        ttl_seconds: int = 24 * 60 * 60,
        algorithm: str = "HS256",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.secret = secret
        self.ttl_seconds = ttl_seconds
        self.algorithm = algorithm
        self.clock = clock

    @classmethod
    def from_config(cls, config: AuthConfig) -> TokenAuthority:
        return cls(
            secret=config.token_secret,
            ttl_seconds=config.token_ttl_seconds,
            algorithm=config.token_algorithm,
        )

    def issue(self, user_id: str) -> str:
        issued_at = int(self.clock())
        claims = {
            "sub": user_id,
            "iat": issued_at,
            "exp": issued_at + self.ttl_seconds,
        }
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> dict:
        """Decode and validate a token.

        Raises:
            AuthenticationError: If the token is malformed, forged or expired
        """
        try:
            return jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "iat", "exp"]},
                leeway=0,
            )
        except jwt.ExpiredSignatureError as e:
            raise AuthenticationError("Session expired.") from e
        except jwt.InvalidTokenError as e:
            raise AuthenticationError("Invalid token.") from e


class RevocationList:
    """Per-user credential revocation timestamps."""

    def revoke(self, conn: sqlite3.Connection, user_id: str, revoked_at: int) -> None:
        conn.execute(
            """
            INSERT INTO revoked_credentials (user_id, revoked_at) VALUES (?, ?)
            ON CONFLICT(user_id) DO UPDATE SET revoked_at = excluded.revoked_at
            """,
            (user_id, revoked_at),
        )

    def revoked_at(self, conn: sqlite3.Connection, user_id: str) -> int | None:
        cursor = conn.execute(
            "SELECT revoked_at FROM revoked_credentials WHERE user_id = ?",
            (user_id,),
        )
        row = cursor.fetchone()
        return row[0] if row else None


class Authenticator:
    """Turns a transport credential into an authenticated actor id."""

    def __init__(
        self,
        db: Database,
        tokens: TokenAuthority,
        identity: IdentityStore | None = None,
        revocations: RevocationList | None = None,
    ) -> None:
        self.db = db
        self.tokens = tokens
        self.identity = identity or IdentityStore()
        self.revocations = revocations or RevocationList()

    async def authenticate(self, token: str | None) -> str:
        """Return the actor id the token was issued to.

        Raises:
            AuthenticationError: If the credential is missing, invalid,
                expired, revoked or names an unknown user
        """
        if not token:
            raise AuthenticationError("User not authenticated.")

        claims = self.tokens.verify(token)
        user_id = claims["sub"]

        with self.db.snapshot() as conn:
            if not self.identity.exists(conn, user_id):
                raise AuthenticationError("Invalid token.")
            revoked_at = self.revocations.revoked_at(conn, user_id)

        # iat has one-second resolution; revocation is in ms
        if revoked_at is not None and claims["iat"] * 1000 <= revoked_at:
            logger.info("Rejected revoked credential", extra={"user_id": user_id})
            raise AuthenticationError("Invalid token.")

        return user_id
