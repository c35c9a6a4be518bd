"""
Error types for the Flock server.

Every operation either fully applies and returns the resulting entity, or
raises exactly one of these categorized errors:
- FlockError: Base exception
- ValidationError: Missing or blank required input
- NotFoundError: Referenced entity is absent
- AuthorizationError: Actor lacks ownership/rights over the target
- ConflictError: Action already applied (already following, not following)
- SelfReferenceError: Actor targeted themselves where that is forbidden
- AuthenticationError: Missing, invalid or expired credential
- InternalError: Store or collaborator failure
- DeadlineExceededError / StoreBusyError: Retryable internal failures

Invariants:
    - All errors inherit from FlockError
    - Only InternalError subclasses may be retryable
    - Messages are safe to show to callers; internals go to the log
"""

from __future__ import annotations

from typing import Any


class FlockError(Exception):
    """Base exception for all Flock errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
        retryable: Whether re-running the whole operation may succeed
    """

    retryable = False

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "FLOCK_ERROR"
        self.details = details or {}


class ValidationError(FlockError):
    """Required input is missing or blank."""

    def __init__(self, message: str, field_name: str | None = None) -> None:
        super().__init__(message, code="VALIDATION_ERROR", details={"field": field_name})
        self.field_name = field_name


class NotFoundError(FlockError):
    """Referenced entity does not exist.

    Raised when:
    - User doesn't exist
    - Post doesn't exist
    """

    def __init__(self, message: str, resource_type: str, resource_id: str) -> None:
        super().__init__(
            message,
            code="NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id},
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class AuthorizationError(FlockError):
    """Actor is not allowed to act on the target."""

    def __init__(self, message: str, actor: str, resource_id: str) -> None:
        super().__init__(
            message,
            code="FORBIDDEN",
            details={"actor": actor, "resource_id": resource_id},
        )
        self.actor = actor
        self.resource_id = resource_id


class ConflictError(FlockError):
    """The requested state transition was already applied."""

    def __init__(self, message: str, code: str = "CONFLICT") -> None:
        super().__init__(message, code=code)


class SelfReferenceError(ConflictError):
    """Actor and target are the same user."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="SELF_REFERENCE")


class AuthenticationError(FlockError):
    """Credential is missing, invalid, expired or revoked."""

    def __init__(self, message: str = "User not authenticated.") -> None:
        super().__init__(message, code="UNAUTHENTICATED")


class InternalError(FlockError):
    """Durable store or collaborator failure."""

    def __init__(self, message: str = "Internal Server Error", code: str = "INTERNAL") -> None:
        super().__init__(message, code=code)


class DeadlineExceededError(InternalError):
    """The operation ran out of time before it could commit.

    Nothing was applied; the caller may retry.
    """

    retryable = True

    def __init__(self, message: str = "Operation deadline exceeded") -> None:
        super().__init__(message, code="DEADLINE_EXCEEDED")


class StoreBusyError(InternalError):
    """The store could not acquire its write lock in time."""

    retryable = True

    def __init__(self, message: str = "Store is busy") -> None:
        super().__init__(message, code="STORE_BUSY")
