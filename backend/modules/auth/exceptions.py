"""
Authentication module exceptions.

These exceptions are raised by the auth module and can be caught
by API error handlers to return appropriate HTTP responses.
"""

from shared.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    StorageError,
    ValidationError,
)


class DuplicateUserError(ConflictError):
    """Raised when signing up with an email that is already registered."""

    def __init__(self, email: str):
        super().__init__(
            "A user with this email already exists",
            code="DUPLICATE_USER",
            details={"email": email},
        )


class UserNotFoundError(AuthenticationError):
    """Raised when a user lookup by email or name finds nothing."""

    def __init__(self, identifier: str):
        super().__init__(
            f"User not found: {identifier}",
            code="USER_NOT_FOUND",
            details={"identifier": identifier},
        )


class InvalidCredentialsError(AuthenticationError):
    """Raised when a password does not match the stored hash."""

    def __init__(self, message: str = "Invalid email/password combination"):
        super().__init__(message, code="INVALID_CREDENTIALS")


class NotAuthenticatedError(AuthenticationError):
    """Raised when a protected resource is requested without a live session."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, code="NOT_AUTHENTICATED")


class ForbiddenError(AuthorizationError):
    """Raised when the authoritative role does not match the required one."""

    def __init__(self, required_role: str, user_role: str):
        super().__init__(
            f"Insufficient permissions. Required: {required_role}, has: {user_role}",
            code="FORBIDDEN",
            details={"required_role": required_role, "user_role": user_role},
        )


__all__ = [
    "ValidationError",
    "StorageError",
    "DuplicateUserError",
    "UserNotFoundError",
    "InvalidCredentialsError",
    "NotAuthenticatedError",
    "ForbiddenError",
]
