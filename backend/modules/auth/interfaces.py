"""
Authentication module interfaces.

Other modules should depend on these protocols, not the concrete
implementations. This enables testing with in-memory stores and swapping
the persistent backend without touching the auth core.
"""

from typing import Any, Optional, Protocol, runtime_checkable

from shared.models import Role

from .models import SessionRecord, UserRecord, UserSummary


@runtime_checkable
class ICredentialStore(Protocol):
    """Persistent collection of user records keyed by email."""

    async def find_by_email(self, email: str) -> Optional[UserRecord]:
        """Return the user with this exact email, or None."""
        ...

    async def find_by_name(self, name: str) -> Optional[UserRecord]:
        """Return the first user with this display name, or None."""
        ...

    async def insert(self, user: UserRecord) -> UserRecord:
        """
        Insert a user if no record with the same email exists.

        The check and the insert must be atomic.

        Raises:
            DuplicateUserError: If the email is already taken
            StorageError: If the backing store fails
        """
        ...

    async def update_role(self, name: str, role: Role) -> UserRecord:
        """
        Set the role of the user with this display name.

        Raises:
            UserNotFoundError: If no user has this name
            StorageError: If the backing store fails
        """
        ...

    async def list_all(self) -> list[UserSummary]:
        """Return name and role for every user."""
        ...

    async def count(self) -> int:
        """Return the number of stored users."""
        ...


@runtime_checkable
class ISessionStore(Protocol):
    """Key-value store mapping opaque tokens to session payloads."""

    async def create(self, payload: dict[str, Any], ttl_seconds: int) -> str:
        """Store a payload and return the newly generated token."""
        ...

    async def read(self, token: str) -> Optional[dict[str, Any]]:
        """Return the payload for a live token, or None if absent or expired."""
        ...

    async def write(self, token: str, payload: dict[str, Any]) -> None:
        """Replace the payload of an existing token (last writer wins)."""
        ...

    async def destroy(self, token: str) -> None:
        """
        Delete a token.

        Raises:
            StorageError: If the backing store fails
        """
        ...


@runtime_checkable
class IAuthService(Protocol):
    """
    Interface for authentication operations.

    This protocol defines the contract that the auth module exposes
    to the HTTP layer. Implementations must provide all these methods.
    """

    async def validate_signup(self, name: str, email: str, password: str) -> SessionRecord:
        """Register a new user and return an authenticated session."""
        ...

    async def validate_login(self, email: str, password: str) -> SessionRecord:
        """Check credentials and return an authenticated session."""
        ...

    async def resolve_session(self, token: Optional[str]) -> Optional[SessionRecord]:
        """Look up the session for a token, or None."""
        ...

    async def require_authenticated(self, session: Optional[SessionRecord]) -> SessionRecord:
        """Pass an authenticated session through or raise NotAuthenticatedError."""
        ...

    async def require_role(self, session: Optional[SessionRecord], role: Role) -> SessionRecord:
        """Authorize against the stored role, refreshing the session's cached role."""
        ...

    async def logout(self, session: SessionRecord | str) -> None:
        """Destroy the session record."""
        ...

    async def update_user_role(
        self, admin_session: Optional[SessionRecord], target_name: str, new_role: Role | str
    ) -> UserRecord:
        """Change another user's role (admin only)."""
        ...

    async def list_users(self, admin_session: Optional[SessionRecord]) -> list[UserSummary]:
        """List users with their roles (admin only)."""
        ...
