"""
Authentication module data models.

These models define the data structures used by the auth module
and exposed to other modules through the interface.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from shared.models import Role, UserSnapshot


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UserRecord(BaseModel):
    """
    A user as stored in the credential store.

    Email is the unique key and is compared case-sensitively.
    """

    email: str = Field(..., description="Unique email address")
    name: str = Field(..., description="Display name")
    password_hash: str = Field(..., description="bcrypt hash of the password")
    role: Role = Field(default=Role.USER, description="Authoritative role")
    created_at: datetime = Field(default_factory=utc_now)

    def snapshot(self) -> UserSnapshot:
        """Copy the fields a session carries for display."""
        return UserSnapshot(name=self.name, email=self.email, role=self.role)


class UserSummary(BaseModel):
    """Name and role pair used by the admin listing."""

    name: str
    role: Role


class SessionRecord(BaseModel):
    """
    Server-side session state resolved from a cookie token.

    The embedded user is a snapshot taken at login, not a live reference.
    """

    token: str = Field(..., description="Opaque session token")
    authenticated: bool = Field(default=False)
    user: UserSnapshot | None = Field(default=None, description="Snapshot at login")
    expires_at: datetime = Field(..., description="Absolute expiry (UTC)")

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utc_now()) >= self.expires_at

    def to_payload(self) -> dict[str, Any]:
        """Serialize everything except the token for the session store."""
        return self.model_dump(mode="json", exclude={"token"})

    @classmethod
    def from_payload(cls, token: str, payload: dict[str, Any]) -> "SessionRecord":
        return cls(token=token, **payload)
