"""
Shared data models used across modules.

These models are shared infrastructure, not business logic.
Module-specific models should stay in their respective module directories.
"""

from enum import Enum

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Coarse authorization tag."""

    USER = "user"
    ADMIN = "admin"


class UserSnapshot(BaseModel):
    """
    Point-in-time copy of a user embedded in a session.

    This is display data only. It is captured at login and may go stale
    if an admin changes the underlying record; authorization decisions
    re-read the credential store instead of trusting it.
    """

    name: str = Field(..., description="Display name at time of login")
    email: str = Field(..., description="User's email address")
    role: Role = Field(default=Role.USER, description="Role at time of login")

    model_config = {"frozen": True}
