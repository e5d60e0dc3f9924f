"""
Shared infrastructure for the Members Portal backend.

This package contains cross-cutting concerns that are used by multiple modules:
- config: Centralized settings management
- database: Supabase client factory
- exceptions: Base exception classes
- models: Role and session snapshot models

Note: Business logic should NOT go here. This is for infrastructure only.
"""

from .config import Settings, get_settings
from .database import get_supabase_client, check_connection, reset_client_cache
from .exceptions import (
    PortalError,
    NotFoundError,
    ValidationError,
    ConflictError,
    AuthenticationError,
    AuthorizationError,
    StorageError,
)
from .models import Role, UserSnapshot

__all__ = [
    "Settings",
    "get_settings",
    "get_supabase_client",
    "check_connection",
    "reset_client_cache",
    "PortalError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "AuthenticationError",
    "AuthorizationError",
    "StorageError",
    "Role",
    "UserSnapshot",
]
