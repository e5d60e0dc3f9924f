"""
Authentication module.

Handles signup/login, session lifecycle and role-based authorization.

Public API:
- IAuthService, ICredentialStore, ISessionStore: Interfaces
- AuthService: The auth core
- UserRecord, SessionRecord, UserSummary: Models
- Auth exceptions: DuplicateUserError, UserNotFoundError, etc.
"""

from .interfaces import IAuthService, ICredentialStore, ISessionStore
from .models import SessionRecord, UserRecord, UserSummary
from .service import AuthService
from .exceptions import (
    DuplicateUserError,
    UserNotFoundError,
    InvalidCredentialsError,
    NotAuthenticatedError,
    ForbiddenError,
)

__all__ = [
    # Interfaces
    "IAuthService",
    "ICredentialStore",
    "ISessionStore",
    # Service
    "AuthService",
    # Models
    "SessionRecord",
    "UserRecord",
    "UserSummary",
    # Exceptions
    "DuplicateUserError",
    "UserNotFoundError",
    "InvalidCredentialsError",
    "NotAuthenticatedError",
    "ForbiddenError",
]
