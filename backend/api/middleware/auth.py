"""
Session cookie handling.

The cookie carries the opaque session token signed with the application
session secret. Route dependencies resolve it through the auth service and
apply the authenticated / admin gates.
"""

from typing import Optional

from fastapi import Depends, Request
from itsdangerous import BadSignature, URLSafeTimedSerializer

from modules.auth.exceptions import ForbiddenError, UserNotFoundError
from modules.auth.models import SessionRecord
from modules.auth.service import AuthService
from shared.config import Settings
from shared.models import Role

from ..dependencies import get_app_settings, get_auth_service

SESSION_SALT = "portal-session-v1"


def _serializer(settings: Settings) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key=settings.session_secret, salt=SESSION_SALT)


def sign_token(settings: Settings, token: str) -> str:
    """Sign a session token for use as a cookie value."""
    return _serializer(settings).dumps(token)


def unsign_token(settings: Settings, value: Optional[str]) -> Optional[str]:
    """Return the token from a signed cookie value, or None if tampered or stale."""
    if not value:
        return None
    try:
        token = _serializer(settings).loads(value, max_age=settings.session_ttl_seconds)
    except BadSignature:
        return None
    return token if isinstance(token, str) else None


def session_cookie_kwargs(settings: Settings, value: str) -> dict:
    return {
        "key": settings.session_cookie_name,
        "value": value,
        "max_age": settings.session_ttl_seconds,
        "httponly": True,
        "secure": settings.cookie_secure,
        "samesite": "lax",
        "path": "/",
    }


def clear_session_cookie_kwargs(settings: Settings) -> dict:
    return {
        "key": settings.session_cookie_name,
        "value": "",
        "max_age": 0,
        "httponly": True,
        "secure": settings.cookie_secure,
        "samesite": "lax",
        "path": "/",
    }


async def get_current_session(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    service: AuthService = Depends(get_auth_service),
) -> Optional[SessionRecord]:
    """
    Dependency that resolves the session if one is present.

    Use this for pages that render differently for anonymous visitors.
    """
    token = unsign_token(settings, request.cookies.get(settings.session_cookie_name))
    return await service.resolve_session(token)


async def require_session(
    session: Optional[SessionRecord] = Depends(get_current_session),
    service: AuthService = Depends(get_auth_service),
) -> SessionRecord:
    """
    Dependency that requires an authenticated session.

    Raises NotAuthenticatedError, which the app turns into a redirect.
    """
    return await service.require_authenticated(session)


async def require_admin(
    session: Optional[SessionRecord] = Depends(get_current_session),
    service: AuthService = Depends(get_auth_service),
) -> SessionRecord:
    """
    Dependency that requires the stored role to be admin.

    A session whose user has been removed is forbidden, not unauthenticated.
    """
    try:
        return await service.require_role(session, Role.ADMIN)
    except UserNotFoundError as e:
        raise ForbiddenError(Role.ADMIN.value, "none") from e
