"""
Exception handlers.

Maps portal exceptions to HTML error pages. Every page links back to the
form the failing request came from.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import RedirectResponse

from modules.auth.exceptions import NotAuthenticatedError
from shared.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PortalError,
    StorageError,
    ValidationError,
)

from .dependencies import get_app_settings
from .views import render_error

logger = logging.getLogger(__name__)

# Where to send the user after a failed POST
BACK_LINKS = {
    "/signup-submit": "/signup",
    "/login-submit": "/login",
    "/admin/update-role": "/admin",
}

CREDENTIALS_MESSAGE = "Invalid email/password combination."
FORBIDDEN_MESSAGE = "You are not authorized to view this page."
STORAGE_MESSAGE = "Something went wrong. Please try again later."


def _back_url(request: Request) -> str:
    return BACK_LINKS.get(request.url.path, "/")


async def not_authenticated_handler(request: Request, exc: NotAuthenticatedError):
    return RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)


async def validation_handler(request: Request, exc: ValidationError):
    return render_error(get_app_settings(), exc.message, _back_url(request), status.HTTP_400_BAD_REQUEST)


async def conflict_handler(request: Request, exc: ConflictError):
    return render_error(get_app_settings(), exc.message, _back_url(request), status.HTTP_409_CONFLICT)


async def not_found_handler(request: Request, exc: NotFoundError):
    return render_error(get_app_settings(), exc.message, _back_url(request), status.HTTP_404_NOT_FOUND)


async def authentication_handler(request: Request, exc: AuthenticationError):
    # Unknown email and wrong password read the same to the user.
    return render_error(get_app_settings(), CREDENTIALS_MESSAGE, _back_url(request), status.HTTP_401_UNAUTHORIZED)


async def authorization_handler(request: Request, exc: AuthorizationError):
    return render_error(get_app_settings(), FORBIDDEN_MESSAGE, "/", status.HTTP_403_FORBIDDEN)


async def storage_handler(request: Request, exc: StorageError):
    logger.error("Storage failure on %s: %s", request.url.path, exc.to_dict())
    return render_error(get_app_settings(), STORAGE_MESSAGE, _back_url(request), status.HTTP_503_SERVICE_UNAVAILABLE)


async def portal_error_handler(request: Request, exc: PortalError):
    logger.error("Unhandled portal error on %s: %s", request.url.path, exc.to_dict())
    return render_error(get_app_settings(), STORAGE_MESSAGE, "/", status.HTTP_500_INTERNAL_SERVER_ERROR)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all portal exception handlers to the app."""
    app.add_exception_handler(NotAuthenticatedError, not_authenticated_handler)
    app.add_exception_handler(ValidationError, validation_handler)
    app.add_exception_handler(ConflictError, conflict_handler)
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(AuthenticationError, authentication_handler)
    app.add_exception_handler(AuthorizationError, authorization_handler)
    app.add_exception_handler(StorageError, storage_handler)
    app.add_exception_handler(PortalError, portal_error_handler)
