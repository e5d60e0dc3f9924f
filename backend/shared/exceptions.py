"""
Error taxonomy for the Members Portal.

The auth module raises subclasses of these; api/errors.py maps each base
class to an error page with a link back to the form the user came from.
"""

from typing import Optional, Any


class PortalError(Exception):
    """
    Root of every error the portal raises on purpose.

    `code` is a stable machine-readable tag (defaults to the class name) and
    `details` carries context for the logs. Neither is shown to users.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or type(self).__name__
        self.details = dict(details) if details else {}

    def to_dict(self) -> dict[str, Any]:
        """Structured form used when logging the error."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(PortalError):
    """Submitted form data broke a field constraint. Rendered as 400."""


class ConflictError(PortalError):
    """A record with the same unique key already exists. Rendered as 409."""


class NotFoundError(PortalError):
    """The record an admin action refers to does not exist. Rendered as 404."""


class AuthenticationError(PortalError):
    """The caller could not be identified: bad credentials or no session."""


class AuthorizationError(PortalError):
    """The caller is known but their stored role does not allow the action."""


class StorageError(PortalError):
    """
    A credential or session store failed.

    `service` names the backend ("supabase", "sessions") and is copied into
    `details`. Users only ever see a generic message for these.
    """

    def __init__(
        self,
        message: str,
        service: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)
        self.service = service
        self.details["service"] = service
