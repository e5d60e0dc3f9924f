"""
Members Portal API package.

Provides the FastAPI application serving the signup, login, members and
admin pages.
"""

from .app import app, create_app

__all__ = ["app", "create_app"]
