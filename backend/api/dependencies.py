"""
Dependency injection setup for FastAPI.

This module provides the "container" that wires together the auth core
and its stores. The settings object is read once here and passed by
reference into every service; nothing below the container touches the
environment.
"""

from typing import TYPE_CHECKING

from shared.config import Settings, get_settings

# Type checking imports for interfaces (avoids circular imports)
if TYPE_CHECKING:
    from modules.auth.interfaces import ICredentialStore, ISessionStore
    from modules.auth.service import AuthService


class ServiceContainer:
    """
    Container for all service instances.

    Stores are chosen by the `credential_backend` and `session_backend`
    settings and created lazily on first access. All instances are cached
    as singletons within the container. Use reset() to clear them.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._credential_store: "ICredentialStore | None" = None
        self._session_store: "ISessionStore | None" = None
        self._auth_service: "AuthService | None" = None

    @property
    def credential_store(self) -> "ICredentialStore":
        """Get the credential store instance."""
        if self._credential_store is None:
            if self.settings.credential_backend == "supabase":
                from modules.auth.stores import SupabaseCredentialStore
                from shared.database import get_supabase_client
                self._credential_store = SupabaseCredentialStore(get_supabase_client())
            else:
                from modules.auth.stores import InMemoryCredentialStore
                self._credential_store = InMemoryCredentialStore()
        return self._credential_store

    @property
    def session_store(self) -> "ISessionStore":
        """Get the session store instance."""
        if self._session_store is None:
            if self.settings.session_backend == "supabase":
                from modules.auth.stores import SupabaseSessionStore
                from shared.database import get_supabase_client
                self._session_store = SupabaseSessionStore(
                    get_supabase_client(),
                    secret=self.settings.session_store_secret,
                )
            else:
                from modules.auth.stores import InMemorySessionStore
                self._session_store = InMemorySessionStore()
        return self._session_store

    @property
    def auth(self) -> "AuthService":
        """Get the auth service instance."""
        if self._auth_service is None:
            from modules.auth.service import AuthService
            self._auth_service = AuthService(
                settings=self.settings,
                credentials=self.credential_store,
                sessions=self.session_store,
            )
        return self._auth_service

    def reset(self) -> None:
        """
        Reset all cached services.

        This is primarily for testing - allows tests to get fresh
        service instances with empty in-memory stores.
        """
        self._credential_store = None
        self._session_store = None
        self._auth_service = None


# Module-level container singleton
_container: ServiceContainer | None = None


def get_container() -> ServiceContainer:
    """Get the singleton service container."""
    global _container
    if _container is None:
        _container = ServiceContainer(get_settings())
    return _container


def init_container(settings: Settings) -> ServiceContainer:
    """Install a fresh container built from explicit settings."""
    global _container
    _container = ServiceContainer(settings)
    return _container


def reset_container() -> None:
    """
    Reset the service container.

    This clears the cached container, so the next call to get_container()
    will create a fresh container with new service instances.

    Primarily used for testing.
    """
    global _container
    _container = None


# FastAPI dependency functions
# These are the functions that should be used in route Depends() calls


def get_app_settings() -> Settings:
    """FastAPI dependency for the container's settings."""
    return get_container().settings


def get_auth_service() -> "AuthService":
    """FastAPI dependency for auth service."""
    return get_container().auth


def get_credential_store() -> "ICredentialStore":
    """FastAPI dependency for the credential store."""
    return get_container().credential_store
