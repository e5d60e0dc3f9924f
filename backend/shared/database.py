"""
Database client factory for Supabase.

Provides the service-role client used by the persistent credential and
session stores.
"""

import logging
from typing import Optional
from supabase import create_client, Client

from .config import get_settings
from .exceptions import StorageError

logger = logging.getLogger(__name__)

# Module-level client cache
_service_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """
    Get Supabase client with service role (bypasses RLS).

    Returns:
        Supabase client configured with service role key
    """
    global _service_client

    if _service_client is None:
        settings = get_settings()
        if not settings.supabase_url or not settings.supabase_service_role_key:
            raise RuntimeError(
                "Supabase configuration missing. "
                "Set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY environment variables."
            )
        _service_client = create_client(
            settings.supabase_url,
            settings.supabase_service_role_key,
        )

    return _service_client


def check_connection(client: Client) -> None:
    """
    Issue a trivial query to prove the database is reachable.

    Raises:
        StorageError: If the query fails for any reason
    """
    try:
        client.table("users").select("email").limit(1).execute()
    except Exception as e:
        logger.critical("Database connection check failed: %s", e)
        raise StorageError(
            "Could not connect to the database",
            service="supabase",
            details={"reason": str(e)},
        ) from e


def reset_client_cache() -> None:
    """
    Reset the cached database client.

    Useful for testing or when configuration changes.
    """
    global _service_client
    _service_client = None
