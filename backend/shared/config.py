"""
Centralized configuration for the Members Portal backend.

All settings are loaded from environment variables with sensible defaults.
The settings object is built once at startup and handed to the services
that need it; the auth core never reads the environment itself.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


MIN_SESSION_TTL_SECONDS = 60

# Placeholder only; startup refuses it unless debug is on
DEFAULT_SESSION_SECRET = "change-me-session-secret"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Members Portal"
    app_version: str = "0.1.0"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    reload: bool = False

    # Sessions
    session_secret: str = DEFAULT_SESSION_SECRET
    session_store_secret: str = ""  # Fernet key; empty stores payloads unencrypted
    session_ttl_seconds: int = 3600
    session_cookie_name: str = "portal_session"
    cookie_secure: bool = False

    # Backends
    session_backend: Literal["memory", "supabase"] = "memory"
    credential_backend: Literal["memory", "supabase"] = "memory"

    # Feature flags
    enable_roles: bool = True

    # Password hashing (bcrypt cost factor)
    bcrypt_rounds: int = 12

    # Supabase
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    supabase_db_url: str = ""  # direct Postgres URI, used by run_migrations.py

    # Initial admin account, created on startup when absent
    admin_initial_name: str = "admin"
    admin_initial_email: Optional[str] = None
    admin_initial_password: Optional[str] = None

    # Images shown on the members page (relative to /static)
    member_images: list[str] = ["fluffy.svg", "socks.svg", "whiskers.svg"]

    @field_validator("session_ttl_seconds")
    @classmethod
    def _floor_session_ttl(cls, value: int) -> int:
        return max(value, MIN_SESSION_TTL_SECONDS)

    @field_validator("bcrypt_rounds")
    @classmethod
    def _check_bcrypt_rounds(cls, value: int) -> int:
        if not 4 <= value <= 31:
            raise ValueError("bcrypt_rounds must be between 4 and 31")
        return value

    @property
    def uses_supabase(self) -> bool:
        """Whether any store is backed by Supabase."""
        return "supabase" in (self.session_backend, self.credential_backend)

    def check_session_secret(self) -> None:
        """
        Refuse the placeholder cookie-signing secret outside debug mode.

        Raises:
            RuntimeError: If SESSION_SECRET is unset or empty and debug is off
        """
        if self.debug:
            return
        if not self.session_secret or self.session_secret == DEFAULT_SESSION_SECRET:
            raise RuntimeError(
                "SESSION_SECRET is not configured. "
                "Set it to a long random value, or enable DEBUG for local development."
            )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
