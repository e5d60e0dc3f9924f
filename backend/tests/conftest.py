"""
Shared test fixtures and utilities.

This module provides common test infrastructure used across all test modules.
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from api.dependencies import reset_container
from modules.auth.models import SessionRecord
from modules.auth.service import AuthService
from modules.auth.stores import InMemoryCredentialStore, InMemorySessionStore
from shared.config import Settings
from shared.models import Role, UserSnapshot


# Lowest bcrypt cost keeps hashing fast in tests
TEST_BCRYPT_ROUNDS = 4
TEST_SESSION_SECRET = "test-session-secret-for-testing-only"


def make_settings(**overrides) -> Settings:
    """Build settings for tests without reading .env."""
    values = {
        "session_secret": TEST_SESSION_SECRET,
        "bcrypt_rounds": TEST_BCRYPT_ROUNDS,
        "session_backend": "memory",
        "credential_backend": "memory",
        "admin_initial_email": None,
        "admin_initial_password": None,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_session(
    name: str = "alice",
    email: str = "a@x.io",
    role: Role = Role.USER,
    token: str = "test-token",
    authenticated: bool = True,
    expired: bool = False,
) -> SessionRecord:
    """Create a session record without going through a store."""
    now = datetime.now(timezone.utc)
    return SessionRecord(
        token=token,
        authenticated=authenticated,
        user=UserSnapshot(name=name, email=email, role=role),
        expires_at=now - timedelta(minutes=1) if expired else now + timedelta(hours=1),
    )


@pytest.fixture(autouse=True)
def reset_services():
    """Reset the service container before and after each test."""
    reset_container()
    yield
    reset_container()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def credential_store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def service(settings, credential_store, session_store) -> AuthService:
    """Auth service over fresh in-memory stores."""
    return AuthService(
        settings=settings,
        credentials=credential_store,
        sessions=session_store,
    )


@pytest.fixture
def client(settings) -> TestClient:
    """
    Test client for an app built from test settings.

    Redirects are not followed so tests can assert on them.
    """
    from api.app import create_app

    app = create_app(settings)
    with TestClient(app, follow_redirects=False) as test_client:
        yield test_client
