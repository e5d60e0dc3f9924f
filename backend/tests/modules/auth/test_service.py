import asyncio
from datetime import timedelta

import pytest
from unittest.mock import AsyncMock

from modules.auth.exceptions import (
    DuplicateUserError,
    ForbiddenError,
    InvalidCredentialsError,
    NotAuthenticatedError,
    UserNotFoundError,
)
from modules.auth.models import SessionRecord, UserRecord, utc_now
from modules.auth.passwords import hash_password
from modules.auth.service import AuthService
from shared.exceptions import StorageError, ValidationError
from shared.models import Role

from tests.conftest import TEST_BCRYPT_ROUNDS, make_session, make_settings


async def _seed_admin(credential_store, name="root", email="root@x.io", password="rootpw"):
    admin = UserRecord(
        email=email,
        name=name,
        password_hash=hash_password(password, TEST_BCRYPT_ROUNDS),
        role=Role.ADMIN,
    )
    return await credential_store.insert(admin)


class TestValidateSignup:
    @pytest.mark.asyncio
    async def test_signup_creates_user_and_session(self, service, credential_store):
        """Should store the user with role user and return an authenticated session."""
        session = await service.validate_signup("alice", "a@x.io", "pw1")

        assert session.authenticated is True
        assert session.token
        assert session.user.name == "alice"
        assert session.user.email == "a@x.io"
        assert session.user.role == Role.USER

        stored = await credential_store.find_by_email("a@x.io")
        assert stored is not None
        assert stored.role == Role.USER

    @pytest.mark.asyncio
    async def test_password_is_never_stored_in_plaintext(self, service, credential_store):
        """Stored hash should differ from the password."""
        await service.validate_signup("alice", "a@x.io", "pw1")
        stored = await credential_store.find_by_email("a@x.io")
        assert stored.password_hash != "pw1"
        assert "pw1" not in stored.password_hash

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, service, credential_store):
        """Second signup with the same email should fail and leave one record."""
        await service.validate_signup("alice", "a@x.io", "pw1")

        with pytest.raises(DuplicateUserError):
            await service.validate_signup("bob", "a@x.io", "pw2")

        assert await credential_store.count() == 1
        stored = await credential_store.find_by_email("a@x.io")
        assert stored.name == "alice"

    @pytest.mark.asyncio
    async def test_email_is_case_sensitive(self, service, credential_store):
        """Emails differing only by case are different keys."""
        await service.validate_signup("alice", "a@x.io", "pw1")
        await service.validate_signup("alice2", "A@x.io", "pw1")
        assert await credential_store.count() == 2

    @pytest.mark.asyncio
    async def test_concurrent_signups_one_wins(self, service, credential_store):
        """Concurrent signups with one email should create exactly one record."""
        results = await asyncio.gather(
            *(service.validate_signup(f"user{i}", "race@x.io", "pw") for i in range(5)),
            return_exceptions=True,
        )

        successes = [r for r in results if isinstance(r, SessionRecord)]
        failures = [r for r in results if isinstance(r, DuplicateUserError)]
        assert len(successes) == 1
        assert len(failures) == 4
        assert await credential_store.count() == 1

    @pytest.mark.asyncio
    async def test_name_with_symbol_rejected(self, service, credential_store):
        """abc-123 should be rejected while abc123 is accepted."""
        with pytest.raises(ValidationError) as exc_info:
            await service.validate_signup("abc-123", "a@x.io", "pw")
        assert exc_info.value.message == "Invalid name"
        assert await credential_store.count() == 0

        session = await service.validate_signup("abc123", "a@x.io", "pw")
        assert session.user.name == "abc123"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "name,email,password",
        [
            ("", "a@x.io", "pw"),
            ("a" * 21, "a@x.io", "pw"),
            ("alice", "", "pw"),
            ("alice", "not-an-email", "pw"),
            ("alice", "a@x.io", ""),
            ("alice", "a@x.io", "p" * 21),
        ],
    )
    async def test_invalid_fields_rejected(self, service, credential_store, name, email, password):
        """Constraint violations should raise ValidationError and store nothing."""
        with pytest.raises(ValidationError):
            await service.validate_signup(name, email, password)
        assert await credential_store.count() == 0

    @pytest.mark.asyncio
    async def test_boundary_lengths_accepted(self, service):
        """20-character name and password are allowed."""
        session = await service.validate_signup("a" * 20, "a@x.io", "p" * 20)
        assert session.user.name == "a" * 20

    @pytest.mark.asyncio
    async def test_password_too_many_bytes(self, service, credential_store):
        """A 20-emoji password fits the length rule but not bcrypt; it is rejected cleanly."""
        with pytest.raises(ValidationError) as exc_info:
            await service.validate_signup("alice", "a@x.io", "\U0001F600" * 20)
        assert exc_info.value.message == "Invalid password"
        assert await credential_store.count() == 0

    @pytest.mark.asyncio
    async def test_multibyte_password_mutation_fails_login(self, service):
        """Changing the last character of a 71-byte password must fail login."""
        password = "\U0001F600" * 17 + "abc"
        await service.validate_signup("alice", "a@x.io", password)

        assert (await service.validate_login("a@x.io", password)).authenticated
        with pytest.raises(InvalidCredentialsError):
            await service.validate_login("a@x.io", password[:-1] + "e")


class TestValidateLogin:
    @pytest.mark.asyncio
    async def test_login_success(self, service):
        """Correct credentials should open a new session."""
        first = await service.validate_signup("alice", "a@x.io", "pw1")
        session = await service.validate_login("a@x.io", "pw1")

        assert session.authenticated is True
        assert session.user.name == "alice"
        assert session.token != first.token

    @pytest.mark.asyncio
    async def test_unknown_email(self, service):
        """Should raise UserNotFoundError for an unregistered email."""
        with pytest.raises(UserNotFoundError):
            await service.validate_login("nobody@x.io", "pw1")

    @pytest.mark.asyncio
    async def test_wrong_password(self, service):
        """Should raise InvalidCredentialsError for a bad password."""
        await service.validate_signup("alice", "a@x.io", "pw1")
        with pytest.raises(InvalidCredentialsError):
            await service.validate_login("a@x.io", "pw2")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("attempt", ["pw", "pw12", "Pw1", "pw2", "qw1", " pw1"])
    async def test_single_character_changes_fail(self, service, attempt):
        """Any one-character change to the password should be rejected."""
        await service.validate_signup("alice", "a@x.io", "pw1")
        with pytest.raises(InvalidCredentialsError):
            await service.validate_login("a@x.io", attempt)

    @pytest.mark.asyncio
    async def test_email_case_matters_for_login(self, service):
        """Login should not match an email with different case."""
        await service.validate_signup("alice", "a@x.io", "pw1")
        with pytest.raises(UserNotFoundError):
            await service.validate_login("A@x.io", "pw1")

    @pytest.mark.asyncio
    async def test_malformed_input(self, service):
        """Empty fields should raise ValidationError."""
        with pytest.raises(ValidationError):
            await service.validate_login("", "")


class TestSessions:
    @pytest.mark.asyncio
    async def test_resolve_round_trip(self, service):
        """A token from signup should resolve to the same user."""
        session = await service.validate_signup("alice", "a@x.io", "pw1")
        resolved = await service.resolve_session(session.token)

        assert resolved is not None
        assert resolved.user == session.user
        assert resolved.authenticated is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", [None, "", "unknown-token"])
    async def test_resolve_missing(self, service, token):
        """Missing or unknown tokens resolve to None."""
        assert await service.resolve_session(token) is None

    @pytest.mark.asyncio
    async def test_resolve_malformed_payload(self, service, session_store):
        """A payload that is not a session should resolve to None."""
        token = await session_store.create({"authenticated": "maybe"}, 60)
        assert await service.resolve_session(token) is None

    @pytest.mark.asyncio
    async def test_resolve_expired_payload(self, service, session_store):
        """A payload whose expiry has passed should resolve to None."""
        expired = make_session(expired=True)
        token = await session_store.create(expired.to_payload(), 60)
        assert await service.resolve_session(token) is None

    @pytest.mark.asyncio
    async def test_require_authenticated(self, service):
        """Should pass an authenticated session through unchanged."""
        session = make_session()
        assert await service.require_authenticated(session) is session

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "session",
        [None, make_session(authenticated=False)],
    )
    async def test_require_authenticated_rejects(self, service, session):
        with pytest.raises(NotAuthenticatedError):
            await service.require_authenticated(session)

    @pytest.mark.asyncio
    async def test_logout_destroys_session(self, service):
        """After logout the token no longer resolves."""
        session = await service.validate_signup("alice", "a@x.io", "pw1")
        await service.logout(session)
        assert await service.resolve_session(session.token) is None

    @pytest.mark.asyncio
    async def test_logout_accepts_token(self, service):
        session = await service.validate_signup("alice", "a@x.io", "pw1")
        await service.logout(session.token)
        assert await service.resolve_session(session.token) is None

    @pytest.mark.asyncio
    async def test_logout_wraps_store_failure(self, settings, credential_store):
        """Unexpected store errors should surface as StorageError."""
        sessions = AsyncMock()
        sessions.destroy.side_effect = RuntimeError("disk full")
        service = AuthService(settings, credential_store, sessions)

        with pytest.raises(StorageError) as exc_info:
            await service.logout("some-token")
        assert exc_info.value.service == "sessions"

    @pytest.mark.asyncio
    async def test_session_ttl_from_settings(self, credential_store, session_store):
        """Session expiry should follow session_ttl_seconds."""
        service = AuthService(make_settings(session_ttl_seconds=120), credential_store, session_store)
        session = await service.validate_signup("alice", "a@x.io", "pw1")
        remaining = session.expires_at - utc_now()
        assert timedelta(seconds=100) < remaining <= timedelta(seconds=120)


class TestRequireRole:
    @pytest.mark.asyncio
    async def test_admin_passes(self, service, credential_store):
        await _seed_admin(credential_store)
        session = await service.validate_login("root@x.io", "rootpw")
        result = await service.require_role(session, Role.ADMIN)
        assert result.user.role == Role.ADMIN

    @pytest.mark.asyncio
    async def test_user_forbidden(self, service):
        session = await service.validate_signup("alice", "a@x.io", "pw1")
        with pytest.raises(ForbiddenError):
            await service.require_role(session, "admin")

    @pytest.mark.asyncio
    async def test_stale_admin_snapshot_is_not_trusted(self, service, credential_store):
        """A session claiming admin should fail when the stored role is user."""
        await service.validate_signup("alice", "a@x.io", "pw1")
        forged = make_session(name="alice", email="a@x.io", role=Role.ADMIN)

        with pytest.raises(ForbiddenError):
            await service.require_role(forged, Role.ADMIN)

    @pytest.mark.asyncio
    async def test_promotion_takes_effect_for_existing_session(self, service, credential_store):
        """A user promoted after login passes the admin gate and the snapshot is refreshed."""
        session = await service.validate_signup("alice", "a@x.io", "pw1")
        assert session.user.role == Role.USER

        await credential_store.update_role("alice", Role.ADMIN)
        refreshed = await service.require_role(session, Role.ADMIN)

        assert refreshed.user.role == Role.ADMIN
        resolved = await service.resolve_session(session.token)
        assert resolved.user.role == Role.ADMIN

    @pytest.mark.asyncio
    async def test_deleted_user(self, service):
        """A session for a user that no longer exists raises UserNotFoundError."""
        with pytest.raises(UserNotFoundError):
            await service.require_role(make_session(email="ghost@x.io"), Role.USER)

    @pytest.mark.asyncio
    async def test_unauthenticated(self, service):
        with pytest.raises(NotAuthenticatedError):
            await service.require_role(None, Role.ADMIN)

    @pytest.mark.asyncio
    async def test_unknown_role(self, service):
        with pytest.raises(ValidationError) as exc_info:
            await service.require_role(make_session(), "superuser")
        assert exc_info.value.code == "INVALID_ROLE"


class TestAdministration:
    @pytest.mark.asyncio
    async def test_update_user_role(self, service, credential_store):
        await _seed_admin(credential_store)
        admin = await service.validate_login("root@x.io", "rootpw")
        await service.validate_signup("bob", "b@x.io", "pw")

        updated = await service.update_user_role(admin, "bob", "admin")

        assert updated.role == Role.ADMIN
        assert (await credential_store.find_by_email("b@x.io")).role == Role.ADMIN

    @pytest.mark.asyncio
    async def test_update_requires_admin(self, service, credential_store):
        alice = await service.validate_signup("alice", "a@x.io", "pw1")
        await service.validate_signup("bob", "b@x.io", "pw")

        with pytest.raises(ForbiddenError):
            await service.update_user_role(alice, "bob", Role.ADMIN)
        assert (await credential_store.find_by_email("b@x.io")).role == Role.USER

    @pytest.mark.asyncio
    async def test_update_unknown_user(self, service, credential_store):
        await _seed_admin(credential_store)
        admin = await service.validate_login("root@x.io", "rootpw")
        with pytest.raises(UserNotFoundError):
            await service.update_user_role(admin, "nobody", Role.ADMIN)

    @pytest.mark.asyncio
    async def test_update_unknown_role(self, service, credential_store):
        await _seed_admin(credential_store)
        admin = await service.validate_login("root@x.io", "rootpw")
        with pytest.raises(ValidationError):
            await service.update_user_role(admin, "root", "owner")

    @pytest.mark.asyncio
    async def test_duplicate_names_update_earliest(self, service, credential_store):
        """With two users named bob, only the first one is updated."""
        await _seed_admin(credential_store)
        admin = await service.validate_login("root@x.io", "rootpw")
        await service.validate_signup("bob", "b1@x.io", "pw")
        await service.validate_signup("bob", "b2@x.io", "pw")

        await service.update_user_role(admin, "bob", Role.ADMIN)

        assert (await credential_store.find_by_email("b1@x.io")).role == Role.ADMIN
        assert (await credential_store.find_by_email("b2@x.io")).role == Role.USER

    @pytest.mark.asyncio
    async def test_list_users(self, service, credential_store):
        await _seed_admin(credential_store)
        admin = await service.validate_login("root@x.io", "rootpw")
        await service.validate_signup("alice", "a@x.io", "pw1")

        users = await service.list_users(admin)

        assert [(u.name, u.role) for u in users] == [("root", Role.ADMIN), ("alice", Role.USER)]

    @pytest.mark.asyncio
    async def test_list_users_requires_admin(self, service):
        alice = await service.validate_signup("alice", "a@x.io", "pw1")
        with pytest.raises(ForbiddenError):
            await service.list_users(alice)


class TestEnsureAdminUser:
    @pytest.mark.asyncio
    async def test_creates_admin(self, service, credential_store):
        admin = await service.ensure_admin_user("root", "root@x.io", "rootpw")
        assert admin is not None
        assert admin.role == Role.ADMIN
        assert (await credential_store.find_by_email("root@x.io")).role == Role.ADMIN

    @pytest.mark.asyncio
    async def test_skips_when_unconfigured(self, service, credential_store):
        assert await service.ensure_admin_user("root", None, None) is None
        assert await credential_store.count() == 0

    @pytest.mark.asyncio
    async def test_skips_existing(self, service, credential_store):
        await service.validate_signup("root", "root@x.io", "pw")
        assert await service.ensure_admin_user("root", "root@x.io", "rootpw") is None
        assert (await credential_store.find_by_email("root@x.io")).role == Role.USER


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_alice_journey(self, service, credential_store):
        """Signup, logout, bad login, good login, promotion."""
        session = await service.validate_signup("alice", "a@x.io", "pw1")
        assert (await service.resolve_session(session.token)).user.name == "alice"

        await service.logout(session)
        assert await service.resolve_session(session.token) is None

        with pytest.raises(InvalidCredentialsError):
            await service.validate_login("a@x.io", "wrong")

        session = await service.validate_login("a@x.io", "pw1")
        with pytest.raises(ForbiddenError):
            await service.require_role(session, Role.ADMIN)

        await _seed_admin(credential_store)
        admin = await service.validate_login("root@x.io", "rootpw")
        await service.update_user_role(admin, "alice", Role.ADMIN)

        # The existing session still carries the old snapshot, but the gate
        # reads the stored role.
        assert session.user.role == Role.USER
        assert (await service.resolve_session(session.token)).user.role == Role.USER
        promoted = await service.require_role(session, Role.ADMIN)
        assert promoted.user.role == Role.ADMIN

        fresh = await service.validate_login("a@x.io", "pw1")
        assert fresh.user.role == Role.ADMIN

    @pytest.mark.asyncio
    async def test_signup_then_promotion(self, service, credential_store):
        session = await service.validate_signup("alice", "alice@x.com", "secret1")
        assert session.authenticated is True
        assert session.user.role == Role.USER

        await _seed_admin(credential_store)
        admin = await service.validate_login("root@x.io", "rootpw")
        await service.update_user_role(admin, "alice", "admin")

        stale = await service.resolve_session(session.token)
        assert stale.user.role == Role.USER

        fresh = await service.validate_login("alice@x.com", "secret1")
        assert fresh.user.role == Role.ADMIN
