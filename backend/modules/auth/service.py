"""
Authentication service implementation.

Validates credentials, establishes and destroys sessions, and authorizes
role-gated actions. All state lives in the injected credential and session
stores; the service itself holds nothing between requests.
"""

import logging
from datetime import timedelta
from typing import Optional

import pydantic

from shared.config import Settings
from shared.exceptions import StorageError, ValidationError
from shared.models import Role

from .exceptions import (
    DuplicateUserError,
    ForbiddenError,
    InvalidCredentialsError,
    NotAuthenticatedError,
    UserNotFoundError,
)
from .interfaces import IAuthService, ICredentialStore, ISessionStore
from .models import SessionRecord, UserRecord, UserSummary, utc_now
from .passwords import hash_password, verify_password
from .validation import LoginForm, SignupForm, parse_input

logger = logging.getLogger(__name__)


class AuthService(IAuthService):
    """
    Implementation of the authentication service.

    Session records carry a snapshot of the user for display. Role checks
    never trust that snapshot: they re-read the credential store.
    """

    def __init__(
        self,
        settings: Settings,
        credentials: ICredentialStore,
        sessions: ISessionStore,
    ):
        self._settings = settings
        self._credentials = credentials
        self._sessions = sessions

    # -------------------------------------------------------------------------
    # Signup / login
    # -------------------------------------------------------------------------

    async def validate_signup(self, name: str, email: str, password: str) -> SessionRecord:
        """
        Register a new user with role `user` and open a session for them.

        Raises:
            ValidationError: If any field violates its constraints
            DuplicateUserError: If the email is already registered
            StorageError: If a store fails
        """
        form = parse_input(SignupForm, name=name, email=email, password=password)

        if await self._credentials.find_by_email(form.email) is not None:
            raise DuplicateUserError(form.email)

        user = UserRecord(
            email=form.email,
            name=form.name,
            password_hash=hash_password(form.password, self._settings.bcrypt_rounds),
            role=Role.USER,
        )
        # The store re-checks atomically; a concurrent signup that slipped
        # past the lookup above fails here with DuplicateUserError.
        user = await self._credentials.insert(user)
        logger.info("Registered user %s", user.name)

        return await self._start_session(user)

    async def validate_login(self, email: str, password: str) -> SessionRecord:
        """
        Check an email/password pair and open a session.

        Raises:
            ValidationError: If the input is malformed
            UserNotFoundError: If no user has this email
            InvalidCredentialsError: If the password does not match
        """
        form = parse_input(LoginForm, email=email, password=password)

        user = await self._credentials.find_by_email(form.email)
        if user is None:
            logger.info("Login failed: unknown email")
            raise UserNotFoundError(form.email)

        if not verify_password(form.password, user.password_hash):
            logger.info("Login failed: bad password for %s", user.name)
            raise InvalidCredentialsError()

        logger.info("Login: %s", user.name)
        return await self._start_session(user)

    # -------------------------------------------------------------------------
    # Session gates
    # -------------------------------------------------------------------------

    async def resolve_session(self, token: Optional[str]) -> Optional[SessionRecord]:
        """Look up the session for a token; None when missing, expired or corrupt."""
        if not token:
            return None

        payload = await self._sessions.read(token)
        if payload is None:
            return None

        try:
            session = SessionRecord.from_payload(token, payload)
        except pydantic.ValidationError:
            logger.warning("Ignoring malformed session payload")
            return None

        if session.is_expired():
            return None
        return session

    async def require_authenticated(self, session: Optional[SessionRecord]) -> SessionRecord:
        """
        Pass through an authenticated session.

        Raises:
            NotAuthenticatedError: If there is no session or it is not authenticated
        """
        if session is None or not session.authenticated or session.user is None:
            raise NotAuthenticatedError()
        return session

    async def require_role(self, session: Optional[SessionRecord], role: Role | str) -> SessionRecord:
        """
        Authorize a session against the user's stored role.

        The role cached in the session is refreshed from the credential store
        on success and written back to the session store.

        Raises:
            NotAuthenticatedError: If the session is not authenticated
            UserNotFoundError: If the session's user no longer exists
            ForbiddenError: If the stored role differs from the required role
        """
        required = self._coerce_role(role)
        session = await self.require_authenticated(session)

        user = await self._credentials.find_by_email(session.user.email)
        if user is None:
            raise UserNotFoundError(session.user.email)

        if user.role != required:
            raise ForbiddenError(required.value, user.role.value)

        refreshed = session.model_copy(
            update={"user": session.user.model_copy(update={"role": user.role})}
        )
        await self._sessions.write(refreshed.token, refreshed.to_payload())
        return refreshed

    async def logout(self, session: SessionRecord | str) -> None:
        """
        Destroy a session record.

        Raises:
            StorageError: If the session store fails to delete the record
        """
        token = session.token if isinstance(session, SessionRecord) else session
        if not token:
            return

        try:
            await self._sessions.destroy(token)
        except StorageError:
            raise
        except Exception as e:
            logger.error("Session destroy failed: %s", e)
            raise StorageError("Failed to end session", service="sessions") from e

    # -------------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------------

    async def update_user_role(
        self,
        admin_session: Optional[SessionRecord],
        target_name: str,
        new_role: Role | str,
    ) -> UserRecord:
        """
        Change the role of the user with the given display name.

        Sessions already held by the target keep their old snapshot until
        they are refreshed or expire.

        Raises:
            ForbiddenError / NotAuthenticatedError: If the caller is not an admin
            ValidationError: If the role is unknown
            UserNotFoundError: If no user has this name
        """
        await self.require_role(admin_session, Role.ADMIN)
        role = self._coerce_role(new_role)

        same_name = [u for u in await self._credentials.list_all() if u.name == target_name]
        if len(same_name) > 1:
            logger.warning(
                "Role update for %r matches %d users; updating the earliest",
                target_name,
                len(same_name),
            )

        user = await self._credentials.update_role(target_name, role)
        logger.info("Role of %s set to %s", user.name, role.value)
        return user

    async def list_users(self, admin_session: Optional[SessionRecord]) -> list[UserSummary]:
        """Return every user's name and role (admin only)."""
        await self.require_role(admin_session, Role.ADMIN)
        return await self._credentials.list_all()

    async def ensure_admin_user(
        self,
        name: str,
        email: Optional[str],
        password: Optional[str],
    ) -> Optional[UserRecord]:
        """
        Create the initial admin account if it is configured and absent.

        Returns the created user, or None when nothing was created.
        """
        if not email or not password:
            return None

        if await self._credentials.find_by_email(email) is not None:
            return None

        form = parse_input(SignupForm, name=name, email=email, password=password)
        admin = UserRecord(
            email=form.email,
            name=form.name,
            password_hash=hash_password(form.password, self._settings.bcrypt_rounds),
            role=Role.ADMIN,
        )
        try:
            admin = await self._credentials.insert(admin)
        except DuplicateUserError:
            return None

        logger.info("Created initial admin user %s", admin.name)
        return admin

    # -------------------------------------------------------------------------
    # Private helpers
    # -------------------------------------------------------------------------

    async def _start_session(self, user: UserRecord) -> SessionRecord:
        ttl = self._settings.session_ttl_seconds
        record = SessionRecord(
            token="",
            authenticated=True,
            user=user.snapshot(),
            expires_at=utc_now() + timedelta(seconds=ttl),
        )
        token = await self._sessions.create(record.to_payload(), ttl)
        return record.model_copy(update={"token": token})

    @staticmethod
    def _coerce_role(role: Role | str) -> Role:
        try:
            return Role(role)
        except ValueError:
            raise ValidationError(
                f"Unknown role: {role}",
                code="INVALID_ROLE",
                details={"role": str(role)},
            )
