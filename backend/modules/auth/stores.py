"""
Credential and session store implementations.

Two backends are provided for each store:
- In-memory: process-local dictionaries, for development and tests
- Supabase: the `users` and `sessions` tables (see migrations/)

The credential stores make insert-if-absent atomic so that concurrent
signups with one email can never both create a record.
"""

import asyncio
import json
import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Callable, ClassVar, Optional

from cryptography.fernet import Fernet, InvalidToken
from postgrest.exceptions import APIError
from pydantic import TypeAdapter
from supabase import Client

from shared.exceptions import StorageError
from shared.models import Role
from shared.repository import BaseRepository

from .exceptions import DuplicateUserError, UserNotFoundError
from .models import UserRecord, UserSummary, utc_now

logger = logging.getLogger(__name__)

# PostgreSQL unique_violation
UNIQUE_VIOLATION = "23505"

_datetime_adapter = TypeAdapter(datetime)

Clock = Callable[[], datetime]


def new_session_token() -> str:
    return secrets.token_urlsafe(32)


# -------------------------------------------------------------------------
# In-memory backends
# -------------------------------------------------------------------------


class InMemoryCredentialStore:
    """Credential store held in a dict keyed by email."""

    def __init__(self) -> None:
        self._users: dict[str, UserRecord] = {}
        self._lock = asyncio.Lock()

    async def find_by_email(self, email: str) -> Optional[UserRecord]:
        await asyncio.sleep(0)
        user = self._users.get(email)
        return user.model_copy() if user else None

    async def find_by_name(self, name: str) -> Optional[UserRecord]:
        await asyncio.sleep(0)
        return self._first_by_name(name)

    async def insert(self, user: UserRecord) -> UserRecord:
        async with self._lock:
            if user.email in self._users:
                raise DuplicateUserError(user.email)
            self._users[user.email] = user.model_copy()
        return user.model_copy()

    async def update_role(self, name: str, role: Role) -> UserRecord:
        async with self._lock:
            user = self._first_by_name(name)
            if user is None:
                raise UserNotFoundError(name)
            updated = user.model_copy(update={"role": role})
            self._users[updated.email] = updated
        return updated.model_copy()

    async def list_all(self) -> list[UserSummary]:
        return [UserSummary(name=u.name, role=u.role) for u in self._users.values()]

    async def count(self) -> int:
        return len(self._users)

    def _first_by_name(self, name: str) -> Optional[UserRecord]:
        # Dicts keep insertion order, so the earliest signup wins.
        for user in self._users.values():
            if user.name == name:
                return user.model_copy()
        return None


class InMemorySessionStore:
    """Session store that lives for the lifetime of the process."""

    def __init__(self, clock: Clock = utc_now) -> None:
        self._sessions: dict[str, tuple[dict[str, Any], datetime]] = {}
        self._clock = clock

    async def create(self, payload: dict[str, Any], ttl_seconds: int) -> str:
        now = self._clock()
        self._purge_expired(now)
        token = new_session_token()
        self._sessions[token] = (json.loads(json.dumps(payload)), now + timedelta(seconds=ttl_seconds))
        return token

    def _purge_expired(self, now: datetime) -> None:
        expired = [token for token, (_, expires_at) in self._sessions.items() if now >= expires_at]
        for token in expired:
            del self._sessions[token]

    async def read(self, token: str) -> Optional[dict[str, Any]]:
        await asyncio.sleep(0)
        entry = self._sessions.get(token)
        if entry is None:
            return None
        payload, expires_at = entry
        if self._clock() >= expires_at:
            del self._sessions[token]
            return None
        return json.loads(json.dumps(payload))

    async def write(self, token: str, payload: dict[str, Any]) -> None:
        entry = self._sessions.get(token)
        if entry is None:
            return
        self._sessions[token] = (json.loads(json.dumps(payload)), entry[1])

    async def destroy(self, token: str) -> None:
        self._sessions.pop(token, None)

    def __len__(self) -> int:
        return len(self._sessions)


# -------------------------------------------------------------------------
# Supabase backends
# -------------------------------------------------------------------------


def _storage_error(action: str, error: Exception) -> StorageError:
    logger.error("Supabase %s failed: %s", action, error)
    return StorageError(
        f"Storage operation failed: {action}",
        service="supabase",
        details={"action": action},
    )


class SupabaseCredentialStore(BaseRepository[UserRecord]):
    """
    Credential store backed by the `users` table.

    Email uniqueness is enforced by the table's UNIQUE constraint; a
    violation on insert is reported as DuplicateUserError.
    """

    TABLE: ClassVar[str] = "users"

    async def find_by_email(self, email: str) -> Optional[UserRecord]:
        try:
            result = self._table().select("*").eq("email", email).limit(1).execute()
        except Exception as e:
            raise _storage_error("find_by_email", e) from e
        if not result.data:
            return None
        return self._map_to_user(result.data[0])

    async def find_by_name(self, name: str) -> Optional[UserRecord]:
        try:
            result = (
                self._table()
                .select("*")
                .eq("name", name)
                .order("created_at")
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise _storage_error("find_by_name", e) from e
        if not result.data:
            return None
        return self._map_to_user(result.data[0])

    async def insert(self, user: UserRecord) -> UserRecord:
        data = user.model_dump(mode="json")
        try:
            result = self._table().insert(data).execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise DuplicateUserError(user.email) from e
            raise _storage_error("insert", e) from e
        except Exception as e:
            raise _storage_error("insert", e) from e
        return self._map_to_user(result.data[0]) if result.data else user

    async def update_role(self, name: str, role: Role) -> UserRecord:
        user = await self.find_by_name(name)
        if user is None:
            raise UserNotFoundError(name)
        try:
            # Update by the unique key so a name collision touches one row only.
            self._table().update({"role": role.value}).eq("email", user.email).execute()
        except Exception as e:
            raise _storage_error("update_role", e) from e
        return user.model_copy(update={"role": role})

    async def list_all(self) -> list[UserSummary]:
        try:
            result = self._table().select("name, role").order("created_at").execute()
        except Exception as e:
            raise _storage_error("list_all", e) from e
        return [UserSummary(name=row["name"], role=Role(row["role"])) for row in result.data]

    async def count(self) -> int:
        try:
            result = self._table().select("email", count="exact").execute()
        except Exception as e:
            raise _storage_error("count", e) from e
        return result.count or 0

    def _map_to_user(self, data: dict[str, Any]) -> UserRecord:
        """Map database row to UserRecord model."""
        return UserRecord(
            email=data["email"],
            name=data["name"],
            password_hash=data["password_hash"],
            role=Role(data.get("role") or Role.USER.value),
            created_at=data.get("created_at") or utc_now(),
        )


class SupabaseSessionStore(BaseRepository[dict]):
    """
    Session store backed by the `sessions` table.

    When a secret is configured, payloads are encrypted at rest with Fernet.
    Expired rows are deleted lazily on read.
    """

    TABLE: ClassVar[str] = "sessions"

    def __init__(self, db: Client, secret: str = "", clock: Clock = utc_now) -> None:
        super().__init__(db)
        self._fernet = Fernet(secret.encode("utf-8")) if secret else None
        self._clock = clock

    async def create(self, payload: dict[str, Any], ttl_seconds: int) -> str:
        token = new_session_token()
        expires_at = self._clock() + timedelta(seconds=ttl_seconds)
        data = {
            "token": token,
            "payload": self._encode(payload),
            "expires_at": expires_at.isoformat(),
        }
        try:
            self._table().insert(data).execute()
        except Exception as e:
            raise _storage_error("create_session", e) from e
        return token

    async def read(self, token: str) -> Optional[dict[str, Any]]:
        try:
            result = self._table().select("*").eq("token", token).limit(1).execute()
        except Exception as e:
            raise _storage_error("read_session", e) from e
        if not result.data:
            return None
        row = result.data[0]
        if self._clock() >= _datetime_adapter.validate_python(row["expires_at"]):
            await self.destroy(token)
            return None
        return self._decode(row["payload"])

    async def write(self, token: str, payload: dict[str, Any]) -> None:
        try:
            self._table().update({"payload": self._encode(payload)}).eq("token", token).execute()
        except Exception as e:
            raise _storage_error("write_session", e) from e

    async def destroy(self, token: str) -> None:
        try:
            self._table().delete().eq("token", token).execute()
        except Exception as e:
            raise _storage_error("destroy_session", e) from e

    def _encode(self, payload: dict[str, Any]) -> str:
        raw = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        if self._fernet is None:
            return raw
        return self._fernet.encrypt(raw.encode("utf-8")).decode("utf-8")

    def _decode(self, stored: str) -> Optional[dict[str, Any]]:
        raw = stored
        if self._fernet is not None:
            try:
                raw = self._fernet.decrypt(stored.encode("utf-8")).decode("utf-8")
            except InvalidToken:
                logger.warning("Discarding session payload that failed decryption")
                return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Discarding session payload that is not valid JSON")
            return None
        return data if isinstance(data, dict) else None
