"""
Base repository class for Supabase-backed stores.

Holds the client and the table a store reads and writes. Subclasses map
rows to Pydantic models and wrap client failures in StorageError.
"""

from typing import Any, ClassVar, Generic, TypeVar

from supabase import Client


T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Base class for all repositories.

    Subclasses set TABLE and query through self._table():

        class UserLookup(BaseRepository[UserRecord]):
            TABLE = "users"

            def get_by_email(self, email: str) -> Optional[UserRecord]:
                result = self._table().select("*").eq("email", email).execute()
                return UserRecord(**result.data[0]) if result.data else None
    """

    TABLE: ClassVar[str] = ""

    def __init__(self, db: Client) -> None:
        self._db = db

    def _table(self) -> Any:
        """Query builder for this repository's table."""
        if not self.TABLE:
            raise NotImplementedError(f"{type(self).__name__} does not set TABLE")
        return self._db.table(self.TABLE)
