"""SQLite record store.

Provides async SQLite storage for users, refresh token records and
encrypted API keys, opening one connection per operation.
"""

from datetime import datetime
from pathlib import Path

import aiosqlite
import structlog

from estudimen.auth.exceptions import UserAlreadyExistsError
from estudimen.auth.models import RefreshTokenRecord, User
from estudimen.exceptions import StorageError
from estudimen.models.api_key import ApiKeyRecord, ApiProvider
from estudimen.storage import queries

logger = structlog.get_logger()


class SQLiteRecordStore:
    """SQLite-based implementation of RecordStore."""

    def __init__(self, db_path: Path):
        """Initialize SQLite storage.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = db_path
        self._initialized = False

    async def initialize(self) -> None:
        """Create tables if they don't exist. Called once on startup."""
        if self._initialized:
            return

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        schema_sql = queries.SCHEMA_PATH.read_text()

        try:
            async with aiosqlite.connect(self._db_path) as db:
                await db.executescript(schema_sql)
                await db.commit()
        except aiosqlite.Error as e:
            raise StorageError("initialize", str(e)) from e

        self._initialized = True
        logger.info("SQLite record store initialized", db_path=str(self._db_path))

    async def close(self) -> None:
        """Close storage (no-op, connections are per operation)."""
        pass

    async def _execute(self, operation: str, sql: str, params: tuple = ()) -> int:
        """Run a write statement and return the affected row count."""
        try:
            async with aiosqlite.connect(self._db_path) as db:
                cursor = await db.execute(sql, params)
                await db.commit()
                return cursor.rowcount
        except aiosqlite.IntegrityError:
            raise
        except aiosqlite.Error as e:
            logger.error("SQLite operation failed", operation=operation, error=str(e))
            raise StorageError(operation, str(e)) from e

    async def _fetchall(self, operation: str, sql: str, params: tuple = ()) -> list[aiosqlite.Row]:
        try:
            async with aiosqlite.connect(self._db_path) as db:
                db.row_factory = aiosqlite.Row
                async with db.execute(sql, params) as cursor:
                    return list(await cursor.fetchall())
        except aiosqlite.Error as e:
            logger.error("SQLite operation failed", operation=operation, error=str(e))
            raise StorageError(operation, str(e)) from e

    async def _fetchone(self, operation: str, sql: str, params: tuple = ()) -> aiosqlite.Row | None:
        rows = await self._fetchall(operation, sql, params)
        return rows[0] if rows else None

    # ------------------------------------------------------------------
    # Refresh tokens
    # ------------------------------------------------------------------

    async def store_refresh_token(self, record: RefreshTokenRecord) -> None:
        try:
            await self._execute(
                "store_refresh_token",
                queries.INSERT_REFRESH_TOKEN,
                queries.token_params(record),
            )
        except aiosqlite.IntegrityError as e:
            raise StorageError("store_refresh_token", str(e)) from e

    async def get_refresh_token(self, user_id: str, token_id: str) -> RefreshTokenRecord | None:
        row = await self._fetchone(
            "get_refresh_token", queries.SELECT_REFRESH_TOKEN, (user_id, token_id)
        )
        return queries.row_to_token(row) if row else None

    async def list_user_tokens(self, user_id: str) -> list[RefreshTokenRecord]:
        rows = await self._fetchall("list_user_tokens", queries.SELECT_USER_TOKENS, (user_id,))
        return [queries.row_to_token(row) for row in rows]

    async def delete_refresh_token(self, user_id: str, token_id: str) -> bool:
        # A single DELETE: of two racing callers only one sees rowcount 1
        deleted = await self._execute(
            "delete_refresh_token", queries.DELETE_REFRESH_TOKEN, (user_id, token_id)
        )
        return deleted > 0

    async def delete_user_tokens(self, user_id: str) -> int:
        return await self._execute("delete_user_tokens", queries.DELETE_USER_TOKENS, (user_id,))

    async def cleanup_expired(self, now: datetime) -> int:
        return await self._execute(
            "cleanup_expired", queries.DELETE_EXPIRED_TOKENS, (queries.to_db_time(now),)
        )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def create_user(self, user: User) -> None:
        try:
            await self._execute("create_user", queries.INSERT_USER, queries.user_params(user))
        except aiosqlite.IntegrityError as e:
            raise UserAlreadyExistsError(user.email) from e

    async def get_user_by_id(self, user_id: str) -> User | None:
        row = await self._fetchone("get_user_by_id", queries.SELECT_USER_BY_ID, (user_id,))
        return queries.row_to_user(row) if row else None

    async def get_user_by_email(self, email: str) -> User | None:
        row = await self._fetchone("get_user_by_email", queries.SELECT_USER_BY_EMAIL, (email,))
        return queries.row_to_user(row) if row else None

    async def deactivate_user(self, user_id: str) -> bool:
        updated = await self._execute("deactivate_user", queries.DEACTIVATE_USER, (user_id,))
        return updated > 0

    # ------------------------------------------------------------------
    # API keys
    # ------------------------------------------------------------------

    async def create_api_key(self, record: ApiKeyRecord) -> None:
        try:
            await self._execute(
                "create_api_key", queries.INSERT_API_KEY, queries.api_key_params(record)
            )
        except aiosqlite.IntegrityError as e:
            raise StorageError("create_api_key", str(e)) from e

    async def list_api_keys(self, user_id: str) -> list[ApiKeyRecord]:
        rows = await self._fetchall("list_api_keys", queries.SELECT_API_KEYS, (user_id,))
        return [queries.row_to_api_key(row) for row in rows]

    async def get_api_key(self, user_id: str, key_id: str) -> ApiKeyRecord | None:
        row = await self._fetchone("get_api_key", queries.SELECT_API_KEY, (user_id, key_id))
        return queries.row_to_api_key(row) if row else None

    async def get_active_api_key(
        self, user_id: str, provider: ApiProvider
    ) -> ApiKeyRecord | None:
        row = await self._fetchone(
            "get_active_api_key",
            queries.SELECT_ACTIVE_API_KEY,
            (user_id, ApiProvider(provider).value),
        )
        return queries.row_to_api_key(row) if row else None

    async def count_active_api_keys(self, user_id: str) -> int:
        row = await self._fetchone(
            "count_active_api_keys", queries.COUNT_ACTIVE_API_KEYS, (user_id,)
        )
        return row["total"] if row else 0

    async def delete_api_key(self, user_id: str, key_id: str) -> bool:
        deleted = await self._execute("delete_api_key", queries.DELETE_API_KEY, (user_id, key_id))
        return deleted > 0
