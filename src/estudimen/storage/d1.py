"""Cloudflare D1 record store.

Hosted SQLite-compatible database reached through the Cloudflare REST API.
Shares its SQL with the local SQLite backend.
"""

from datetime import datetime

import httpx
import structlog

from estudimen.auth.exceptions import UserAlreadyExistsError
from estudimen.auth.models import RefreshTokenRecord, User
from estudimen.exceptions import StorageError
from estudimen.models.api_key import ApiKeyRecord, ApiProvider
from estudimen.storage import queries

logger = structlog.get_logger()

D1_API_BASE = "https://api.cloudflare.com/client/v4"
UNIQUE_VIOLATION = "UNIQUE constraint failed"


class D1RecordStore:
    """Cloudflare D1-based implementation of RecordStore."""

    def __init__(
        self,
        account_id: str,
        database_id: str,
        api_token: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize D1 storage.

        Args:
            account_id: Cloudflare account ID.
            database_id: D1 database ID.
            api_token: Cloudflare API token with D1 read/write permissions.
            timeout: Per-request timeout in seconds.
            client: Pre-built HTTP client (tests inject a mock transport).
        """
        self._api_token = api_token
        self._timeout = timeout
        self._base_url = f"{D1_API_BASE}/accounts/{account_id}/d1/database/{database_id}"
        self._initialized = False
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={
                    "Authorization": f"Bearer {self._api_token}",
                    "Content-Type": "application/json",
                },
                timeout=self._timeout,
            )
        return self._client

    async def _execute(self, operation: str, sql: str, params: tuple = ()) -> dict:
        """Execute a SQL statement on D1.

        Returns:
            The first result object ({"results": [...], "meta": {...}}).

        Raises:
            StorageError: On transport failure or a D1-reported error.
        """
        client = await self._get_client()

        payload: dict = {"sql": sql}
        if params:
            payload["params"] = list(params)

        try:
            response = await client.post(f"{self._base_url}/query", json=payload)
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("D1 HTTP error", operation=operation, error=str(e))
            raise StorageError(operation, str(e)) from e

        if response.is_error or not data.get("success"):
            errors = data.get("errors") or []
            error_msg = errors[0].get("message", "Unknown error") if errors else "Unknown error"
            logger.error("D1 query failed", operation=operation, error=error_msg)
            raise StorageError(operation, error_msg)

        results = data.get("result") or []
        return results[0] if results else {}

    async def _rows(self, operation: str, sql: str, params: tuple = ()) -> list[dict]:
        result = await self._execute(operation, sql, params)
        return result.get("results", [])

    async def _changes(self, operation: str, sql: str, params: tuple = ()) -> int:
        # D1 reports affected rows in meta.changes
        result = await self._execute(operation, sql, params)
        return result.get("meta", {}).get("changes", 0)

    async def initialize(self) -> None:
        """Create tables if they don't exist, one statement per request."""
        if self._initialized:
            return

        schema_sql = queries.SCHEMA_PATH.read_text()
        statements = [
            "\n".join(line for line in s.splitlines() if not line.strip().startswith("--"))
            for s in schema_sql.split(";")
        ]
        for statement in statements:
            if statement.strip():
                await self._execute("initialize", statement.strip())

        self._initialized = True
        logger.info("D1 record store initialized")

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Refresh tokens
    # ------------------------------------------------------------------

    async def store_refresh_token(self, record: RefreshTokenRecord) -> None:
        await self._execute(
            "store_refresh_token", queries.INSERT_REFRESH_TOKEN, queries.token_params(record)
        )

    async def get_refresh_token(self, user_id: str, token_id: str) -> RefreshTokenRecord | None:
        rows = await self._rows(
            "get_refresh_token", queries.SELECT_REFRESH_TOKEN, (user_id, token_id)
        )
        return queries.row_to_token(rows[0]) if rows else None

    async def list_user_tokens(self, user_id: str) -> list[RefreshTokenRecord]:
        rows = await self._rows("list_user_tokens", queries.SELECT_USER_TOKENS, (user_id,))
        return [queries.row_to_token(row) for row in rows]

    async def delete_refresh_token(self, user_id: str, token_id: str) -> bool:
        changes = await self._changes(
            "delete_refresh_token", queries.DELETE_REFRESH_TOKEN, (user_id, token_id)
        )
        return changes > 0

    async def delete_user_tokens(self, user_id: str) -> int:
        return await self._changes("delete_user_tokens", queries.DELETE_USER_TOKENS, (user_id,))

    async def cleanup_expired(self, now: datetime) -> int:
        return await self._changes(
            "cleanup_expired", queries.DELETE_EXPIRED_TOKENS, (queries.to_db_time(now),)
        )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def create_user(self, user: User) -> None:
        try:
            await self._execute("create_user", queries.INSERT_USER, queries.user_params(user))
        except StorageError as e:
            if UNIQUE_VIOLATION in str(e):
                raise UserAlreadyExistsError(user.email) from e
            raise

    async def get_user_by_id(self, user_id: str) -> User | None:
        rows = await self._rows("get_user_by_id", queries.SELECT_USER_BY_ID, (user_id,))
        return queries.row_to_user(rows[0]) if rows else None

    async def get_user_by_email(self, email: str) -> User | None:
        rows = await self._rows("get_user_by_email", queries.SELECT_USER_BY_EMAIL, (email,))
        return queries.row_to_user(rows[0]) if rows else None

    async def deactivate_user(self, user_id: str) -> bool:
        return await self._changes("deactivate_user", queries.DEACTIVATE_USER, (user_id,)) > 0

    # ------------------------------------------------------------------
    # API keys
    # ------------------------------------------------------------------

    async def create_api_key(self, record: ApiKeyRecord) -> None:
        await self._execute(
            "create_api_key", queries.INSERT_API_KEY, queries.api_key_params(record)
        )

    async def list_api_keys(self, user_id: str) -> list[ApiKeyRecord]:
        rows = await self._rows("list_api_keys", queries.SELECT_API_KEYS, (user_id,))
        return [queries.row_to_api_key(row) for row in rows]

    async def get_api_key(self, user_id: str, key_id: str) -> ApiKeyRecord | None:
        rows = await self._rows("get_api_key", queries.SELECT_API_KEY, (user_id, key_id))
        return queries.row_to_api_key(rows[0]) if rows else None

    async def get_active_api_key(
        self, user_id: str, provider: ApiProvider
    ) -> ApiKeyRecord | None:
        rows = await self._rows(
            "get_active_api_key",
            queries.SELECT_ACTIVE_API_KEY,
            (user_id, ApiProvider(provider).value),
        )
        return queries.row_to_api_key(rows[0]) if rows else None

    async def count_active_api_keys(self, user_id: str) -> int:
        rows = await self._rows(
            "count_active_api_keys", queries.COUNT_ACTIVE_API_KEYS, (user_id,)
        )
        return rows[0]["total"] if rows else 0

    async def delete_api_key(self, user_id: str, key_id: str) -> bool:
        return await self._changes("delete_api_key", queries.DELETE_API_KEY, (user_id, key_id)) > 0
