"""In-memory record store.

Suitable for tests and single-process development. Everything is lost on
restart. Each method completes without awaiting, so it is atomic with
respect to other coroutines on the same event loop.
"""

from datetime import datetime

import structlog

from estudimen.auth.exceptions import UserAlreadyExistsError
from estudimen.auth.models import RefreshTokenRecord, User
from estudimen.models.api_key import ApiKeyRecord, ApiProvider

logger = structlog.get_logger()


class InMemoryRecordStore:
    """Dict-backed implementation of RecordStore."""

    def __init__(self) -> None:
        # (user_id, token_id) -> record
        self._tokens: dict[tuple[str, str], RefreshTokenRecord] = {}
        self._users: dict[str, User] = {}
        self._api_keys: dict[str, ApiKeyRecord] = {}

    async def initialize(self) -> None:
        logger.info("In-memory record store initialized")

    async def close(self) -> None:
        pass

    # ------------------------------------------------------------------
    # Refresh tokens
    # ------------------------------------------------------------------

    async def store_refresh_token(self, record: RefreshTokenRecord) -> None:
        self._tokens[(record.user_id, record.token_id)] = record
        logger.debug(
            "Refresh token stored",
            token_id=record.token_id,
            user_id=record.user_id,
            expires_at=record.expires_at.isoformat(),
        )

    async def get_refresh_token(self, user_id: str, token_id: str) -> RefreshTokenRecord | None:
        return self._tokens.get((user_id, token_id))

    async def list_user_tokens(self, user_id: str) -> list[RefreshTokenRecord]:
        return [r for (uid, _), r in self._tokens.items() if uid == user_id]

    async def delete_refresh_token(self, user_id: str, token_id: str) -> bool:
        return self._tokens.pop((user_id, token_id), None) is not None

    async def delete_user_tokens(self, user_id: str) -> int:
        keys = [key for key in self._tokens if key[0] == user_id]
        for key in keys:
            del self._tokens[key]
        return len(keys)

    async def cleanup_expired(self, now: datetime) -> int:
        expired = [key for key, record in self._tokens.items() if record.is_expired(now)]
        for key in expired:
            del self._tokens[key]
        return len(expired)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def create_user(self, user: User) -> None:
        if any(u.email == user.email for u in self._users.values()):
            raise UserAlreadyExistsError(user.email)
        self._users[user.id] = user.model_copy()

    async def get_user_by_id(self, user_id: str) -> User | None:
        user = self._users.get(user_id)
        return user.model_copy() if user else None

    async def get_user_by_email(self, email: str) -> User | None:
        for user in self._users.values():
            if user.email == email:
                return user.model_copy()
        return None

    async def deactivate_user(self, user_id: str) -> bool:
        user = self._users.get(user_id)
        if user is None:
            return False
        user.is_active = False
        return True

    # ------------------------------------------------------------------
    # API keys
    # ------------------------------------------------------------------

    async def create_api_key(self, record: ApiKeyRecord) -> None:
        self._api_keys[record.id] = record.model_copy()

    async def list_api_keys(self, user_id: str) -> list[ApiKeyRecord]:
        keys = [k.model_copy() for k in self._api_keys.values() if k.user_id == user_id]
        return sorted(keys, key=lambda k: k.created_at, reverse=True)

    async def get_api_key(self, user_id: str, key_id: str) -> ApiKeyRecord | None:
        record = self._api_keys.get(key_id)
        if record is None or record.user_id != user_id:
            return None
        return record.model_copy()

    async def get_active_api_key(
        self, user_id: str, provider: ApiProvider
    ) -> ApiKeyRecord | None:
        for record in self._api_keys.values():
            if record.user_id == user_id and record.provider == provider and record.is_active:
                return record.model_copy()
        return None

    async def count_active_api_keys(self, user_id: str) -> int:
        return sum(1 for k in self._api_keys.values() if k.user_id == user_id and k.is_active)

    async def delete_api_key(self, user_id: str, key_id: str) -> bool:
        record = self._api_keys.get(key_id)
        if record is None or record.user_id != user_id:
            return False
        del self._api_keys[key_id]
        return True
