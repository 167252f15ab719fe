"""Record store interface using Protocol.

Defines the contract every persistence backend fulfils for users, refresh
token records and encrypted API keys. Implementations raise StorageError on
backend failure and never swallow it.
"""

from datetime import datetime
from typing import Protocol

from estudimen.auth.models import RefreshTokenRecord, User
from estudimen.models.api_key import ApiKeyRecord, ApiProvider


class TokenStorage(Protocol):
    """Refresh token record storage.

    Only SessionAuthority reads or writes these records.
    """

    async def store_refresh_token(self, record: RefreshTokenRecord) -> None:
        """Insert a refresh token record."""
        ...

    async def get_refresh_token(self, user_id: str, token_id: str) -> RefreshTokenRecord | None:
        """Get a user's refresh token record by token ID.

        Returns:
            The record if found, None otherwise.
        """
        ...

    async def list_user_tokens(self, user_id: str) -> list[RefreshTokenRecord]:
        """List every refresh token record held for a user."""
        ...

    async def delete_refresh_token(self, user_id: str, token_id: str) -> bool:
        """Delete one refresh token record.

        Returns:
            True only if this call removed the record. Concurrent callers
            racing on the same record see exactly one True.
        """
        ...

    async def delete_user_tokens(self, user_id: str) -> int:
        """Delete all refresh token records for a user.

        Returns:
            Number of records removed.
        """
        ...

    async def cleanup_expired(self, now: datetime) -> int:
        """Remove records whose expiry is at or before now.

        Returns:
            Number of records removed.
        """
        ...


class UserStorage(Protocol):
    """User account storage."""

    async def create_user(self, user: User) -> None:
        """Insert a new user. Email uniqueness is enforced by the store."""
        ...

    async def get_user_by_id(self, user_id: str) -> User | None:
        ...

    async def get_user_by_email(self, email: str) -> User | None:
        ...

    async def deactivate_user(self, user_id: str) -> bool:
        """Clear a user's active flag.

        Returns:
            True if the user existed.
        """
        ...


class ApiKeyStorage(Protocol):
    """Encrypted API key storage."""

    async def create_api_key(self, record: ApiKeyRecord) -> None:
        ...

    async def list_api_keys(self, user_id: str) -> list[ApiKeyRecord]:
        """List a user's keys, newest first."""
        ...

    async def get_api_key(self, user_id: str, key_id: str) -> ApiKeyRecord | None:
        ...

    async def get_active_api_key(
        self, user_id: str, provider: ApiProvider
    ) -> ApiKeyRecord | None:
        """Get the user's active key for a provider, if any."""
        ...

    async def count_active_api_keys(self, user_id: str) -> int:
        ...

    async def delete_api_key(self, user_id: str, key_id: str) -> bool:
        """Delete a key owned by the user.

        Returns:
            True if a key was removed.
        """
        ...


class RecordStore(TokenStorage, UserStorage, ApiKeyStorage, Protocol):
    """Full record store used by the application."""

    async def initialize(self) -> None:
        """Initialize the storage (create tables, etc.)."""
        ...

    async def close(self) -> None:
        """Release backend resources."""
        ...
