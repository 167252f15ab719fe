"""Per-user management of encrypted AI provider API keys.

Plaintext only passes through this service on the way into the vault and,
on demand, on the way out to the caller that needs it. Nothing is cached.
"""

import secrets
import string
import time

import structlog

from estudimen.models.api_key import ApiKeyRecord, ApiProvider
from estudimen.services.exceptions import (
    ApiKeyLimitExceededError,
    ApiKeyNotFoundError,
    InvalidApiKeyError,
)
from estudimen.storage.base import ApiKeyStorage
from estudimen.vault import CredentialVault

logger = structlog.get_logger()

_BASE36 = string.digits + string.ascii_lowercase
_ID_PREFIXES = {ApiProvider.GEMINI: "gem", ApiProvider.OPENAI: "oai"}


def _to_base36(value: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def generate_key_id(provider: ApiProvider) -> str:
    """Build a key id like gem_lx3k9a1b_4f7c2d.

    Provider tag, base36 millisecond timestamp, 6 random base36 chars.
    """
    timestamp = _to_base36(int(time.time() * 1000))
    random_part = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"{_ID_PREFIXES[provider]}_{timestamp}_{random_part}"


class ApiKeyService:
    """Add, list, delete and decrypt a user's provider keys."""

    def __init__(
        self,
        storage: ApiKeyStorage,
        vault: CredentialVault,
        max_keys_per_user: int = 5,
        prefix_length: int = 8,
    ):
        self._storage = storage
        self._vault = vault
        self._max_keys_per_user = max_keys_per_user
        self._prefix_length = prefix_length

    async def add_key(
        self, user_id: str, provider: ApiProvider | str, api_key: str
    ) -> ApiKeyRecord:
        """Encrypt and store a key, replacing the user's active key for that provider.

        Args:
            user_id: Owner of the key.
            provider: AI provider the key belongs to.
            api_key: Plaintext key.

        Returns:
            The stored record (ciphertext only).

        Raises:
            InvalidApiKeyError: If the key fails the provider's format check.
            ApiKeyLimitExceededError: If the user is at the active key limit.
            StorageError: If the store fails.
        """
        try:
            provider = ApiProvider(provider)
        except ValueError as e:
            raise InvalidApiKeyError(str(provider)) from e

        if not self._vault.validate_format(api_key, provider):
            raise InvalidApiKeyError(provider.value)

        existing = await self._storage.get_active_api_key(user_id, provider)
        if existing is None:
            active = await self._storage.count_active_api_keys(user_id)
            if active >= self._max_keys_per_user:
                raise ApiKeyLimitExceededError(self._max_keys_per_user)

        record = ApiKeyRecord(
            id=generate_key_id(provider),
            user_id=user_id,
            provider=provider,
            encrypted_key=self._vault.encrypt_for_storage(api_key),
            key_prefix=api_key[: self._prefix_length],
        )
        await self._storage.create_api_key(record)

        # Old key goes only after the new one is safely stored
        if existing is not None:
            await self._storage.delete_api_key(user_id, existing.id)
            logger.info(
                "API key replaced",
                user_id=user_id,
                provider=provider.value,
                replaced_key_id=existing.id,
            )

        logger.info("API key added", user_id=user_id, provider=provider.value, key_id=record.id)
        return record

    async def list_keys(self, user_id: str) -> list[ApiKeyRecord]:
        """List a user's keys, newest first."""
        return await self._storage.list_api_keys(user_id)

    async def delete_key(self, user_id: str, key_id: str) -> None:
        """Delete a key owned by the user.

        Raises:
            ApiKeyNotFoundError: If no such key belongs to the user.
        """
        if not await self._storage.delete_api_key(user_id, key_id):
            raise ApiKeyNotFoundError(key_id)
        logger.info("API key deleted", user_id=user_id, key_id=key_id)

    async def get_plaintext_key(self, user_id: str, provider: ApiProvider | str) -> str:
        """Decrypt the user's active key for a provider at the moment of use.

        Raises:
            ApiKeyNotFoundError: If the user has no active key for the provider.
            DecryptionError: If the stored key is unusable.
        """
        provider = ApiProvider(provider)
        record = await self._storage.get_active_api_key(user_id, provider)
        if record is None:
            raise ApiKeyNotFoundError(provider.value)
        return self._vault.decrypt_from_storage(record.encrypted_key)

    def mask(self, api_key: str) -> str:
        return self._vault.mask(api_key)
