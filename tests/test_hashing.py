"""Tests for the argon2 secret hasher."""

import pytest

from estudimen.auth.hashing import SecretHasher


class TestSecretHasher:
    def test_hash_is_salted(self, hasher):
        first = hasher.hash_sync("refresh-token")
        second = hasher.hash_sync("refresh-token")

        assert first != second
        assert first.startswith("$argon2id$")

    def test_verify_sync(self, hasher):
        secret_hash = hasher.hash_sync("refresh-token")

        assert hasher.verify_sync(secret_hash, "refresh-token") is True
        assert hasher.verify_sync(secret_hash, "other-token") is False

    def test_malformed_hash_does_not_verify(self, hasher):
        assert hasher.verify_sync("not-an-argon2-hash", "refresh-token") is False

    def test_long_secrets_are_not_truncated(self, hasher):
        base = "x" * 200
        secret_hash = hasher.hash_sync(base + "a")

        assert hasher.verify_sync(secret_hash, base + "b") is False

    @pytest.mark.asyncio
    async def test_async_round_trip(self, hasher):
        secret_hash = await hasher.hash("p4ssword")

        assert await hasher.verify(secret_hash, "p4ssword")
        assert not await hasher.verify(secret_hash, "P4ssword")

    def test_time_cost_is_encoded_in_hash(self):
        hasher = SecretHasher(time_cost=2)

        assert ",t=2," in hasher.hash_sync("secret")
