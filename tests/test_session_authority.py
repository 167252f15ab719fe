"""Tests for the session authority token lifecycle."""

import asyncio
from datetime import timedelta

import jwt
import pytest

from estudimen.auth.exceptions import InvalidTokenError, UserNotFoundError
from estudimen.auth.jwt_auth import ALGORITHM
from estudimen.auth.session_authority import SessionAuthority
from estudimen.exceptions import ConfigurationError, StorageError

from tests.conftest import TEST_JWT_SECRET


def _forge(claims: dict, secret: str = TEST_JWT_SECRET) -> str:
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


class TestConstruction:
    def test_requires_secret(self, store):
        with pytest.raises(ConfigurationError):
            SessionAuthority(store, secret_key="")

    def test_access_lifetime_must_be_shorter(self, store):
        with pytest.raises(ConfigurationError):
            SessionAuthority(
                store,
                secret_key=TEST_JWT_SECRET,
                access_token_ttl=timedelta(days=7),
                refresh_token_ttl=timedelta(days=7),
            )


class TestIssueAndVerify:
    @pytest.mark.asyncio
    async def test_issue_then_verify_returns_identity(self, authority, sample_user):
        pair = await authority.issue_token_pair(sample_user)

        claims = authority.verify_access_token(pair.access_token)

        assert claims.user_id == sample_user.id
        assert claims.email == sample_user.email
        assert claims.name == sample_user.name
        assert pair.expires_in == 15 * 60
        assert pair.token_type == "bearer"

    @pytest.mark.asyncio
    async def test_issue_persists_hashed_record(self, authority, store, sample_user):
        pair = await authority.issue_token_pair(sample_user)

        records = await store.list_user_tokens(sample_user.id)
        assert len(records) == 1
        record = records[0]
        assert record.token_hash != pair.refresh_token
        assert pair.refresh_token not in record.token_hash
        assert record.expires_at - record.created_at == timedelta(days=7)

    @pytest.mark.asyncio
    async def test_issue_propagates_storage_error(self, authority, store, sample_user, monkeypatch):
        async def failing_store(record):
            raise StorageError("store_refresh_token", "connection lost")

        monkeypatch.setattr(store, "store_refresh_token", failing_store)

        with pytest.raises(StorageError):
            await authority.issue_token_pair(sample_user)

    @pytest.mark.asyncio
    async def test_expired_access_token_rejected(self, authority, clock, sample_user):
        pair = await authority.issue_token_pair(sample_user)
        clock.advance(timedelta(minutes=16))

        with pytest.raises(InvalidTokenError):
            authority.verify_access_token(pair.access_token)

    @pytest.mark.asyncio
    async def test_refresh_token_is_not_an_access_token(self, authority, sample_user):
        pair = await authority.issue_token_pair(sample_user)

        with pytest.raises(InvalidTokenError):
            authority.verify_access_token(pair.refresh_token)

    @pytest.mark.asyncio
    async def test_wrong_secret_rejected(self, authority, sample_user):
        pair = await authority.issue_token_pair(sample_user)
        header, payload, _ = pair.access_token.split(".")
        claims = jwt.decode(pair.access_token, options={"verify_signature": False})
        forged = _forge(claims, secret="some-other-secret-0123456789abcdefghij")

        with pytest.raises(InvalidTokenError):
            authority.verify_access_token(forged)
        with pytest.raises(InvalidTokenError):
            authority.verify_access_token(f"{header}.{payload}.invalidsignature")

    @pytest.mark.asyncio
    async def test_issuer_and_audience_must_match(self, store, hasher, clock, sample_user):
        other = SessionAuthority(
            store,
            secret_key=TEST_JWT_SECRET,
            hasher=hasher,
            clock=clock,
            issuer="someone-else",
        )
        pair = await other.issue_token_pair(sample_user)
        ours = SessionAuthority(store, secret_key=TEST_JWT_SECRET, hasher=hasher, clock=clock)

        with pytest.raises(InvalidTokenError):
            ours.verify_access_token(pair.access_token)

    def test_garbage_rejected(self, authority):
        with pytest.raises(InvalidTokenError):
            authority.verify_access_token("not-a-jwt")


class TestRotate:
    @pytest.mark.asyncio
    async def test_rotate_issues_new_pair(self, authority, store, sample_user):
        await store.create_user(sample_user)
        pair = await authority.issue_token_pair(sample_user)

        rotated = await authority.rotate_tokens(pair.refresh_token)

        assert rotated.refresh_token != pair.refresh_token
        claims = authority.verify_access_token(rotated.access_token)
        assert claims.user_id == sample_user.id

    @pytest.mark.asyncio
    async def test_rotate_succeeds_exactly_once(self, authority, store, sample_user):
        await store.create_user(sample_user)
        pair = await authority.issue_token_pair(sample_user)

        await authority.rotate_tokens(pair.refresh_token)

        with pytest.raises(InvalidTokenError):
            await authority.rotate_tokens(pair.refresh_token)

    @pytest.mark.asyncio
    async def test_old_record_replaced_by_new(self, authority, store, sample_user):
        await store.create_user(sample_user)
        pair = await authority.issue_token_pair(sample_user)

        rotated = await authority.rotate_tokens(pair.refresh_token)

        records = await store.list_user_tokens(sample_user.id)
        assert len(records) == 1
        new_claims = jwt.decode(rotated.refresh_token, options={"verify_signature": False})
        assert records[0].token_id == new_claims["jti"]

    @pytest.mark.asyncio
    async def test_rotated_token_chain(self, authority, store, sample_user):
        await store.create_user(sample_user)
        pair = await authority.issue_token_pair(sample_user)

        for _ in range(3):
            pair = await authority.rotate_tokens(pair.refresh_token)

        assert authority.verify_access_token(pair.access_token).user_id == sample_user.id

    @pytest.mark.asyncio
    async def test_concurrent_rotation_has_single_winner(self, authority, store, sample_user):
        await store.create_user(sample_user)
        pair = await authority.issue_token_pair(sample_user)

        results = await asyncio.gather(
            authority.rotate_tokens(pair.refresh_token),
            authority.rotate_tokens(pair.refresh_token),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], InvalidTokenError)

    @pytest.mark.asyncio
    async def test_expired_record_rejected_and_removed(self, authority, store, clock, sample_user):
        await store.create_user(sample_user)
        pair = await authority.issue_token_pair(sample_user)
        clock.advance(timedelta(days=7, seconds=1))

        with pytest.raises(InvalidTokenError):
            await authority.rotate_tokens(pair.refresh_token)

        assert await store.list_user_tokens(sample_user.id) == []

    @pytest.mark.asyncio
    async def test_rotation_just_before_expiry_succeeds(self, authority, store, clock, sample_user):
        await store.create_user(sample_user)
        pair = await authority.issue_token_pair(sample_user)
        clock.advance(timedelta(days=6, hours=23))

        rotated = await authority.rotate_tokens(pair.refresh_token)
        assert rotated.refresh_token

    @pytest.mark.asyncio
    async def test_never_issued_token_is_invalid_not_user_not_found(self, authority, clock):
        now = clock()
        token = _forge(
            {
                "sub": "ghost-user",
                "iat": now,
                "exp": now + timedelta(days=7),
                "iss": "estudimen",
                "aud": "estudimen-users",
                "type": "refresh",
                "jti": "never-issued",
            }
        )

        with pytest.raises(InvalidTokenError):
            await authority.rotate_tokens(token)

    @pytest.mark.asyncio
    async def test_access_token_cannot_rotate(self, authority, store, sample_user):
        await store.create_user(sample_user)
        pair = await authority.issue_token_pair(sample_user)

        with pytest.raises(InvalidTokenError):
            await authority.rotate_tokens(pair.access_token)

    @pytest.mark.asyncio
    async def test_refresh_token_without_jti_rejected(self, authority, clock):
        now = clock()
        token = _forge(
            {
                "sub": "user-123",
                "iat": now,
                "exp": now + timedelta(days=7),
                "iss": "estudimen",
                "aud": "estudimen-users",
                "type": "refresh",
            }
        )

        with pytest.raises(InvalidTokenError):
            await authority.rotate_tokens(token)

    @pytest.mark.asyncio
    async def test_hash_mismatch_rejected(self, authority, store, sample_user):
        await store.create_user(sample_user)
        pair = await authority.issue_token_pair(sample_user)
        record = (await store.list_user_tokens(sample_user.id))[0]
        record.token_hash = await authority._hasher.hash("some other token")

        with pytest.raises(InvalidTokenError):
            await authority.rotate_tokens(pair.refresh_token)

    @pytest.mark.asyncio
    async def test_missing_user_raises_user_not_found(self, authority, sample_user):
        pair = await authority.issue_token_pair(sample_user)

        with pytest.raises(UserNotFoundError):
            await authority.rotate_tokens(pair.refresh_token)

    @pytest.mark.asyncio
    async def test_deactivated_user_raises_user_not_found(self, authority, store, sample_user):
        await store.create_user(sample_user)
        pair = await authority.issue_token_pair(sample_user)
        await store.deactivate_user(sample_user.id)

        with pytest.raises(UserNotFoundError):
            await authority.rotate_tokens(pair.refresh_token)


class TestRevoke:
    @pytest.mark.asyncio
    async def test_revoked_token_cannot_rotate(self, authority, store, sample_user):
        await store.create_user(sample_user)
        pair = await authority.issue_token_pair(sample_user)

        await authority.revoke(sample_user.id, pair.refresh_token)

        with pytest.raises(InvalidTokenError):
            await authority.rotate_tokens(pair.refresh_token)

    @pytest.mark.asyncio
    async def test_revoke_is_idempotent(self, authority, sample_user):
        pair = await authority.issue_token_pair(sample_user)

        await authority.revoke(sample_user.id, pair.refresh_token)
        await authority.revoke(sample_user.id, pair.refresh_token)

    @pytest.mark.asyncio
    async def test_revoke_leaves_other_sessions(self, authority, store, sample_user):
        await store.create_user(sample_user)
        first = await authority.issue_token_pair(sample_user)
        second = await authority.issue_token_pair(sample_user)

        await authority.revoke(sample_user.id, first.refresh_token)

        assert await authority.rotate_tokens(second.refresh_token)

    @pytest.mark.asyncio
    async def test_revoke_for_other_user_is_noop(self, authority, store, sample_user):
        await store.create_user(sample_user)
        pair = await authority.issue_token_pair(sample_user)

        await authority.revoke("someone-else", pair.refresh_token)

        assert await authority.rotate_tokens(pair.refresh_token)

    @pytest.mark.asyncio
    async def test_revoke_accepts_expired_token(self, authority, store, clock, sample_user):
        pair = await authority.issue_token_pair(sample_user)
        clock.advance(timedelta(days=8))

        await authority.revoke(sample_user.id, pair.refresh_token)

        assert await store.list_user_tokens(sample_user.id) == []

    @pytest.mark.asyncio
    async def test_revoke_rejects_forged_token(self, authority, sample_user):
        with pytest.raises(InvalidTokenError):
            await authority.revoke(sample_user.id, "not-a-jwt")

    @pytest.mark.asyncio
    async def test_revoke_token_uses_token_owner(self, authority, store, sample_user):
        await store.create_user(sample_user)
        pair = await authority.issue_token_pair(sample_user)

        await authority.revoke_token(pair.refresh_token)

        assert await store.list_user_tokens(sample_user.id) == []
        with pytest.raises(InvalidTokenError):
            await authority.rotate_tokens(pair.refresh_token)

    @pytest.mark.asyncio
    async def test_revoke_token_after_access_expiry(self, authority, store, clock, sample_user):
        pair = await authority.issue_token_pair(sample_user)
        clock.advance(timedelta(hours=1))

        with pytest.raises(InvalidTokenError):
            authority.verify_access_token(pair.access_token)
        await authority.revoke_token(pair.refresh_token)

        assert await store.list_user_tokens(sample_user.id) == []

    @pytest.mark.asyncio
    async def test_revoke_token_rejects_access_token(self, authority, sample_user):
        pair = await authority.issue_token_pair(sample_user)

        with pytest.raises(InvalidTokenError):
            await authority.revoke_token(pair.access_token)

    @pytest.mark.asyncio
    async def test_revoke_all(self, authority, store, sample_user):
        await store.create_user(sample_user)
        pairs = [await authority.issue_token_pair(sample_user) for _ in range(3)]

        count = await authority.revoke_all(sample_user.id)

        assert count == 3
        for pair in pairs:
            with pytest.raises(InvalidTokenError):
                await authority.rotate_tokens(pair.refresh_token)


class TestCleanup:
    @pytest.mark.asyncio
    async def test_cleanup_removes_only_expired(self, authority, store, clock, sample_user):
        await authority.issue_token_pair(sample_user)
        clock.advance(timedelta(days=5))
        await authority.issue_token_pair(sample_user)
        clock.advance(timedelta(days=3))

        removed = await authority.cleanup_expired()

        assert removed == 1
        assert len(await store.list_user_tokens(sample_user.id)) == 1
