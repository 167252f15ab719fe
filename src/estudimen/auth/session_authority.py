"""Session Authority: issue, verify, rotate and revoke token pairs.

A refresh token is honoured only while its server-side record exists. The
JWT signature is a tamper check; the record is the authority. Deleting the
record therefore revokes the token even though its signature still verifies.

Record lifecycle:
    issued -> rotated (record consumed, new record written)
    issued -> expired (deleted lazily on the next use, or by cleanup_expired)
    issued -> revoked (explicit delete)
"""

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Protocol

import structlog

from estudimen.auth.exceptions import InvalidTokenError, UserNotFoundError
from estudimen.auth.hashing import SecretHasher
from estudimen.auth.jwt_auth import (
    DEFAULT_AUDIENCE,
    DEFAULT_ISSUER,
    create_access_token,
    create_refresh_token,
    decode_token,
)
from estudimen.auth.models import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    AccessClaims,
    RefreshTokenRecord,
    TokenPair,
    TokenPayload,
    User,
    utcnow,
)
from estudimen.exceptions import ConfigurationError
from estudimen.storage.base import TokenStorage, UserStorage

logger = structlog.get_logger()


class SessionStorage(TokenStorage, UserStorage, Protocol):
    """Store capabilities the authority depends on."""


class SessionAuthority:
    """Token pair lifecycle over a record store.

    Built once at startup and handed to request handlers.
    """

    def __init__(
        self,
        storage: SessionStorage,
        secret_key: str,
        access_token_ttl: timedelta = timedelta(minutes=15),
        refresh_token_ttl: timedelta = timedelta(days=7),
        hasher: SecretHasher | None = None,
        issuer: str = DEFAULT_ISSUER,
        audience: str = DEFAULT_AUDIENCE,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the authority.

        Args:
            storage: Record store holding users and refresh token records.
            secret_key: JWT signing secret.
            access_token_ttl: Access token lifetime.
            refresh_token_ttl: Refresh token lifetime, longer than access_token_ttl.
            hasher: Slow hasher for refresh token records.
            issuer: iss claim written and required.
            audience: aud claim written and required.
            clock: Source of the current UTC time.

        Raises:
            ConfigurationError: If the secret is empty or lifetimes are misordered.
        """
        if not secret_key:
            raise ConfigurationError("JWT secret is not configured")
        if access_token_ttl >= refresh_token_ttl:
            raise ConfigurationError(
                "Access token lifetime must be shorter than refresh token lifetime"
            )

        self._storage = storage
        self._secret_key = secret_key
        self._access_token_ttl = access_token_ttl
        self._refresh_token_ttl = refresh_token_ttl
        self._hasher = hasher or SecretHasher()
        self._issuer = issuer
        self._audience = audience
        self._clock = clock

    @property
    def access_token_ttl(self) -> timedelta:
        return self._access_token_ttl

    def _decode(self, token: str, expected_type: str, verify_exp: bool = True) -> TokenPayload:
        return decode_token(
            token,
            self._secret_key,
            expected_type=expected_type,
            now=self._clock(),
            issuer=self._issuer,
            audience=self._audience,
            verify_exp=verify_exp,
        )

    async def issue_token_pair(self, user: User) -> TokenPair:
        """Issue a new access/refresh pair and persist the refresh record.

        Raises:
            StorageError: If the record cannot be stored.
        """
        now = self._clock()
        access_token = create_access_token(
            user,
            self._secret_key,
            expires_delta=self._access_token_ttl,
            now=now,
            issuer=self._issuer,
            audience=self._audience,
        )
        refresh_token, token_id, expires_at = create_refresh_token(
            user.id,
            self._secret_key,
            expires_delta=self._refresh_token_ttl,
            now=now,
            issuer=self._issuer,
            audience=self._audience,
        )

        record = RefreshTokenRecord(
            token_id=token_id,
            user_id=user.id,
            token_hash=await self._hasher.hash(refresh_token),
            created_at=now,
            expires_at=expires_at,
        )
        await self._storage.store_refresh_token(record)
        logger.info("Token pair issued", user_id=user.id, token_id=token_id)

        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=int(self._access_token_ttl.total_seconds()),
        )

    def verify_access_token(self, token: str) -> AccessClaims:
        """Verify an access token without touching the store.

        Raises:
            InvalidTokenError: On bad signature, issuer/audience, type or expiry.
        """
        payload = self._decode(token, ACCESS_TOKEN_TYPE)
        if payload.email is None or payload.name is None:
            raise InvalidTokenError()
        return AccessClaims(user_id=payload.sub, email=payload.email, name=payload.name)

    async def _load_valid_record(self, payload: TokenPayload, token: str) -> RefreshTokenRecord:
        """Fetch the record backing a refresh token and check it is still honoured."""
        record = await self._storage.get_refresh_token(payload.sub, payload.jti)
        if record is None:
            logger.warning("Refresh token has no record", user_id=payload.sub, token_id=payload.jti)
            raise InvalidTokenError()

        if record.is_expired(self._clock()):
            await self._storage.delete_refresh_token(record.user_id, record.token_id)
            logger.info(
                "Expired refresh token removed",
                user_id=record.user_id,
                token_id=record.token_id,
            )
            raise InvalidTokenError()

        if not await self._hasher.verify(record.token_hash, token):
            logger.warning(
                "Refresh token hash mismatch",
                user_id=record.user_id,
                token_id=record.token_id,
            )
            raise InvalidTokenError()

        return record

    def _decode_refresh(self, token: str) -> TokenPayload:
        # The record's expires_at is authoritative; exp is not checked here
        payload = self._decode(token, REFRESH_TOKEN_TYPE, verify_exp=False)
        if not payload.jti:
            raise InvalidTokenError()
        return payload

    async def rotate_tokens(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new pair.

        The presented token's record is consumed before the new pair is
        issued, so a given refresh token can be rotated at most once.

        Raises:
            InvalidTokenError: If the token is forged, unknown, expired,
                revoked or already rotated.
            UserNotFoundError: If the owning user is gone or deactivated.
            StorageError: If the store fails.
        """
        payload = self._decode_refresh(refresh_token)
        record = await self._load_valid_record(payload, refresh_token)

        # Only one of several concurrent rotations wins the delete
        if not await self._storage.delete_refresh_token(record.user_id, record.token_id):
            logger.warning(
                "Refresh token already consumed",
                user_id=record.user_id,
                token_id=record.token_id,
            )
            raise InvalidTokenError()

        user = await self._storage.get_user_by_id(record.user_id)
        if user is None or not user.is_active:
            raise UserNotFoundError(record.user_id)

        logger.info("Refresh token rotated", user_id=user.id, token_id=record.token_id)
        return await self.issue_token_pair(user)

    async def revoke(self, user_id: str, refresh_token: str) -> None:
        """Revoke one refresh token. Revoking an absent token is a no-op.

        Raises:
            InvalidTokenError: If the token is not a refresh token signed by us.
        """
        payload = self._decode_refresh(refresh_token)
        if payload.sub != user_id:
            logger.warning("Refresh token belongs to another user", user_id=user_id)
            return

        record = await self._storage.get_refresh_token(user_id, payload.jti)
        if record is None:
            return
        if not await self._hasher.verify(record.token_hash, refresh_token):
            logger.warning(
                "Refresh token hash mismatch on revoke",
                user_id=user_id,
                token_id=payload.jti,
            )
            return

        await self._storage.delete_refresh_token(user_id, payload.jti)
        logger.info("Refresh token revoked", user_id=user_id, token_id=payload.jti)

    async def revoke_token(self, refresh_token: str) -> None:
        """Revoke a refresh token on behalf of the user it was issued to.

        The owner comes from the token's verified subject, so no access token
        is needed.

        Raises:
            InvalidTokenError: If the token is not a refresh token signed by us.
        """
        payload = self._decode_refresh(refresh_token)
        await self.revoke(payload.sub, refresh_token)

    async def revoke_all(self, user_id: str) -> int:
        """Revoke every refresh token held by a user.

        Returns:
            Number of records removed.
        """
        count = await self._storage.delete_user_tokens(user_id)
        logger.info("User tokens revoked", user_id=user_id, count=count)
        return count

    async def cleanup_expired(self) -> int:
        """Delete all expired refresh token records.

        Returns:
            Number of records removed.
        """
        count = await self._storage.cleanup_expired(self._clock())
        if count:
            logger.info("Expired tokens cleaned up", count=count)
        return count
