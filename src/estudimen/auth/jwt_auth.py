"""JWT encoding and decoding for access and refresh tokens.

Both token kinds are HS256-signed with the same secret and carry the same
issuer/audience; the "type" claim keeps them from being used in place of
each other.
"""

import secrets
from datetime import datetime, timedelta, timezone

import jwt
import structlog

from estudimen.auth.exceptions import InvalidTokenError
from estudimen.auth.models import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    TokenPayload,
    User,
)

logger = structlog.get_logger()

ALGORITHM = "HS256"

DEFAULT_ISSUER = "estudimen"
DEFAULT_AUDIENCE = "estudimen-users"


def generate_token_id() -> str:
    """Generate a unique token ID (jti claim)."""
    return secrets.token_urlsafe(32)


def create_access_token(
    user: User,
    secret_key: str,
    expires_delta: timedelta,
    now: datetime,
    issuer: str = DEFAULT_ISSUER,
    audience: str = DEFAULT_AUDIENCE,
) -> str:
    """Create a signed access token for a user.

    Args:
        user: The authenticated user.
        secret_key: Secret key for signing the token.
        expires_delta: Token validity duration.
        now: Issue time.
        issuer: Value of the iss claim.
        audience: Value of the aud claim.

    Returns:
        Encoded JWT string.
    """
    expire = now + expires_delta
    payload = {
        "sub": user.id,
        "email": user.email,
        "name": user.name,
        "iat": now,
        "exp": expire,
        "iss": issuer,
        "aud": audience,
        "type": ACCESS_TOKEN_TYPE,
    }
    token = jwt.encode(payload, secret_key, algorithm=ALGORITHM)
    logger.debug("Access token created", user_id=user.id, expires_at=expire.isoformat())
    return token


def create_refresh_token(
    user_id: str,
    secret_key: str,
    expires_delta: timedelta,
    now: datetime,
    issuer: str = DEFAULT_ISSUER,
    audience: str = DEFAULT_AUDIENCE,
) -> tuple[str, str, datetime]:
    """Create a signed refresh token.

    Args:
        user_id: Owner of the token.
        secret_key: Secret key for signing the token.
        expires_delta: Token validity duration.
        now: Issue time.
        issuer: Value of the iss claim.
        audience: Value of the aud claim.

    Returns:
        Tuple of (encoded JWT string, token_id, expiration datetime).
    """
    expire = now + expires_delta
    token_id = generate_token_id()
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": expire,
        "iss": issuer,
        "aud": audience,
        "type": REFRESH_TOKEN_TYPE,
        "jti": token_id,
    }
    token = jwt.encode(payload, secret_key, algorithm=ALGORITHM)
    logger.debug(
        "Refresh token created",
        user_id=user_id,
        token_id=token_id,
        expires_at=expire.isoformat(),
    )
    return token, token_id, expire


def decode_token(
    token: str,
    secret_key: str,
    expected_type: str,
    now: datetime,
    issuer: str = DEFAULT_ISSUER,
    audience: str = DEFAULT_AUDIENCE,
    verify_exp: bool = True,
) -> TokenPayload:
    """Decode and validate a JWT.

    Args:
        token: The JWT string to decode.
        secret_key: Secret key used for signing.
        expected_type: Required value of the type claim.
        now: Reference time for the expiry check.
        issuer: Required iss claim.
        audience: Required aud claim.
        verify_exp: Set False to accept expired but otherwise valid tokens.

    Returns:
        Decoded TokenPayload.

    Raises:
        InvalidTokenError: On any signature, claim, expiry or type failure.
    """
    try:
        payload = jwt.decode(
            token,
            secret_key,
            algorithms=[ALGORITHM],
            issuer=issuer,
            audience=audience,
            options={
                "require": ["sub", "exp", "iat", "type"],
                # Time claims are checked below against the caller's clock
                "verify_exp": False,
                "verify_iat": False,
            },
        )
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid JWT token", error=str(e))
        raise InvalidTokenError() from e

    if payload.get("type") != expected_type:
        logger.warning("Unexpected token type", expected=expected_type, got=payload.get("type"))
        raise InvalidTokenError()

    token_payload = TokenPayload(
        sub=str(payload["sub"]),
        exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
        type=payload["type"],
        jti=payload.get("jti"),
        email=payload.get("email"),
        name=payload.get("name"),
    )

    if verify_exp and now >= token_payload.exp:
        logger.info("JWT token expired", subject=token_payload.sub)
        raise InvalidTokenError()

    return token_payload
