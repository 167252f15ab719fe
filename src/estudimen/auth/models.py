"""Authentication-related models."""

from dataclasses import dataclass
from datetime import datetime, timezone

from pydantic import BaseModel, Field

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class User(BaseModel):
    """Registered account."""

    id: str = Field(..., description="User identifier")
    email: str = Field(..., description="Unique, lower-cased email")
    name: str
    password_hash: str = Field(..., repr=False)
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)


class AccessClaims(BaseModel):
    """Identity proven by a verified access token."""

    user_id: str
    email: str
    name: str


class TokenPayload(BaseModel):
    """Decoded JWT claims."""

    sub: str = Field(..., description="Subject (user ID)")
    exp: datetime = Field(..., description="Expiration time")
    iat: datetime = Field(..., description="Issued at")
    type: str = Field(..., description="Token type: 'access' or 'refresh'")
    jti: str | None = Field(default=None, description="JWT ID (refresh tokens only)")
    email: str | None = None
    name: str | None = None


class TokenPair(BaseModel):
    """Access/refresh token pair handed to the client."""

    access_token: str = Field(..., description="Access token for API calls")
    refresh_token: str = Field(..., description="Refresh token for getting a new pair")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Access token expiry in seconds")


@dataclass
class RefreshTokenRecord:
    """Server-side record backing a refresh token.

    Attributes:
        token_id: The token's jti claim, used as lookup key.
        user_id: Owner of the token.
        token_hash: Argon2 hash of the full encoded token.
        created_at: Issue timestamp.
        expires_at: Expiry enforced by the server, independent of the JWT exp.
    """

    token_id: str
    user_id: str
    token_hash: str
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at
