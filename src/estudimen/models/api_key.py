"""Stored third-party AI provider API keys."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class ApiProvider(str, Enum):
    """AI providers a user can register a key for."""

    GEMINI = "gemini"
    OPENAI = "openai"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApiKeyRecord(BaseModel):
    """Persisted API key.

    The plaintext key is never held here; encrypted_key is the opaque
    string produced by CredentialVault.encrypt_for_storage.
    """

    id: str = Field(..., description="Key identifier, e.g. gem_lx3k9a_4f7c2d")
    user_id: str
    provider: ApiProvider
    encrypted_key: str = Field(..., repr=False)
    key_prefix: str = Field(..., description="Leading characters kept for display")
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
