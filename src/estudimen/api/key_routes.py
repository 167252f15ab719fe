"""API key management routes.

Users store their own Gemini/OpenAI keys; responses only ever expose the
display prefix, never ciphertext or plaintext.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from estudimen.auth.dependencies import get_api_key_service, require_auth
from estudimen.auth.models import AccessClaims
from estudimen.models.api_key import ApiKeyRecord, ApiProvider
from estudimen.services.api_key_service import ApiKeyService
from estudimen.services.exceptions import (
    ApiKeyLimitExceededError,
    ApiKeyNotFoundError,
    InvalidApiKeyError,
)

router = APIRouter(prefix="/api/user/keys", tags=["api-keys"])


class AddApiKeyRequest(BaseModel):
    """Request model for adding a provider key."""

    provider: ApiProvider
    api_key: str = Field(..., min_length=10, description="Plaintext provider API key")


class ApiKeyResponse(BaseModel):
    """Public view of a stored key."""

    id: str
    provider: ApiProvider
    key_prefix: str
    is_active: bool
    created_at: datetime
    updated_at: datetime
    masked_key: str | None = Field(
        default=None,
        description="Masked key, only returned when the key is added",
    )

    @classmethod
    def from_record(cls, record: ApiKeyRecord, masked_key: str | None = None) -> "ApiKeyResponse":
        return cls(
            id=record.id,
            provider=record.provider,
            key_prefix=record.key_prefix,
            is_active=record.is_active,
            created_at=record.created_at,
            updated_at=record.updated_at,
            masked_key=masked_key,
        )


@router.get("", response_model=list[ApiKeyResponse])
async def list_keys(
    user: AccessClaims = Depends(require_auth),
    service: ApiKeyService = Depends(get_api_key_service),
) -> list[ApiKeyResponse]:
    """List the caller's keys, newest first."""
    records = await service.list_keys(user.user_id)
    return [ApiKeyResponse.from_record(r) for r in records]


@router.post("", response_model=ApiKeyResponse, status_code=status.HTTP_201_CREATED)
async def add_key(
    request: AddApiKeyRequest,
    user: AccessClaims = Depends(require_auth),
    service: ApiKeyService = Depends(get_api_key_service),
) -> ApiKeyResponse:
    """Encrypt and store a key, replacing any active key for the same provider.

    Raises:
        HTTPException: 400 on bad format or when the key limit is reached.
    """
    try:
        record = await service.add_key(user.user_id, request.provider, request.api_key)
    except (InvalidApiKeyError, ApiKeyLimitExceededError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return ApiKeyResponse.from_record(record, masked_key=service.mask(request.api_key))


@router.delete("/{key_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_key(
    key_id: str,
    user: AccessClaims = Depends(require_auth),
    service: ApiKeyService = Depends(get_api_key_service),
) -> None:
    """Delete one of the caller's keys.

    Raises:
        HTTPException: 404 if the key does not exist or belongs to someone else.
    """
    try:
        await service.delete_key(user.user_id, key_id)
    except ApiKeyNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="API key not found",
        )
