"""Services package."""

from estudimen.services.account_service import AccountService
from estudimen.services.api_key_service import ApiKeyService

__all__ = ["AccountService", "ApiKeyService"]
