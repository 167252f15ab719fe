"""Models package."""

from estudimen.models.api_key import ApiKeyRecord, ApiProvider

__all__ = [
    "ApiKeyRecord",
    "ApiProvider",
]
