"""API key management exceptions."""

from estudimen.exceptions import EstudimenError


class ApiKeyError(EstudimenError):
    """Base API key management error."""

    pass


class InvalidApiKeyError(ApiKeyError):
    """Raised when a key does not match its provider's format.

    Attributes:
        provider: Provider the key was submitted for.
    """

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"The provided API key is not valid for {provider}")


class ApiKeyLimitExceededError(ApiKeyError):
    """Raised when a user already holds the maximum number of active keys.

    Attributes:
        limit: Maximum active keys per user.
    """

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Maximum number of API keys reached ({limit})")


class ApiKeyNotFoundError(ApiKeyError):
    """Raised when a key does not exist or belongs to another user.

    Attributes:
        key_id: The requested key identifier.
    """

    def __init__(self, key_id: str):
        self.key_id = key_id
        super().__init__(f"API key not found: {key_id}")
