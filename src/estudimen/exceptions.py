"""Custom exceptions for Estudimen application.

Provides a structured exception hierarchy for different error scenarios.
"""


class EstudimenError(Exception):
    """Base exception class for all Estudimen errors."""

    pass


class StorageError(EstudimenError):
    """Raised when a record store operation fails.

    Attributes:
        operation: Name of the store operation that failed.
    """

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"Storage operation {operation} failed: {message}")


class ConfigurationError(EstudimenError):
    """Raised at startup when required configuration is missing or invalid.

    The process must not serve traffic after this is raised.
    """

    pass
