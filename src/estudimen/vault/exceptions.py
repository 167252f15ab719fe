"""Credential vault exceptions."""

from estudimen.exceptions import EstudimenError


class VaultError(EstudimenError):
    """Base credential vault error."""

    pass


class DecryptionError(VaultError):
    """Raised when stored key material cannot be decrypted.

    Covers corrupted data, a different encryption key, tampering and
    unparseable storage strings alike. Retrying never helps.
    """

    def __init__(self, message: str = "Decryption failed: invalid data"):
        super().__init__(message)
