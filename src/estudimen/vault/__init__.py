"""Credential vault for third-party AI provider API keys.

Security Note:
    Plaintext keys exist only in memory at the moment of use. Never log
    plaintext or ciphertext values; log key ids and providers only.
"""

from estudimen.vault.credential_vault import (
    CredentialVault,
    EncryptedPayload,
    generate_encryption_key,
)
from estudimen.vault.exceptions import DecryptionError, VaultError

__all__ = [
    "CredentialVault",
    "DecryptionError",
    "EncryptedPayload",
    "VaultError",
    "generate_encryption_key",
]
