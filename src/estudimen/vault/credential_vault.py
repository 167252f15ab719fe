"""Credential Vault: encryption, validation and masking of provider API keys.

Encryption: HKDF-SHA256(ENCRYPTION_KEY, "estudimen-api-keys") -> AES-256-GCM
with a random 96-bit nonce per call. Storage format is a JSON object
{"encrypted": <base64 ciphertext+tag>, "iv": <base64 nonce>}.

Security Note:
    Never log plaintext or ciphertext values.
"""

import base64
import binascii
import json
import os
import re
import secrets
from dataclasses import dataclass

import structlog
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from estudimen.exceptions import ConfigurationError
from estudimen.models.api_key import ApiProvider
from estudimen.vault.exceptions import DecryptionError

logger = structlog.get_logger()

MIN_KEY_LENGTH = 32
NONCE_SIZE = 12  # 96-bit nonce
DERIVED_KEY_LENGTH = 32  # AES-256
KDF_CONTEXT = b"estudimen-api-keys"

# Provider key formats
GEMINI_KEY_PATTERN = re.compile(r"[A-Za-z0-9_-]+")
GEMINI_MIN_LENGTH = 30
OPENAI_KEY_PREFIX = "sk-"
OPENAI_MIN_LENGTH = 40

# Masking
MASK_VISIBLE_CHARS = 4
MASK_MIN_LENGTH = 2 * MASK_VISIBLE_CHARS
MASK_CHAR = "*"
MASK_PLACEHOLDER = "***"


@dataclass(frozen=True)
class EncryptedPayload:
    """Ciphertext and the nonce it was produced with, both base64."""

    ciphertext: str
    iv: str


def generate_encryption_key() -> str:
    """Generate a random 32-byte key as base64 (44 characters).

    Utility for operators provisioning ENCRYPTION_KEY or JWT_SECRET.
    """
    return base64.b64encode(secrets.token_bytes(32)).decode("ascii")


class CredentialVault:
    """Protects API key plaintext at rest.

    One instance is built at startup and shared by reference.
    """

    def __init__(self, encryption_key: str):
        """Initialize the vault.

        Args:
            encryption_key: Process-wide secret, at least 32 characters.

        Raises:
            ConfigurationError: If the key is missing or too short.
        """
        if not encryption_key or len(encryption_key) < MIN_KEY_LENGTH:
            raise ConfigurationError(
                f"Encryption key must be at least {MIN_KEY_LENGTH} characters long"
            )
        hkdf = HKDF(
            algorithm=hashes.SHA256(),
            length=DERIVED_KEY_LENGTH,
            salt=None,  # deterministic: the same key must decrypt across restarts
            info=KDF_CONTEXT,
        )
        self._cipher = AESGCM(hkdf.derive(encryption_key.encode("utf-8")))

    # ------------------------------------------------------------------
    # Validation and display
    # ------------------------------------------------------------------

    @staticmethod
    def validate_format(api_key: str, provider: ApiProvider | str) -> bool:
        """Syntactic check of a provider API key. Never raises."""
        if not api_key or not isinstance(api_key, str):
            return False

        try:
            provider = ApiProvider(provider)
        except ValueError:
            return False

        if provider is ApiProvider.GEMINI:
            return (
                len(api_key) >= GEMINI_MIN_LENGTH
                and GEMINI_KEY_PATTERN.fullmatch(api_key) is not None
            )
        if provider is ApiProvider.OPENAI:
            return api_key.startswith(OPENAI_KEY_PREFIX) and len(api_key) >= OPENAI_MIN_LENGTH
        return False

    @staticmethod
    def mask(api_key: str) -> str:
        """Mask a key for display, keeping 4 leading and 4 trailing characters.

        Keys shorter than 8 characters collapse to a fixed placeholder.
        """
        if not api_key or len(api_key) < MASK_MIN_LENGTH:
            return MASK_PLACEHOLDER

        prefix = api_key[:MASK_VISIBLE_CHARS]
        suffix = api_key[-MASK_VISIBLE_CHARS:]
        return f"{prefix}{MASK_CHAR * (len(api_key) - MASK_MIN_LENGTH)}{suffix}"

    # ------------------------------------------------------------------
    # Encryption
    # ------------------------------------------------------------------

    def encrypt(self, plaintext: str) -> EncryptedPayload:
        """Encrypt a key under a fresh random nonce."""
        nonce = os.urandom(NONCE_SIZE)
        ct = self._cipher.encrypt(nonce, plaintext.encode("utf-8"), None)
        return EncryptedPayload(
            ciphertext=base64.b64encode(ct).decode("ascii"),
            iv=base64.b64encode(nonce).decode("ascii"),
        )

    def decrypt(self, payload: EncryptedPayload) -> str:
        """Decrypt a payload produced by encrypt().

        Raises:
            DecryptionError: If the payload is corrupted, tampered with or was
                encrypted under a different key.
        """
        try:
            nonce = base64.b64decode(payload.iv, validate=True)
            ct = base64.b64decode(payload.ciphertext, validate=True)
        except (binascii.Error, TypeError, ValueError) as e:
            raise DecryptionError("Decryption failed: malformed payload") from e

        if len(nonce) != NONCE_SIZE:
            raise DecryptionError("Decryption failed: invalid iv")

        try:
            plaintext = self._cipher.decrypt(nonce, ct, None)
        except InvalidTag as e:
            logger.warning("API key decryption rejected")
            raise DecryptionError() from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError() from e

    def encrypt_for_storage(self, plaintext: str) -> str:
        """Encrypt a key into a single storable string."""
        payload = self.encrypt(plaintext)
        return json.dumps({"encrypted": payload.ciphertext, "iv": payload.iv})

    def decrypt_from_storage(self, data: str) -> str:
        """Decrypt a string produced by encrypt_for_storage().

        Raises:
            DecryptionError: If the string cannot be parsed or decrypted.
        """
        try:
            parsed = json.loads(data)
            payload = EncryptedPayload(ciphertext=parsed["encrypted"], iv=parsed["iv"])
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise DecryptionError("Failed to parse encrypted data") from e
        return self.decrypt(payload)
