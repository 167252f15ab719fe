"""Slow salted hashing for refresh tokens and passwords.

Argon2 is CPU-bound, so hash and verify run on a worker thread to keep the
event loop responsive while requests are being served.
"""

import asyncio

import structlog
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

logger = structlog.get_logger()


class SecretHasher:
    """Argon2id hasher with a configurable cost factor."""

    def __init__(self, time_cost: int = 3):
        """Initialize hasher.

        Args:
            time_cost: Argon2 iteration count; higher is slower to brute-force.
        """
        self._hasher = PasswordHasher(time_cost=time_cost)

    def hash_sync(self, secret: str) -> str:
        return self._hasher.hash(secret)

    def verify_sync(self, secret_hash: str, secret: str) -> bool:
        try:
            return self._hasher.verify(secret_hash, secret)
        except VerifyMismatchError:
            return False
        except (VerificationError, InvalidHashError) as e:
            logger.warning("Stored hash could not be verified", error=str(e))
            return False

    async def hash(self, secret: str) -> str:
        """Hash a secret off the event loop."""
        return await asyncio.to_thread(self.hash_sync, secret)

    async def verify(self, secret_hash: str, secret: str) -> bool:
        """Check a secret against a stored hash off the event loop.

        Returns:
            True on match, False on mismatch or malformed hash.
        """
        return await asyncio.to_thread(self.verify_sync, secret_hash, secret)
