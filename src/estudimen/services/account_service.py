"""User registration, login and deactivation."""

import uuid

import structlog

from estudimen.auth.exceptions import InvalidCredentialsError, UserAlreadyExistsError
from estudimen.auth.hashing import SecretHasher
from estudimen.auth.models import User
from estudimen.auth.session_authority import SessionAuthority
from estudimen.storage.base import UserStorage

logger = structlog.get_logger()


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AccountService:
    """Account lifecycle on top of the user store."""

    def __init__(
        self,
        storage: UserStorage,
        hasher: SecretHasher,
        authority: SessionAuthority | None = None,
    ):
        """Initialize service.

        Args:
            storage: User store.
            hasher: Password hasher.
            authority: When given, deactivation also ends all sessions.
        """
        self._storage = storage
        self._hasher = hasher
        self._authority = authority

    async def register(self, email: str, password: str, name: str) -> User:
        """Create an active account.

        Raises:
            UserAlreadyExistsError: If the email is taken.
        """
        email = normalize_email(email)
        if await self._storage.get_user_by_email(email) is not None:
            raise UserAlreadyExistsError(email)

        user = User(
            id=uuid.uuid4().hex,
            email=email,
            name=name.strip(),
            password_hash=await self._hasher.hash(password),
        )
        await self._storage.create_user(user)
        logger.info("User registered", user_id=user.id)
        return user

    async def authenticate(self, email: str, password: str) -> User:
        """Check email and password.

        Unknown email, inactive account and wrong password all raise the same
        error so callers cannot probe which accounts exist.

        Raises:
            InvalidCredentialsError: On any mismatch.
        """
        user = await self._storage.get_user_by_email(normalize_email(email))
        if user is None or not user.is_active:
            raise InvalidCredentialsError()

        if not await self._hasher.verify(user.password_hash, password):
            logger.warning("Password mismatch", user_id=user.id)
            raise InvalidCredentialsError()

        logger.info("User authenticated", user_id=user.id)
        return user

    async def deactivate(self, user_id: str) -> bool:
        """Deactivate an account and revoke its sessions.

        Returns:
            True if the user existed.
        """
        found = await self._storage.deactivate_user(user_id)
        if found and self._authority is not None:
            await self._authority.revoke_all(user_id)
        logger.info("User deactivated", user_id=user_id, found=found)
        return found
