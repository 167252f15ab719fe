"""Authentication package.

Token models, errors and password/token hashing. The session authority
lives in estudimen.auth.session_authority.
"""

from estudimen.auth.exceptions import (
    AuthenticationError,
    InvalidCredentialsError,
    InvalidTokenError,
    UserAlreadyExistsError,
    UserNotFoundError,
)
from estudimen.auth.hashing import SecretHasher
from estudimen.auth.models import AccessClaims, RefreshTokenRecord, TokenPair, User

__all__ = [
    "AccessClaims",
    "AuthenticationError",
    "InvalidCredentialsError",
    "InvalidTokenError",
    "RefreshTokenRecord",
    "SecretHasher",
    "TokenPair",
    "User",
    "UserAlreadyExistsError",
    "UserNotFoundError",
]
