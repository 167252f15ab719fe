"""Authentication-specific exceptions.

Extends the Estudimen exception hierarchy for auth errors.
"""

from estudimen.exceptions import EstudimenError


class AuthenticationError(EstudimenError):
    """Base authentication error."""

    pass


class InvalidTokenError(AuthenticationError):
    """Raised when a token fails any check.

    Signature, issuer/audience, expiry, type and revocation failures all map
    here so callers cannot tell which check rejected the token.
    """

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message)


class UserNotFoundError(AuthenticationError):
    """Raised when a valid token refers to a user that no longer exists.

    Attributes:
        user_id: Identifier carried by the token.
    """

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


class InvalidCredentialsError(AuthenticationError):
    """Raised when email/password login fails."""

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class UserAlreadyExistsError(AuthenticationError):
    """Raised when registering an email that is already taken.

    Attributes:
        email: The conflicting email address.
    """

    def __init__(self, email: str):
        self.email = email
        super().__init__("An account with this email already exists")
