"""Authentication routes.

Registration, login, token refresh and logout.
"""

import re

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator

from estudimen.auth.dependencies import (
    get_account_service,
    get_session_authority,
    require_auth,
)
from estudimen.auth.exceptions import (
    InvalidCredentialsError,
    InvalidTokenError,
    UserAlreadyExistsError,
    UserNotFoundError,
)
from estudimen.auth.models import AccessClaims, TokenPair, User
from estudimen.auth.session_authority import SessionAuthority
from estudimen.services.account_service import AccountService

logger = structlog.get_logger()

router = APIRouter(prefix="/api/auth", tags=["authentication"])

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class RegisterRequest(BaseModel):
    """Registration request model."""

    email: str = Field(..., max_length=254)
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=2, max_length=100)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        if not EMAIL_PATTERN.match(v.strip()):
            raise ValueError("Invalid email format")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if not re.search(r"[A-Z]", v):
            raise ValueError("Password must contain at least one uppercase letter")
        if not re.search(r"[a-z]", v):
            raise ValueError("Password must contain at least one lowercase letter")
        if not re.search(r"[0-9]", v):
            raise ValueError("Password must contain at least one number")
        return v


class LoginRequest(BaseModel):
    """Login request model."""

    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RefreshTokenRequest(BaseModel):
    """Request model for token refresh."""

    refresh_token: str = Field(..., min_length=1, description="Refresh token to exchange")


class LogoutRequest(BaseModel):
    """Request model for logout; without a token nothing is revoked."""

    refresh_token: str | None = Field(default=None, description="Refresh token to revoke")


class UserResponse(BaseModel):
    """Public view of a user."""

    id: str
    email: str
    name: str
    is_active: bool

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(id=user.id, email=user.email, name=user.name, is_active=user.is_active)


class SessionResponse(BaseModel):
    """User plus freshly issued tokens."""

    user: UserResponse
    tokens: TokenPair


class MessageResponse(BaseModel):
    """Simple message response."""

    message: str


@router.post("/register", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    accounts: AccountService = Depends(get_account_service),
    authority: SessionAuthority = Depends(get_session_authority),
) -> SessionResponse:
    """Create an account and start a session.

    Raises:
        HTTPException: 409 if the email is already registered.
    """
    try:
        user = await accounts.register(request.email, request.password, request.name)
    except UserAlreadyExistsError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An account with this email already exists",
        )

    tokens = await authority.issue_token_pair(user)
    return SessionResponse(user=UserResponse.from_user(user), tokens=tokens)


@router.post("/login", response_model=SessionResponse)
async def login(
    request: LoginRequest,
    accounts: AccountService = Depends(get_account_service),
    authority: SessionAuthority = Depends(get_session_authority),
) -> SessionResponse:
    """Exchange email and password for a token pair.

    Raises:
        HTTPException: 401 if the credentials are invalid.
    """
    try:
        user = await accounts.authenticate(request.email, request.password)
    except InvalidCredentialsError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    tokens = await authority.issue_token_pair(user)
    return SessionResponse(user=UserResponse.from_user(user), tokens=tokens)


@router.post("/refresh", response_model=TokenPair)
async def refresh_token(
    request: RefreshTokenRequest,
    authority: SessionAuthority = Depends(get_session_authority),
) -> TokenPair:
    """Exchange a refresh token for a new pair; the old refresh token stops working.

    Raises:
        HTTPException: 401 if the refresh token is invalid or its user is gone.
    """
    try:
        return await authority.rotate_tokens(request.refresh_token)
    except (InvalidTokenError, UserNotFoundError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="The refresh token is invalid or expired",
        )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: LogoutRequest,
    authority: SessionAuthority = Depends(get_session_authority),
) -> MessageResponse:
    """Revoke the given refresh token.

    No access token is required: the owner is read from the refresh token,
    so a client whose access token already expired can still end its session.
    Existing access tokens are not revoked; they expire on their own.
    """
    if request.refresh_token:
        try:
            await authority.revoke_token(request.refresh_token)
        except InvalidTokenError:
            # Logging out with a garbage token still logs out
            logger.info("Logout with unusable refresh token")

    return MessageResponse(message="Logout successful")


@router.post("/logout-all", response_model=MessageResponse)
async def logout_all(
    user: AccessClaims = Depends(require_auth),
    authority: SessionAuthority = Depends(get_session_authority),
) -> MessageResponse:
    """Revoke every refresh token of the caller."""
    count = await authority.revoke_all(user.user_id)
    return MessageResponse(message=f"Revoked {count} session(s)")


@router.get("/me", response_model=AccessClaims)
async def me(user: AccessClaims = Depends(require_auth)) -> AccessClaims:
    """Return the identity carried by the access token."""
    return user
