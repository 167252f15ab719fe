"""FastAPI dependency injection for authentication.

Services are constructed once in the application lifespan and kept on
app.state; these dependencies hand them to route handlers.
"""

import structlog
from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from estudimen.auth.exceptions import InvalidTokenError
from estudimen.auth.models import AccessClaims
from estudimen.auth.session_authority import SessionAuthority
from estudimen.services.account_service import AccountService
from estudimen.services.api_key_service import ApiKeyService

logger = structlog.get_logger()

bearer_scheme = HTTPBearer(auto_error=False)


def get_session_authority(request: Request) -> SessionAuthority:
    return request.app.state.authority


def get_account_service(request: Request) -> AccountService:
    return request.app.state.accounts


def get_api_key_service(request: Request) -> ApiKeyService:
    return request.app.state.api_keys


async def require_auth(
    request: Request,
    bearer_credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
    authority: SessionAuthority = Depends(get_session_authority),
) -> AccessClaims:
    """Dependency for protected endpoints.

    Returns:
        Claims of the verified access token.

    Raises:
        HTTPException: 401 if the bearer token is missing or invalid.
    """
    if bearer_credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        claims = authority.verify_access_token(bearer_credentials.credentials)
    except InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    request.state.auth_user = claims
    structlog.contextvars.bind_contextvars(user_id=claims.user_id)
    return claims
