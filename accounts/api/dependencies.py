"""Auth gate: FastAPI dependency that authorizes a request by access token.

Each request moves through
UNAUTHENTICATED -> TOKEN_EXTRACTED -> TOKEN_VERIFIED -> USER_LOADED -> AUTHORIZED,
or is rejected with ``AuthError`` (401) at the first failing step.
"""

from enum import Enum
from typing import NoReturn, Optional

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from accounts.errors import AuthError
from accounts.models.user import User
from accounts.services.token_service import TokenService
from accounts.services.user_service import UserService

logger = structlog.get_logger(__name__)

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"

bearer_scheme = HTTPBearer(auto_error=False)


class GateStage(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    TOKEN_EXTRACTED = "token_extracted"
    TOKEN_VERIFIED = "token_verified"
    USER_LOADED = "user_loaded"
    AUTHORIZED = "authorized"
    REJECTED = "rejected"


def _reject(stage: GateStage, reason: str) -> NoReturn:
    logger.info("auth_gate_rejected", stage=stage.value, reason=reason)
    raise AuthError(reason)


def extract_access_token(
    request: Request, credentials: Optional[HTTPAuthorizationCredentials]
) -> Optional[str]:
    """Return the access token from the cookie, falling back to the Bearer header."""
    token = request.cookies.get(ACCESS_COOKIE)
    if token:
        return token
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return None


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> User:
    """Extract and validate the current user from an access token.

    Args:
        request: Incoming request (cookie channel, and state for downstream)
        credentials: Bearer token from Authorization header, if any

    Returns:
        Authenticated User model (no password hash or refresh token)

    Raises:
        AuthError: If the token is absent, invalid, expired, or its user is gone
    """
    stage = GateStage.UNAUTHENTICATED

    token = extract_access_token(request, credentials)
    if not token:
        _reject(stage, "Unauthorized request: no token")
    stage = GateStage.TOKEN_EXTRACTED

    try:
        claims = TokenService().verify(token, "access")
    except AuthError as e:
        _reject(stage, e.message)
    stage = GateStage.TOKEN_VERIFIED

    user = await UserService().get_by_id(claims.user_id)
    if user is None:
        _reject(stage, "Invalid access token")
    stage = GateStage.USER_LOADED

    request.state.user = user
    structlog.contextvars.bind_contextvars(user_id=str(user.id))
    stage = GateStage.AUTHORIZED

    logger.debug("auth_gate_passed", stage=stage.value, user_id=str(user.id))
    return user
