"""Models package exports."""

from accounts.models.auth import (
    ChangePasswordRequest,
    LoginRequest,
    RefreshRequest,
    RegistrationInput,
    UpdateAccountRequest,
)
from accounts.models.response import ApiErrorResponse, ApiResponse
from accounts.models.user import (
    LoginResult,
    StoredImage,
    TokenClaims,
    TokenPair,
    TokenType,
    User,
)

__all__ = [
    "ApiErrorResponse",
    "ApiResponse",
    "ChangePasswordRequest",
    "LoginRequest",
    "LoginResult",
    "RefreshRequest",
    "RegistrationInput",
    "StoredImage",
    "TokenClaims",
    "TokenPair",
    "TokenType",
    "UpdateAccountRequest",
    "User",
]
