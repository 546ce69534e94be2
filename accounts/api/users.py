"""User account API endpoints."""

from typing import Any, Optional

from fastapi import APIRouter, Body, Cookie, Depends, File, Form, Response, UploadFile

from accounts.api.dependencies import ACCESS_COOKIE, REFRESH_COOKIE, get_current_user
from accounts.config import get_settings
from accounts.models.auth import (
    ChangePasswordRequest,
    LoginRequest,
    RefreshRequest,
    RegistrationInput,
    UpdateAccountRequest,
)
from accounts.models.response import ApiResponse
from accounts.models.user import TokenPair, User
from accounts.services.account_service import AccountService
from accounts.services.storage_service import StorageService


router = APIRouter(prefix="/api/v1/users", tags=["Users"])


def _envelope(data: Any, message: str, status_code: int = 200) -> ApiResponse:
    if isinstance(data, (User, TokenPair)):
        data = data.model_dump(mode="json", by_alias=True)
    return ApiResponse(status_code=status_code, data=data, message=message)


def _set_token_cookies(response: Response, tokens: TokenPair) -> None:
    """Deliver both tokens as HttpOnly cookies that live as long as the tokens."""
    settings = get_settings()
    for name, value, max_age in (
        (ACCESS_COOKIE, tokens.access_token, settings.access_token_ttl_seconds),
        (REFRESH_COOKIE, tokens.refresh_token, settings.refresh_token_ttl_seconds),
    ):
        response.set_cookie(
            name,
            value,
            max_age=max_age,
            httponly=True,
            secure=settings.cookie_secure,
            samesite=settings.cookie_samesite,
        )


def _clear_token_cookies(response: Response) -> None:
    settings = get_settings()
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(
            name,
            httponly=True,
            secure=settings.cookie_secure,
            samesite=settings.cookie_samesite,
        )


@router.post("/register")
async def register(
    full_name: Optional[str] = Form(None, alias="fullName"),
    email: Optional[str] = Form(None),
    username: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
) -> ApiResponse:
    """Register a new user with an avatar and optional cover image.

    Returns:
        Envelope with the created user (no password or refresh token)

    Raises:
        ValidationError 400, ConflictError 409, UploadError 400/502
    """
    data = RegistrationInput(
        full_name=full_name,
        email=email,
        username=username,
        password=password,
    )

    async with StorageService() as storage_service:
        account_service = AccountService(storage_service=storage_service)

        async with storage_service.stage_upload(avatar) as avatar_path:
            async with storage_service.stage_upload(cover_image) as cover_image_path:
                user = await account_service.register(data, avatar_path, cover_image_path)

    return _envelope(user, "User registered successfully")


@router.post("/login")
async def login(request: LoginRequest, response: Response) -> ApiResponse:
    """Login with username or email and password.

    Sets accessToken/refreshToken cookies and returns both tokens in the body.

    Raises:
        ValidationError 400, NotFoundError 404, AuthError 401
    """
    account_service = AccountService()
    result = await account_service.login(request)

    _set_token_cookies(response, result.tokens)

    return _envelope(
        {
            "user": result.user.model_dump(mode="json", by_alias=True),
            "accessToken": result.tokens.access_token,
            "refreshToken": result.tokens.refresh_token,
        },
        "User logged in successfully",
    )


@router.post("/logout")
async def logout(
    response: Response,
    current_user: User = Depends(get_current_user),
) -> ApiResponse:
    """End the current session and clear token cookies."""
    account_service = AccountService()
    await account_service.logout(current_user.id)

    _clear_token_cookies(response)
    return _envelope({}, "User logged out")


@router.post("/refresh-token")
async def refresh_token(
    response: Response,
    body: Optional[RefreshRequest] = Body(None),
    refresh_cookie: Optional[str] = Cookie(None, alias=REFRESH_COOKIE),
) -> ApiResponse:
    """Exchange a refresh token (cookie or body) for a new token pair.

    Raises:
        AuthError 401: Token missing, invalid, expired, or already rotated away
    """
    presented = refresh_cookie or (body.refresh_token if body is not None else None)

    account_service = AccountService()
    tokens = await account_service.refresh(presented)

    _set_token_cookies(response, tokens)
    return _envelope(tokens, "Access token refreshed")


@router.post("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
) -> ApiResponse:
    """Change the current user's password."""
    account_service = AccountService()
    await account_service.change_password(
        current_user.id, request.old_password, request.new_password
    )
    return _envelope({}, "Password updated successfully")


@router.get("/current-user")
async def current_user_details(current_user: User = Depends(get_current_user)) -> ApiResponse:
    """Get the authenticated user."""
    return _envelope(current_user, "Current user details")


@router.patch("/account")
async def update_account(
    request: UpdateAccountRequest,
    current_user: User = Depends(get_current_user),
) -> ApiResponse:
    """Update full name and email."""
    account_service = AccountService()
    user = await account_service.update_account(
        current_user.id, request.full_name, request.email
    )
    return _envelope(user, "Account details updated successfully")


@router.patch("/avatar")
async def update_avatar(
    avatar: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
) -> ApiResponse:
    """Replace the avatar image."""
    async with StorageService() as storage_service:
        account_service = AccountService(storage_service=storage_service)

        async with storage_service.stage_upload(avatar) as avatar_path:
            user = await account_service.update_avatar(current_user.id, avatar_path)

    return _envelope(user, "Avatar image updated successfully")


@router.patch("/cover-image")
async def update_cover_image(
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    current_user: User = Depends(get_current_user),
) -> ApiResponse:
    """Replace the cover image."""
    async with StorageService() as storage_service:
        account_service = AccountService(storage_service=storage_service)

        async with storage_service.stage_upload(cover_image) as cover_image_path:
            user = await account_service.update_cover_image(current_user.id, cover_image_path)

    return _envelope(user, "Cover image updated successfully")
