"""Account operations: registration, login, logout, refresh and profile updates."""

from pathlib import Path
from typing import Optional
from uuid import UUID

import structlog

from accounts.errors import (
    AuthError,
    ConflictError,
    NotFoundError,
    UploadError,
    ValidationError,
)
from accounts.models.auth import LoginRequest, RegistrationInput
from accounts.models.user import LoginResult, TokenPair, User
from accounts.services.password_service import MAX_PASSWORD_BYTES, PasswordService
from accounts.services.session_service import SUPERSEDED_MESSAGE, SessionService
from accounts.services.storage_service import StorageService
from accounts.services.token_service import TokenService
from accounts.services.user_service import CONFLICT_MESSAGE, UserService

logger = structlog.get_logger(__name__)

PASSWORD_TOO_LONG_MESSAGE = f"Password must be at most {MAX_PASSWORD_BYTES} bytes"


class AccountService:
    """Composes the credential store, hasher, token service and session state.

    Raises only errors from ``accounts.errors``; the API layer translates
    them into response envelopes.
    """

    def __init__(
        self,
        user_service: Optional[UserService] = None,
        password_service: Optional[PasswordService] = None,
        token_service: Optional[TokenService] = None,
        session_service: Optional[SessionService] = None,
        storage_service: Optional[StorageService] = None,
    ):
        self.user_service = user_service or UserService()
        self.password_service = password_service or PasswordService()
        self.token_service = token_service or TokenService()
        self.session_service = session_service or SessionService(self.user_service)
        self.storage_service = storage_service or StorageService()

    async def _start_session(self, user: User, expected: Optional[str] = None) -> TokenPair:
        """Issue a token pair and make its refresh token the only valid one."""
        tokens = self.token_service.issue_token_pair(user)
        await self.session_service.rotate(user.id, tokens.refresh_token, expected=expected)
        return tokens

    async def register(
        self,
        data: RegistrationInput,
        avatar_path: Optional[Path],
        cover_image_path: Optional[Path] = None,
    ) -> User:
        """Create a user account with an avatar and optional cover image.

        Raises:
            ValidationError: A required field is missing or blank, or the
                password is too long
            ConflictError: Username or email already registered
            UploadError: Avatar missing, or an upload failed
        """
        if not all([data.full_name, data.email, data.username, data.password]):
            raise ValidationError("All fields are required")
        if self.password_service.is_too_long(data.password):
            raise ValidationError(PASSWORD_TOO_LONG_MESSAGE)

        if await self.user_service.exists(data.username, data.email):
            logger.info("registration_conflict", username=data.username.lower())
            raise ConflictError(CONFLICT_MESSAGE)

        if avatar_path is None:
            raise UploadError("Avatar file is required")

        avatar = await self.storage_service.upload(avatar_path)
        cover_image_url = ""
        if cover_image_path is not None:
            cover_image = await self.storage_service.upload(cover_image_path)
            cover_image_url = cover_image.url

        user = await self.user_service.create_user(
            username=data.username,
            email=data.email,
            full_name=data.full_name,
            password_hash=self.password_service.hash_password(data.password),
            avatar=avatar.url,
            cover_image=cover_image_url,
        )

        logger.info("user_registered", user_id=str(user.id), username=user.username)
        return user

    async def login(self, request: LoginRequest) -> LoginResult:
        """Authenticate by username or email and start a new session.

        Raises:
            ValidationError: No identifier or no password supplied
            NotFoundError: No user matches the identifier
            AuthError: Password does not match
        """
        if not (request.username or request.email):
            raise ValidationError("Please provide either username or email")
        if not request.password:
            raise ValidationError("Password is required")

        result = await self.user_service.find_by_username_or_email(
            request.username, request.email
        )
        if result is None:
            raise NotFoundError("User does not exist")

        user, password_hash = result

        if not self.password_service.verify_password(request.password, password_hash):
            logger.info("login_rejected", user_id=str(user.id))
            raise AuthError("Invalid user credentials")

        tokens = await self._start_session(user)

        logger.info("user_logged_in", user_id=str(user.id), username=user.username)
        return LoginResult(user=user, tokens=tokens)

    async def logout(self, user_id: UUID) -> None:
        """End the user's session; any issued refresh token stops working."""
        await self.session_service.clear(user_id)
        logger.info("user_logged_out", user_id=str(user_id))

    async def refresh(self, presented_token: Optional[str]) -> TokenPair:
        """Exchange the current refresh token for a new pair.

        The presented token must be the one on record. The new pair is only
        returned once the session has been rotated to it.

        Raises:
            AuthError: Token missing, invalid, expired, or superseded
        """
        if not presented_token:
            raise AuthError("Unauthorized request")

        claims = self.token_service.verify(presented_token, "refresh")

        user = await self.user_service.get_by_id(claims.user_id)
        if user is None:
            raise AuthError("Invalid refresh token")

        if not await self.session_service.validate(user.id, presented_token):
            logger.warning("refresh_token_superseded", user_id=str(user.id))
            raise AuthError(SUPERSEDED_MESSAGE)

        tokens = await self._start_session(user, expected=presented_token)

        logger.info("access_token_refreshed", user_id=str(user.id))
        return tokens

    async def change_password(
        self, user_id: UUID, old_password: Optional[str], new_password: Optional[str]
    ) -> None:
        """Replace the password after checking the current one.

        The current session is left intact.

        Raises:
            ValidationError: Either password missing or blank, or the new
                password is too long
            AuthError: Old password is wrong (surfaced with status 400)
        """
        if not old_password or not new_password or not new_password.strip():
            raise ValidationError("Old and new password are required")
        if self.password_service.is_too_long(new_password):
            raise ValidationError(PASSWORD_TOO_LONG_MESSAGE)

        password_hash = await self.user_service.get_password_hash(user_id)
        if password_hash is None:
            raise AuthError("Invalid user")

        if not self.password_service.verify_password(old_password, password_hash):
            logger.info("password_change_rejected", user_id=str(user_id))
            raise AuthError("Invalid old password", status_code=400)

        await self.user_service.update_fields(
            user_id, password_hash=self.password_service.hash_password(new_password)
        )
        logger.info("password_changed", user_id=str(user_id))

    async def update_account(
        self, user_id: UUID, full_name: Optional[str], email: Optional[str]
    ) -> User:
        """Update display name and email.

        Raises:
            ValidationError: Either field missing or blank
            ConflictError: Email belongs to another user
        """
        if not full_name or not email:
            raise ValidationError("All fields are required")

        user = await self.user_service.update_fields(user_id, full_name=full_name, email=email)
        if user is None:
            raise AuthError("Invalid user")
        return user

    async def _replace_image(
        self, user_id: UUID, local_path: Optional[Path], column: str, missing_message: str
    ) -> User:
        if local_path is None:
            raise ValidationError(missing_message)

        image = await self.storage_service.upload(local_path)

        user = await self.user_service.update_fields(user_id, **{column: image.url})
        if user is None:
            raise AuthError("Invalid user")

        logger.info("user_image_updated", user_id=str(user_id), image=column)
        return user

    async def update_avatar(self, user_id: UUID, local_path: Optional[Path]) -> User:
        """Upload and store a new avatar image."""
        return await self._replace_image(user_id, local_path, "avatar", "Avatar file is missing")

    async def update_cover_image(self, user_id: UUID, local_path: Optional[Path]) -> User:
        """Upload and store a new cover image."""
        return await self._replace_image(
            user_id, local_path, "cover_image", "Cover image file is missing"
        )
