"""Per-user session state: the single live refresh token.

The session is the refresh token digest stored on the user record. This
module is the only code that reads or writes it.
"""

import hashlib
import hmac
from typing import Optional
from uuid import UUID

import structlog

from accounts.errors import AuthError, FatalError
from accounts.services.user_service import UserService

logger = structlog.get_logger(__name__)

SUPERSEDED_MESSAGE = "Refresh token is expired or used"


def hash_refresh_token(raw_token: str) -> str:
    """SHA-256 hex digest of a refresh token, as stored in the database."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


class SessionService:
    """Rotation, validation and clearing of a user's refresh token."""

    def __init__(self, user_service: Optional[UserService] = None):
        self.user_service = user_service or UserService()

    async def rotate(
        self,
        user_id: UUID,
        new_refresh_token: str,
        expected: Optional[str] = None,
    ) -> None:
        """Replace the stored refresh token, invalidating any prior one.

        Args:
            user_id: User whose session is rotated
            new_refresh_token: Raw token that becomes the only valid one
            expected: Raw token being exchanged; when given, the overwrite
                only happens if it is still the one on record

        Raises:
            AuthError: ``expected`` was superseded before the write landed
            FatalError: The user record disappeared
        """
        new_hash = hash_refresh_token(new_refresh_token)
        expected_hash = hash_refresh_token(expected) if expected is not None else None

        updated = await self.user_service.set_refresh_token_hash(
            user_id, new_hash, expected=expected_hash
        )

        if not updated:
            if expected is not None:
                logger.warning("session_rotation_lost_race", user_id=str(user_id))
                raise AuthError(SUPERSEDED_MESSAGE)
            logger.error("session_rotation_user_missing", user_id=str(user_id))
            raise FatalError("Something went wrong while generating refresh and access token")

        logger.info("session_rotated", user_id=str(user_id), compare_and_set=expected is not None)

    async def validate(self, user_id: UUID, presented_token: str) -> bool:
        """True iff the presented token is the one currently on record."""
        stored_hash = await self.user_service.get_refresh_token_hash(user_id)
        if stored_hash is None:
            return False
        return hmac.compare_digest(stored_hash, hash_refresh_token(presented_token))

    async def clear(self, user_id: UUID) -> None:
        """Remove the stored refresh token (logout)."""
        await self.user_service.set_refresh_token_hash(user_id, None)
        logger.info("session_cleared", user_id=str(user_id))
