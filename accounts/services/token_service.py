"""Signed access and refresh tokens (JWT, HS256)."""

from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID, uuid4

import jwt
import structlog

from accounts.config import get_settings
from accounts.errors import ExpiredToken, FatalError, InvalidToken, MalformedToken
from accounts.models.user import TokenClaims, TokenPair, TokenType, User

logger = structlog.get_logger(__name__)

JWT_ALGORITHM = "HS256"
REQUIRED_CLAIMS = ["sub", "type", "iat", "exp", "jti"]


class TokenService:
    """Issues and verifies access/refresh tokens.

    Each token type is signed with its own secret, so an access token can
    never be accepted where a refresh token is expected (and vice versa),
    whatever its expiry.
    """

    def __init__(self):
        self.settings = get_settings()

        access_secret = self.settings.access_token_secret
        refresh_secret = self.settings.refresh_token_secret

        if not access_secret or not refresh_secret:
            logger.critical("token_secret_missing")
            raise FatalError("Token signing secrets are not configured")
        if access_secret == refresh_secret:
            logger.critical("token_secrets_not_distinct")
            raise FatalError("Access and refresh tokens must use distinct signing secrets")

        self._secrets: dict[str, str] = {
            "access": access_secret,
            "refresh": refresh_secret,
        }
        self._lifetimes: dict[str, timedelta] = {
            "access": timedelta(minutes=self.settings.access_token_expire_minutes),
            "refresh": timedelta(days=self.settings.refresh_token_expire_days),
        }

    def _issue(self, user_id: UUID, token_type: TokenType, extra: Optional[dict] = None) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "type": token_type,
            "iat": now,
            "exp": now + self._lifetimes[token_type],
            "jti": uuid4().hex,
        }
        if extra:
            payload.update(extra)

        try:
            token = jwt.encode(payload, self._secrets[token_type], algorithm=JWT_ALGORITHM)
        except (jwt.PyJWTError, TypeError, ValueError) as e:
            logger.error("token_signing_failed", token_type=token_type, error=str(e))
            raise FatalError(
                "Something went wrong while generating refresh and access token"
            ) from e

        logger.debug(
            "token_issued",
            user_id=str(user_id),
            token_type=token_type,
            expires_at=payload["exp"].isoformat(),
        )
        return token

    def issue_access_token(
        self,
        user_id: UUID,
        username: Optional[str] = None,
        email: Optional[str] = None,
    ) -> str:
        """Create a short-lived access token.

        Args:
            user_id: User UUID (placed in the 'sub' claim)
            username: Optional username to include in the payload
            email: Optional email to include in the payload

        Returns:
            Encoded JWT string
        """
        extra = {}
        if username is not None:
            extra["username"] = username
        if email is not None:
            extra["email"] = email
        return self._issue(user_id, "access", extra)

    def issue_refresh_token(self, user_id: UUID) -> str:
        """Create a long-lived refresh token.

        Args:
            user_id: User UUID (placed in the 'sub' claim)

        Returns:
            Encoded JWT string
        """
        return self._issue(user_id, "refresh")

    def issue_token_pair(self, user: User) -> TokenPair:
        """Create a fresh access + refresh pair for a user."""
        return TokenPair(
            access_token=self.issue_access_token(user.id, user.username, user.email),
            refresh_token=self.issue_refresh_token(user.id),
        )

    def verify(self, token: str, expected_type: TokenType) -> TokenClaims:
        """Check a token's signature, expiry, structure and type.

        Args:
            token: Encoded JWT string
            expected_type: "access" or "refresh"

        Returns:
            Verified claims

        Raises:
            InvalidToken: Signature does not match, or token type differs
            ExpiredToken: Expiry has passed
            MalformedToken: Not a decodable token or required claims missing
        """
        label = expected_type.capitalize()

        try:
            payload = jwt.decode(
                token,
                self._secrets[expected_type],
                algorithms=[JWT_ALGORITHM],
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError:
            raise ExpiredToken(f"{label} token has expired")
        except jwt.InvalidSignatureError:
            raise InvalidToken(f"Invalid {expected_type} token")
        except (jwt.DecodeError, jwt.MissingRequiredClaimError) as e:
            raise MalformedToken(f"Malformed {expected_type} token: {e}")
        except jwt.InvalidTokenError as e:
            raise InvalidToken(f"Invalid {expected_type} token: {e}")

        if payload.get("type") != expected_type:
            raise InvalidToken(f"Invalid {expected_type} token: wrong token type")

        try:
            user_id = UUID(str(payload["sub"]))
        except ValueError:
            raise MalformedToken(f"Malformed {expected_type} token: bad subject")

        return TokenClaims(
            user_id=user_id,
            token_type=expected_type,
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
