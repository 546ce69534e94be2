"""Error taxonomy for account operations.

Services raise these exceptions; a single exception handler registered in
``accounts.main`` turns them into the error envelope. Business logic never
builds HTTP responses itself.
"""

from typing import Optional


class AccountError(Exception):
    """Base class for every error surfaced to API callers.

    Attributes:
        message: Human-readable message placed in the error envelope
        status_code: HTTP status code used by the boundary translator
    """

    status_code: int = 500
    default_message: str = "Something went wrong"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(AccountError):
    """Client input is missing or malformed."""

    status_code = 400
    default_message = "Invalid request"


class AuthError(AccountError):
    """Missing, bad, expired or superseded credential or token."""

    status_code = 401
    default_message = "Unauthorized request"


class InvalidToken(AuthError):
    """Token signature or type does not match."""

    default_message = "Invalid token"


class ExpiredToken(AuthError):
    """Token expiry has passed."""

    default_message = "Token has expired"


class MalformedToken(AuthError):
    """Token is not a structurally valid signed token."""

    default_message = "Malformed token"


class NotFoundError(AccountError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(AccountError):
    status_code = 409
    default_message = "User with email or username already exists"


class UploadError(AccountError):
    """Image is missing or the object store rejected it.

    Missing files are client errors (400); storage failures are raised
    with status 502.
    """

    status_code = 400
    default_message = "Error while uploading file"


class FatalError(AccountError):
    """Unexpected internal failure, including token generation."""

    status_code = 500
    default_message = "Internal server error"
