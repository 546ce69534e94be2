"""Account request models.

Every field is optional and whitespace is trimmed here. The account
operations decide what is required and raise ``ValidationError`` for
missing fields.
"""

from typing import Optional

from pydantic import field_validator

from accounts.models.user import CamelModel


def _strip_or_none(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    stripped = v.strip()
    return stripped or None


class RegistrationInput(CamelModel):
    """Text fields of a registration form.

    Attributes:
        full_name: Display name
        email: Unique email address
        username: Unique username
        password: Plain-text password (hashed before storage)
    """

    full_name: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    @field_validator("full_name", "email", "username")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        """Trim surrounding whitespace; blank becomes None."""
        return _strip_or_none(v)

    @field_validator("password")
    @classmethod
    def blank_password(cls, v: Optional[str]) -> Optional[str]:
        """Treat a whitespace-only password as missing, keep others verbatim."""
        if v is None or not v.strip():
            return None
        return v


class LoginRequest(CamelModel):
    """Login credentials. At least one of username or email is required.

    Attributes:
        username: Username to match (case-insensitive)
        email: Email to match (case-insensitive)
        password: Plain-text password
    """

    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None

    @field_validator("username", "email")
    @classmethod
    def strip_identifier(cls, v: Optional[str]) -> Optional[str]:
        """Trim surrounding whitespace; blank becomes None."""
        return _strip_or_none(v)


class RefreshRequest(CamelModel):
    """Refresh token supplied in the body when no cookie is present."""

    refresh_token: Optional[str] = None

    @field_validator("refresh_token")
    @classmethod
    def strip_token(cls, v: Optional[str]) -> Optional[str]:
        return _strip_or_none(v)


class ChangePasswordRequest(CamelModel):
    """Current and replacement password for the authenticated user."""

    old_password: Optional[str] = None
    new_password: Optional[str] = None


class UpdateAccountRequest(CamelModel):
    """Profile fields for the authenticated user."""

    full_name: Optional[str] = None
    email: Optional[str] = None

    @field_validator("full_name", "email")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return _strip_or_none(v)
