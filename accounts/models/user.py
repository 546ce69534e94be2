"""User and token models."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

TokenType = Literal["access", "refresh"]


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys, accepting either form on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class User(CamelModel):
    """Public view of a registered user.

    Never carries the password hash or the refresh token; those stay inside
    the credential store.
    """

    id: UUID
    username: str
    email: str
    full_name: str
    avatar: str
    cover_image: str = ""
    created_at: datetime
    updated_at: datetime


class TokenPair(CamelModel):
    """Freshly issued access and refresh tokens."""

    access_token: str
    refresh_token: str


class TokenClaims(BaseModel):
    """Verified contents of a signed token."""

    user_id: UUID
    token_type: TokenType
    issued_at: datetime
    expires_at: datetime


class LoginResult(CamelModel):
    """Authenticated user together with the tokens minted at login."""

    user: User
    tokens: TokenPair


class StoredImage(BaseModel):
    """Location of an image accepted by the object store."""

    url: str
    public_id: str = ""
