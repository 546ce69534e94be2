"""Credential store: user records in PostgreSQL."""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

import asyncpg
import structlog

from accounts.database import get_pool
from accounts.errors import ConflictError
from accounts.models.user import User

logger = structlog.get_logger(__name__)

PUBLIC_COLUMNS = "id, username, email, full_name, avatar, cover_image, created_at, updated_at"

# Columns update_fields may touch. The refresh token digest is not among
# them: only SessionService changes it, through set_refresh_token_hash.
UPDATABLE_COLUMNS = ("full_name", "email", "avatar", "cover_image", "password_hash")

CONFLICT_MESSAGE = "User with email or username already exists"


def _row_to_user(row) -> User:
    return User(
        id=row["id"],
        username=row["username"],
        email=row["email"],
        full_name=row["full_name"],
        avatar=row["avatar"],
        cover_image=row["cover_image"] or "",
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class UserService:
    """Service for user record persistence.

    Every method is a single SQL statement, so each is atomic at row
    granularity.
    """

    async def create_user(
        self,
        username: str,
        email: str,
        full_name: str,
        password_hash: str,
        avatar: str,
        cover_image: str = "",
    ) -> User:
        """Insert a new user.

        Args:
            username: Unique username (stored lower-cased)
            email: Unique email (stored lower-cased)
            full_name: Display name
            password_hash: Bcrypt hash of the password
            avatar: Avatar image URL
            cover_image: Cover image URL, empty when none

        Returns:
            Created User model

        Raises:
            ConflictError: If username or email is already taken
        """
        user_id = uuid4()
        now = datetime.now(timezone.utc)

        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO users (id, username, email, full_name, avatar, cover_image,
                                       password_hash, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    RETURNING {PUBLIC_COLUMNS}
                    """,
                    user_id,
                    username.lower(),
                    email.lower(),
                    full_name,
                    avatar,
                    cover_image,
                    password_hash,
                    now,
                    now,
                )
        except asyncpg.exceptions.UniqueViolationError:
            logger.warning("user_create_conflict", username=username.lower())
            raise ConflictError(CONFLICT_MESSAGE)

        logger.info("user_created", user_id=str(user_id), username=username.lower())
        return _row_to_user(row)

    async def find_by_username_or_email(
        self, username: Optional[str], email: Optional[str]
    ) -> Optional[tuple[User, str]]:
        """Find a user whose username or email matches (case-insensitive).

        Args:
            username: Username to match, or None to skip
            email: Email to match, or None to skip

        Returns:
            Tuple of (User, password_hash) or None if not found
        """
        if username is None and email is None:
            return None

        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {PUBLIC_COLUMNS}, password_hash
                FROM users
                WHERE ($1::text IS NOT NULL AND LOWER(username) = LOWER($1))
                   OR ($2::text IS NOT NULL AND LOWER(email) = LOWER($2))
                ORDER BY ($1::text IS NOT NULL AND LOWER(username) = LOWER($1)) DESC
                LIMIT 1
                """,
                username,
                email,
            )

        if row is None:
            return None

        return _row_to_user(row), row["password_hash"]

    async def exists(self, username: Optional[str], email: Optional[str]) -> bool:
        """Check whether a username or email is already registered."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            found = await conn.fetchval(
                """
                SELECT EXISTS (
                    SELECT 1 FROM users
                    WHERE ($1::text IS NOT NULL AND LOWER(username) = LOWER($1))
                       OR ($2::text IS NOT NULL AND LOWER(email) = LOWER($2))
                )
                """,
                username,
                email,
            )

        return bool(found)

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        """Get a user by UUID.

        Args:
            user_id: User UUID

        Returns:
            User model (public fields only) or None if not found
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {PUBLIC_COLUMNS} FROM users WHERE id = $1",
                user_id,
            )

        if row is None:
            return None

        return _row_to_user(row)

    async def get_password_hash(self, user_id: UUID) -> Optional[str]:
        pool = await get_pool()

        async with pool.acquire() as conn:
            return await conn.fetchval(
                "SELECT password_hash FROM users WHERE id = $1",
                user_id,
            )

    async def update_fields(self, user_id: UUID, **fields) -> Optional[User]:
        """Update the given columns of a user.

        Args:
            user_id: UUID of the user to update
            **fields: Column values; only UPDATABLE_COLUMNS are accepted

        Returns:
            Updated User model, or None if user not found

        Raises:
            ValueError: If an unknown column is passed
            ConflictError: If the new email is already taken
        """
        unknown = set(fields) - set(UPDATABLE_COLUMNS)
        if unknown:
            raise ValueError(f"Cannot update columns: {sorted(unknown)}")

        if not fields:
            return await self.get_by_id(user_id)

        set_clauses = []
        params = []
        param_idx = 1

        for column, value in fields.items():
            if column == "email":
                value = value.lower()
            set_clauses.append(f"{column} = ${param_idx}")
            params.append(value)
            param_idx += 1

        # Always update updated_at
        set_clauses.append(f"updated_at = ${param_idx}")
        params.append(datetime.now(timezone.utc))
        param_idx += 1

        params.append(user_id)

        query = f"""
            UPDATE users
            SET {', '.join(set_clauses)}
            WHERE id = ${param_idx}
            RETURNING {PUBLIC_COLUMNS}
        """

        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(query, *params)
        except asyncpg.exceptions.UniqueViolationError:
            logger.warning("user_update_conflict", user_id=str(user_id))
            raise ConflictError(CONFLICT_MESSAGE)

        if row is None:
            return None

        logger.info(
            "user_updated",
            user_id=str(user_id),
            fields_updated=[c for c in fields if c != "password_hash"],
            password_changed="password_hash" in fields,
        )

        return _row_to_user(row)

    async def get_refresh_token_hash(self, user_id: UUID) -> Optional[str]:
        """Read the digest of the user's current refresh token."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            return await conn.fetchval(
                "SELECT refresh_token_hash FROM users WHERE id = $1",
                user_id,
            )

    async def set_refresh_token_hash(
        self,
        user_id: UUID,
        token_hash: Optional[str],
        expected: Optional[str] = None,
    ) -> bool:
        """Overwrite (or clear, with None) the stored refresh token digest.

        Args:
            user_id: User UUID
            token_hash: New digest, or None to remove the session
            expected: When given, only write if the current digest equals it

        Returns:
            True if a row was updated
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            if expected is None:
                updated = await conn.fetchval(
                    """
                    UPDATE users SET refresh_token_hash = $1
                    WHERE id = $2
                    RETURNING id
                    """,
                    token_hash,
                    user_id,
                )
            else:
                updated = await conn.fetchval(
                    """
                    UPDATE users SET refresh_token_hash = $1
                    WHERE id = $2 AND refresh_token_hash = $3
                    RETURNING id
                    """,
                    token_hash,
                    user_id,
                    expected,
                )

        return updated is not None
