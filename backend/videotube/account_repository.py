from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import asyncpg

from .database import get_db_pool
from .errors import ConflictError


ACCOUNT_COLUMNS = """
  id,
  username,
  email,
  full_name,
  avatar,
  cover_image,
  password_hash,
  refresh_token,
  watch_history,
  created_at,
  updated_at
"""

ACCOUNT_SELECT = f"""
SELECT
{ACCOUNT_COLUMNS}
FROM users
"""

MEDIA_COLUMNS = {"avatar": "avatar", "cover_image": "cover_image"}


class LookupKind(str, Enum):
    USERNAME = "username"
    EMAIL = "email"
    EITHER = "either"


@dataclass(frozen=True)
class AccountLookup:
    kind: LookupKind
    username: str | None = None
    email: str | None = None

    @classmethod
    def from_identifiers(cls, username: str | None, email: str | None) -> AccountLookup | None:
        username_value = (username or "").strip().lower() or None
        email_value = (email or "").strip().lower() or None
        if username_value and email_value:
            return cls(LookupKind.EITHER, username=username_value, email=email_value)
        if username_value:
            return cls(LookupKind.USERNAME, username=username_value)
        if email_value:
            return cls(LookupKind.EMAIL, email=email_value)
        return None


async def get_account_by_id(account_id: int):
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        return await conn.fetchrow(
            f"""
            {ACCOUNT_SELECT}
            WHERE id = $1
            """,
            int(account_id),
        )


async def find_account(lookup: AccountLookup):
    if lookup.kind is LookupKind.USERNAME:
        where, args = "username = $1", (lookup.username,)
    elif lookup.kind is LookupKind.EMAIL:
        where, args = "email = $1", (lookup.email,)
    else:
        where, args = "username = $1 OR email = $2", (lookup.username, lookup.email)

    pool = await get_db_pool()
    async with pool.acquire() as conn:
        return await conn.fetchrow(
            f"""
            {ACCOUNT_SELECT}
            WHERE {where}
            ORDER BY id
            LIMIT 1
            """,
            *args,
        )


async def account_exists(username: str, email: str) -> bool:
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        found = await conn.fetchval(
            """
            SELECT EXISTS (
              SELECT 1 FROM users WHERE username = $1 OR email = $2
            )
            """,
            username,
            email,
        )
    return bool(found)


async def create_account(
    *,
    full_name: str,
    username: str,
    email: str,
    password_hash: str,
    avatar: str,
    cover_image: str = "",
):
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        try:
            return await conn.fetchrow(
                f"""
                INSERT INTO users (full_name, username, email, password_hash, avatar, cover_image)
                VALUES ($1, $2, $3, $4, $5, $6)
                RETURNING
                {ACCOUNT_COLUMNS}
                """,
                full_name,
                username,
                email,
                password_hash,
                avatar,
                cover_image or "",
            )
        except asyncpg.UniqueViolationError as exc:
            raise ConflictError() from exc


async def store_refresh_token(account_id: int, refresh_token: str) -> bool:
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        result = await conn.execute(
            """
            UPDATE users
            SET refresh_token = $2,
                updated_at = NOW()
            WHERE id = $1
            """,
            int(account_id),
            refresh_token,
        )
    return int(str(result).split()[-1]) > 0


async def rotate_refresh_token(account_id: int, current_token: str, new_token: str) -> bool:
    """Swap the stored refresh token only if it still equals ``current_token``."""
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        result = await conn.execute(
            """
            UPDATE users
            SET refresh_token = $3,
                updated_at = NOW()
            WHERE id = $1 AND refresh_token = $2
            """,
            int(account_id),
            current_token,
            new_token,
        )
    return int(str(result).split()[-1]) > 0


async def clear_refresh_token(account_id: int) -> None:
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        await conn.execute(
            """
            UPDATE users
            SET refresh_token = NULL,
                updated_at = NOW()
            WHERE id = $1
            """,
            int(account_id),
        )


async def update_password(account_id: int, password_hash: str, *, revoke_session: bool = False) -> None:
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        await conn.execute(
            """
            UPDATE users
            SET password_hash = $2,
                refresh_token = CASE WHEN $3 THEN NULL ELSE refresh_token END,
                updated_at = NOW()
            WHERE id = $1
            """,
            int(account_id),
            password_hash,
            bool(revoke_session),
        )


async def update_account_details(account_id: int, full_name: str, email: str):
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        try:
            return await conn.fetchrow(
                f"""
                UPDATE users
                SET full_name = $2,
                    email = $3,
                    updated_at = NOW()
                WHERE id = $1
                RETURNING
                {ACCOUNT_COLUMNS}
                """,
                int(account_id),
                full_name,
                email,
            )
        except asyncpg.UniqueViolationError as exc:
            raise ConflictError("Email is already in use") from exc


async def _update_media(account_id: int, field: str, url: str):
    column = MEDIA_COLUMNS[field]
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        return await conn.fetchrow(
            f"""
            UPDATE users
            SET {column} = $2,
                updated_at = NOW()
            WHERE id = $1
            RETURNING
            {ACCOUNT_COLUMNS}
            """,
            int(account_id),
            url,
        )


async def update_avatar(account_id: int, url: str):
    return await _update_media(account_id, "avatar", url)


async def update_cover_image(account_id: int, url: str):
    return await _update_media(account_id, "cover_image", url)
