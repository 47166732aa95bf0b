from __future__ import annotations

import logging

import asyncpg

from .config import settings

logger = logging.getLogger(__name__)

_pool: asyncpg.Pool | None = None


def _normalized_database_url() -> str:
    url = settings.database_url.strip()
    if url.startswith("postgresql+asyncpg://"):
        return "postgresql://" + url[len("postgresql+asyncpg://") :]
    return url


async def _get_pool() -> asyncpg.Pool:
    global _pool
    if _pool is None:
        _pool = await asyncpg.create_pool(dsn=_normalized_database_url(), min_size=1, max_size=10)
    return _pool


async def get_db_pool() -> asyncpg.Pool:
    return await _get_pool()


async def init_db() -> None:
    pool = await _get_pool()
    async with pool.acquire() as conn:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS users (
              id BIGSERIAL PRIMARY KEY,
              username VARCHAR(64) UNIQUE NOT NULL,
              email VARCHAR(255) UNIQUE NOT NULL,
              full_name VARCHAR(128) NOT NULL,
              avatar TEXT NOT NULL,
              cover_image TEXT NOT NULL DEFAULT '',
              password_hash VARCHAR(255) NOT NULL,
              refresh_token TEXT,
              watch_history BIGINT[] NOT NULL DEFAULT '{}',
              created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
              updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS videos (
              id BIGSERIAL PRIMARY KEY,
              owner_id BIGINT REFERENCES users(id) ON DELETE SET NULL,
              video_file TEXT NOT NULL,
              thumbnail TEXT NOT NULL,
              title VARCHAR(255) NOT NULL,
              description TEXT NOT NULL DEFAULT '',
              duration DOUBLE PRECISION NOT NULL DEFAULT 0,
              views BIGINT NOT NULL DEFAULT 0,
              is_published BOOLEAN NOT NULL DEFAULT TRUE,
              created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
              updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS subscriptions (
              id BIGSERIAL PRIMARY KEY,
              subscriber_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
              channel_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
              created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
              updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
              UNIQUE (subscriber_id, channel_id)
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_videos_owner_id ON videos(owner_id)"
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_subscriptions_channel_id ON subscriptions(channel_id)"
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_subscriptions_subscriber_id ON subscriptions(subscriber_id)"
        )
    logger.info("Database schema ready")


async def close_db() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None


async def ping_db() -> bool:
    try:
        pool = await _get_pool()
        async with pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
        return True
    except Exception:  # pragma: no cover
        logger.exception("Database ping failed")
        return False
