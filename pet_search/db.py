"""
Database connection and initialization.
"""

import json
import logging
from typing import Optional

import asyncpg
import redis.asyncio as redis

from pet_search.config import SearchSettings, get_search_settings

logger = logging.getLogger(__name__)

# Global connection pools
pg_pool: Optional[asyncpg.Pool] = None
redis_client: Optional[redis.Redis] = None


async def _init_connection(conn: asyncpg.Connection):
    """Decode JSONB columns to Python objects"""
    await conn.set_type_codec(
        "jsonb",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog"
    )


async def init_db(settings: Optional[SearchSettings] = None):
    """Initialize database connections"""
    global pg_pool, redis_client
    settings = settings or get_search_settings()
    config = settings.database

    # PostgreSQL
    try:
        pg_pool = await asyncpg.create_pool(
            config.database_url,
            min_size=config.pool_min_size,
            max_size=config.pool_max_size,
            init=_init_connection
        )
        logger.info("PostgreSQL connection pool created")

        # Create tables
        await create_tables()
    except Exception as e:
        logger.error(f"Failed to connect to PostgreSQL: {e}")
        raise

    # Redis
    try:
        redis_client = redis.from_url(config.redis_url, decode_responses=True)
        await redis_client.ping()
        logger.info("Redis connection established")
    except Exception as e:
        logger.error(f"Failed to connect to Redis: {e}")
        raise


async def close_db():
    """Close database connections"""
    global pg_pool, redis_client

    if pg_pool:
        await pg_pool.close()
        pg_pool = None
        logger.info("PostgreSQL connection pool closed")

    if redis_client:
        await redis_client.aclose()
        redis_client = None
        logger.info("Redis connection closed")


async def create_tables():
    """Create the search subsystem's own tables if they don't exist"""
    async with pg_pool.acquire() as conn:
        # Synonym entries keyed by lowercased term
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS synonyms (
                term TEXT PRIMARY KEY,
                synonyms TEXT[] NOT NULL DEFAULT '{}',
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """)

        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_synonyms_synonyms ON synonyms USING GIN (synonyms);
        """)

        # Saved searches
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS saved_searches (
                id SERIAL PRIMARY KEY,
                user_id TEXT,
                name TEXT,
                query TEXT NOT NULL,
                entity_types TEXT[] NOT NULL DEFAULT '{}',
                filters JSONB NOT NULL DEFAULT '{}',
                geo JSONB,
                alert_enabled BOOLEAN NOT NULL DEFAULT TRUE,
                last_checked_at TIMESTAMPTZ,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """)

        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_saved_searches_user ON saved_searches(user_id);
        """)

        # One alert per (saved search, entity) pair
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS search_alerts (
                id SERIAL PRIMARY KEY,
                saved_search_id INTEGER NOT NULL REFERENCES saved_searches(id) ON DELETE CASCADE,
                entity_type TEXT NOT NULL,
                entity_id TEXT NOT NULL,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                UNIQUE (saved_search_id, entity_type, entity_id)
            )
        """)

        # Search telemetry
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS search_telemetry (
                id SERIAL PRIMARY KEY,
                query TEXT NOT NULL,
                normalized_query TEXT NOT NULL,
                result_count INTEGER NOT NULL,
                has_results BOOLEAN NOT NULL,
                zero_result_query BOOLEAN NOT NULL,
                entity_types TEXT[] NOT NULL DEFAULT '{}',
                filters JSONB NOT NULL DEFAULT '{}',
                ip_address TEXT,
                user_agent TEXT,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """)

        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_search_telemetry_created_at ON search_telemetry(created_at);
        """)

        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_search_telemetry_zero_results
            ON search_telemetry(created_at) WHERE zero_result_query;
        """)

        logger.info("Database tables created/verified")


def get_pg_pool() -> asyncpg.Pool:
    """Get PostgreSQL connection pool"""
    if pg_pool is None:
        raise RuntimeError("Database not initialized")
    return pg_pool


def get_redis() -> redis.Redis:
    """Get Redis client"""
    if redis_client is None:
        raise RuntimeError("Redis not initialized")
    return redis_client
