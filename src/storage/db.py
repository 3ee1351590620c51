"""
Database connection module for Momentum calendar sync.

Provides an async PostgreSQL connection pool using asyncpg. One Database is
constructed at application start-up and handed to every store.
"""

import json
import logging
import pathlib
from contextlib import asynccontextmanager
from typing import Optional

import asyncpg

logger = logging.getLogger(__name__)


async def _init_connection(conn) -> None:
    # Documents are stored as JSONB; hand them to callers as dicts.
    await conn.set_type_codec(
        "jsonb", encoder=json.dumps, decoder=json.loads, schema="pg_catalog"
    )


class Database:
    def __init__(self, dsn: str):
        self.dsn = dsn
        self._pool: Optional[asyncpg.Pool] = None

    async def connect(
        self,
        min_size: int = 1,
        max_size: int = 10,
        command_timeout: float = 60.0,
    ) -> asyncpg.Pool:
        """
        Initialize the connection pool.

        Should be called once at application startup.
        """
        if self._pool is not None:
            logger.warning("Database pool already initialized")
            return self._pool

        logger.info(f"Initializing database pool (min={min_size}, max={max_size})")

        try:
            self._pool = await asyncpg.create_pool(
                self.dsn,
                min_size=min_size,
                max_size=max_size,
                command_timeout=command_timeout,
                init=_init_connection,
            )
            logger.info("Database pool initialized successfully")
            return self._pool
        except Exception as e:
            logger.error(f"Failed to initialize database pool: {e}")
            raise

    async def close(self) -> None:
        if self._pool is None:
            logger.warning("Database pool not initialized, nothing to close")
            return

        logger.info("Closing database pool")
        await self._pool.close()
        self._pool = None
        logger.info("Database pool closed")

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database pool not initialized. Call connect() first.")
        return self._pool

    @asynccontextmanager
    async def connection(self):
        """
        Acquire a connection from the pool.

        Usage:
            async with database.connection() as conn:
                rows = await conn.fetch("SELECT * FROM user_settings")
        """
        async with self.pool.acquire() as conn:
            yield conn

    async def execute(self, query: str, *args) -> str:
        async with self.connection() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args) -> list:
        async with self.connection() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args):
        async with self.connection() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args):
        async with self.connection() as conn:
            return await conn.fetchval(query, *args)

    async def init_schema(self) -> None:
        """Create the document tables from schema.sql (idempotent)."""
        schema_path = pathlib.Path(__file__).parent / "schema.sql"

        if not schema_path.exists():
            logger.error(f"Schema file not found: {schema_path}")
            raise FileNotFoundError(f"Schema file not found: {schema_path}")

        logger.info(f"Initializing database schema from {schema_path}")
        async with self.connection() as conn:
            await conn.execute(schema_path.read_text())
        logger.info("Database schema initialized successfully")

    async def health_check(self) -> dict:
        try:
            await self.fetchval("SELECT 1")
            return {
                "status": "healthy",
                "database": "connected",
                "pool_size": self._pool.get_size() if self._pool else 0,
                "pool_free": self._pool.get_idle_size() if self._pool else 0,
            }
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {
                "status": "unhealthy",
                "database": "disconnected",
                "error": str(e),
            }
