"""
PostgreSQL Client Wrapper

Centralized PostgreSQL client wrapper over an asyncpg connection pool.
Provides environment-driven configuration and a consistent database access
pattern for the service repositories.

Usage:
    from core.postgres_client import get_postgres_client

    # Get client instance
    db = await get_postgres_client("pricing_campaign_service")

    # Execute queries
    rows = await db.query("SELECT * FROM catalog.products WHERE product_id = $1", [product_id])

    # Run several statements atomically
    async with db.transaction() as conn:
        await conn.execute("DELETE FROM ...")
        await conn.execute("INSERT INTO ...")
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import asyncpg

from core.config import InfraConfig, get_settings

logger = logging.getLogger(__name__)


class PostgresClientWrapper:
    """
    PostgreSQL client wrapper around an asyncpg pool.

    Provides:
    - Lazy pool creation from InfraConfig
    - Dict rows for query/query_row
    - Transaction context manager for multi-statement atomic units
    """

    def __init__(
        self,
        service_name: str,
        config: Optional[InfraConfig] = None,
    ):
        """
        Initialize PostgreSQL client wrapper.

        Args:
            service_name: Name of the service using this client
            config: Infrastructure config (defaults to global settings)
        """
        self.service_name = service_name
        self.config = config or get_settings().infrastructure
        self._pool: Optional[asyncpg.Pool] = None

        logger.info(
            f"PostgreSQL client initialized for {service_name}: "
            f"{self.config.postgres_host}:{self.config.postgres_port}/{self.config.postgres_db}"
        )

    async def connect(self) -> None:
        """Create the connection pool if it does not exist yet"""
        if self._pool is None:
            self._pool = await asyncpg.create_pool(
                host=self.config.postgres_host,
                port=self.config.postgres_port,
                database=self.config.postgres_db,
                user=self.config.postgres_user,
                password=self.config.postgres_password,
                min_size=self.config.postgres_min_pool,
                max_size=self.config.postgres_max_pool,
                server_settings={"application_name": self.service_name},
            )
            logger.info(f"PostgreSQL pool created for {self.service_name}")

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("PostgreSQL pool not initialized. Call connect() first.")
        return self._pool

    async def health_check(self) -> bool:
        """Check database health"""
        try:
            await self.connect()
            return await self.pool.fetchval("SELECT 1") == 1
        except Exception as e:
            logger.error(f"PostgreSQL health check failed: {e}")
            return False

    async def query(self, sql: str, params: Optional[List[Any]] = None) -> List[Dict[str, Any]]:
        """Execute query and return results"""
        await self.connect()
        rows = await self.pool.fetch(sql, *(params or []))
        return [dict(row) for row in rows]

    async def query_row(self, sql: str, params: Optional[List[Any]] = None) -> Optional[Dict[str, Any]]:
        """Execute query and return single row"""
        await self.connect()
        row = await self.pool.fetchrow(sql, *(params or []))
        return dict(row) if row is not None else None

    async def execute(self, sql: str, params: Optional[List[Any]] = None) -> str:
        """Execute SQL statement, returning the command status"""
        await self.connect()
        return await self.pool.execute(sql, *(params or []))

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a connection and run the block inside one transaction"""
        await self.connect()
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def close(self):
        """Close the pool"""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info(f"PostgreSQL pool closed for {self.service_name}")


# Singleton instances per service
_postgres_clients: Dict[str, PostgresClientWrapper] = {}


async def get_postgres_client(
    service_name: str,
    config: Optional[InfraConfig] = None,
) -> PostgresClientWrapper:
    """
    Get or create PostgreSQL client for a service.

    Args:
        service_name: Service name
        config: Optional infrastructure config override

    Returns:
        PostgresClientWrapper instance
    """
    global _postgres_clients

    if service_name not in _postgres_clients:
        client = PostgresClientWrapper(service_name=service_name, config=config)
        await client.connect()
        _postgres_clients[service_name] = client

    return _postgres_clients[service_name]
