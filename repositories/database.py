# ============================================================================
# DATABASE CONNECTION POOL
# ============================================================================
# STATUS: Core - Async PostgreSQL connection management
# PURPOSE: Provide connection pooling for psycopg3 async
# ============================================================================
"""
Database Connection Pool

Manages async PostgreSQL connections using psycopg3 and psycopg_pool.
The worker opens exactly one pool at startup and closes it last.

Usage:
    from repositories.database import DatabasePool

    async with DatabasePool(settings.database) as pool:
        async with pool.connection() as conn:
            await conn.execute("SELECT 1")
"""

from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg
from psycopg import sql as psycopg_sql
from psycopg_pool import AsyncConnectionPool, PoolTimeout

from core.config import DatabaseConfig
from core.errors import DataIntegrityError, StoreError
from core.logging import get_logger, ComponentType

logger = get_logger(__name__, ComponentType.REPOSITORY)


async def open_pool(
    config: DatabaseConfig,
    min_size: Optional[int] = None,
    max_size: Optional[int] = None,
) -> AsyncConnectionPool:
    """
    Open a connection pool and wait until it can serve connections.

    Args:
        config: Database settings
        min_size: Override minimum connections
        max_size: Override maximum connections

    Returns:
        Opened AsyncConnectionPool

    Raises:
        StoreError: If the database is unreachable
    """
    min_size = config.pool_min_size if min_size is None else min_size
    max_size = config.pool_max_size if max_size is None else max_size

    logger.info(
        "Initializing connection pool",
        extra={"target": config.describe(), "min_size": min_size, "max_size": max_size},
    )

    pool = AsyncConnectionPool(
        conninfo=config.conninfo(),
        min_size=min_size,
        max_size=max(max_size, min_size, 1),
        open=False,  # We'll open it explicitly
    )

    try:
        await pool.open(wait=True)
        async with pool.connection() as conn:
            await conn.execute("SELECT 1")
    except (psycopg.Error, PoolTimeout) as e:
        await pool.close()
        raise StoreError(
            f"Cannot connect to PostgreSQL at {config.describe()}: {e}",
            operation="open_pool",
        ) from e

    logger.info("Connection pool opened", extra={"target": config.describe()})
    return pool


class DatabasePool:
    """
    Context manager for pool lifecycle.

    Usage:
        async with DatabasePool(config) as pool:
            async with pool.connection() as conn:
                ...
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._pool: Optional[AsyncConnectionPool] = None

    async def __aenter__(self) -> AsyncConnectionPool:
        self._pool = await open_pool(self.config)
        return self._pool

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("Connection pool closed")


@contextmanager
def store_errors(
    operation: str,
    table: str,
    tenant_id=None,
    job_id=None,
) -> Iterator[None]:
    """
    Wrap psycopg failures with operation/table context.

    IntegrityError becomes DataIntegrityError; every other driver or pool
    error becomes StoreError. The original exception is chained.
    """
    try:
        yield
    except psycopg.errors.IntegrityError as e:
        raise DataIntegrityError(
            f"{operation} on {table} violated a constraint: {e}",
            operation=operation,
            table=table,
            tenant_id=tenant_id,
            job_id=job_id,
        ) from e
    except (psycopg.Error, PoolTimeout) as e:
        raise StoreError(
            f"{operation} on {table} failed: {e}",
            operation=operation,
            table=table,
            tenant_id=tenant_id,
            job_id=job_id,
        ) from e


# ============================================================================
# SCHEMA CONSTANTS
# ============================================================================

# Table identifiers: use with psycopg sql.SQL().format() for injection-safe queries
TABLE_CLUSTER_JOBS = psycopg_sql.Identifier("cluster_jobs")
TABLE_CLUSTER_ARTIFACTS = psycopg_sql.Identifier("cluster_artifacts")
TABLE_FIELDS = psycopg_sql.Identifier("fields")


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "open_pool",
    "DatabasePool",
    "store_errors",
    "TABLE_CLUSTER_JOBS",
    "TABLE_CLUSTER_ARTIFACTS",
    "TABLE_FIELDS",
]
