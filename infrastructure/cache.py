# ============================================================================
# REDIS CONNECTION INFRASTRUCTURE
# ============================================================================
# STATUS: Infrastructure - Redis client construction and lifecycle
# PURPOSE: Build an async redis client from CacheConfig
# ============================================================================
"""
Redis Connection Infrastructure

Builds the asyncio redis-py client used by the cluster cache.

The cache is advisory: a failed startup ping is logged and the worker
carries on, and every operation in ClusterCacheRepository swallows
transport errors.

Mapping from CacheConfig:
    max_retries      -> Retry(ExponentialBackoff(), max_retries)
    connect_timeout  -> socket_connect_timeout
    read/write       -> socket_timeout (redis-py has one socket timeout;
                        the larger of the two is used)
    pool_size        -> max_connections
    tls_enabled      -> ssl
    min_idle_conns   -> not supported by redis-py; logged only
"""

from typing import Tuple, Type

from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from core.config import CacheConfig
from core.logging import get_logger, ComponentType

logger = get_logger(__name__, ComponentType.CACHE)

# Everything a cache call may raise that must not escape the cache layer
CACHE_ERRORS: Tuple[Type[BaseException], ...] = (RedisError, OSError, TimeoutError)


def create_redis_client(config: CacheConfig) -> Redis:
    """
    Build an asyncio Redis client. No I/O happens until the first command.

    Args:
        config: Cache settings

    Returns:
        redis.asyncio.Redis with decoded string responses
    """
    retry = Retry(ExponentialBackoff(), config.max_retries)

    client = Redis(
        host=config.host,
        port=config.port,
        password=config.password or None,
        db=config.database,
        socket_connect_timeout=config.connect_timeout,
        socket_timeout=max(config.read_timeout, config.write_timeout),
        max_connections=config.pool_size,
        ssl=config.tls_enabled,
        retry=retry,
        retry_on_error=[RedisConnectionError, RedisTimeoutError],
        decode_responses=True,
    )

    logger.info(
        "Redis client configured",
        extra={
            "target": f"{config.host}:{config.port}/{config.database}",
            "tls": config.tls_enabled,
            "max_connections": config.pool_size,
            "min_idle_conns": config.min_idle_conns,
        },
    )
    return client


async def ping_redis(client: Redis) -> bool:
    """
    Check connectivity.

    Returns:
        True if the server answered, False otherwise (never raises)
    """
    try:
        await client.ping()
    except CACHE_ERRORS as e:
        logger.warning(
            "Redis ping failed; continuing without cache",
            extra={"error": str(e), "error_type": type(e).__name__},
        )
        return False
    return True


async def close_redis(client: Redis) -> None:
    """Release the client's connection pool."""
    try:
        await client.aclose()
    except CACHE_ERRORS as e:
        logger.warning("Error closing Redis client", extra={"error": str(e)})


__all__ = ["CACHE_ERRORS", "create_redis_client", "ping_redis", "close_redis"]
