# ============================================================================
# CLUSTER CACHE REPOSITORY
# ============================================================================
# STATUS: Core - Advisory Redis cache of cluster artifacts
# PURPOSE: Read-through/write-behind copy of cluster_artifacts rows
# ============================================================================
"""
Cluster Cache Repository

Redis implementation of ClusterCache.

Key:   cluster:<tenant_id>
Value: ClusterArtifact as JSON
TTL:   CACHE_TTL (default 30m)

The relational store is authoritative. Every method here logs transport
and decode failures at WARNING and returns as if the key were absent.
"""

from typing import Optional
from uuid import UUID

from pydantic import ValidationError
from redis.asyncio import Redis

from core.logging import get_logger, ComponentType
from core.models import ClusterArtifact
from infrastructure.cache import CACHE_ERRORS
from repositories.base import ClusterCache

logger = get_logger(__name__, ComponentType.CACHE)

KEY_PREFIX = "cluster:"


def cache_key(tenant_id: UUID) -> str:
    return f"{KEY_PREFIX}{tenant_id}"


class ClusterCacheRepository(ClusterCache):
    """Best-effort artifact cache keyed by tenant."""

    def __init__(self, client: Redis, default_ttl: float = 30 * 60.0):
        self.client = client
        self.default_ttl = default_ttl

    async def get(self, tenant_id: UUID) -> Optional[ClusterArtifact]:
        """
        Read a cached artifact.

        Returns:
            ClusterArtifact, or None on miss, transport error or bad payload
        """
        key = cache_key(tenant_id)
        try:
            raw = await self.client.get(key)
        except CACHE_ERRORS as e:
            self._warn("get", key, e)
            return None

        if raw is None:
            return None

        try:
            return ClusterArtifact.model_validate_json(raw)
        except ValidationError as e:
            self._warn("decode", key, e)
            return None

    async def put(self, artifact: ClusterArtifact, ttl: Optional[float] = None) -> None:
        """Write an artifact with a TTL; failures are logged and dropped."""
        key = cache_key(artifact.tenant_id)
        seconds = self.default_ttl if ttl is None else ttl
        try:
            await self.client.set(
                key,
                artifact.model_dump_json(),
                ex=max(int(seconds), 1),
            )
        except CACHE_ERRORS as e:
            self._warn("put", key, e)

    async def invalidate(self, tenant_id: UUID) -> None:
        key = cache_key(tenant_id)
        try:
            await self.client.delete(key)
        except CACHE_ERRORS as e:
            self._warn("invalidate", key, e)

    @staticmethod
    def _warn(operation: str, key: str, error: BaseException) -> None:
        logger.warning(
            "Cache operation failed",
            extra={
                "operation": operation,
                "key": key,
                "error_type": type(error).__name__,
                "error": str(error),
            },
        )


__all__ = ["ClusterCacheRepository", "cache_key", "KEY_PREFIX"]
