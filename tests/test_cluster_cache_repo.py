# ============================================================================
# CLUSTER CACHE TESTS
# ============================================================================
# STATUS: Tests - Advisory cache behaviour
# PURPOSE: Verify key layout, TTLs, and that cache failures never escape
# ============================================================================
"""
Cluster Cache Repository Tests

The redis client is an AsyncMock; failures are injected as redis-py
exceptions.

Run with:
    pytest tests/test_cluster_cache_repo.py -v
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from core.config import CacheConfig
from core.models import ClusterArtifact
from infrastructure.cache import create_redis_client, ping_redis
from repositories import ClusterCacheRepository
from repositories.cluster_cache_repo import cache_key

NOW = datetime(2026, 2, 14, 6, 0, tzinfo=timezone.utc)


def make_client():
    client = MagicMock()
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.ping = AsyncMock(return_value=True)
    return client


def make_artifact(tenant_id=None):
    return ClusterArtifact(
        tenant_id=tenant_id or uuid4(),
        payload={"field_count": 2, "resolutions": {"res3": []}},
        computed_at=NOW,
        source_fingerprint="abc123",
    )


class TestGet:
    def test_key_layout(self):
        tenant = uuid4()
        assert cache_key(tenant) == f"cluster:{tenant}"

    def test_miss(self):
        client = make_client()
        tenant = uuid4()
        assert asyncio.run(ClusterCacheRepository(client).get(tenant)) is None
        client.get.assert_awaited_once_with(f"cluster:{tenant}")

    def test_hit(self):
        artifact = make_artifact()
        client = make_client()
        client.get.return_value = artifact.model_dump_json()

        assert asyncio.run(ClusterCacheRepository(client).get(artifact.tenant_id)) == artifact

    def test_transport_error_is_a_miss(self):
        client = make_client()
        client.get.side_effect = RedisConnectionError("connection refused")
        assert asyncio.run(ClusterCacheRepository(client).get(uuid4())) is None

    def test_corrupt_value_is_a_miss(self):
        client = make_client()
        client.get.return_value = "{not json"
        assert asyncio.run(ClusterCacheRepository(client).get(uuid4())) is None


class TestPut:
    def test_default_ttl(self):
        artifact = make_artifact()
        client = make_client()

        asyncio.run(ClusterCacheRepository(client).put(artifact))

        args, kwargs = client.set.call_args
        assert args[0] == cache_key(artifact.tenant_id)
        assert ClusterArtifact.model_validate_json(args[1]) == artifact
        assert kwargs["ex"] == 1800

    def test_explicit_ttl(self):
        client = make_client()
        asyncio.run(ClusterCacheRepository(client, default_ttl=60).put(make_artifact(), ttl=90.5))
        assert client.set.call_args.kwargs["ex"] == 90

    def test_sub_second_ttl_rounds_up(self):
        client = make_client()
        asyncio.run(ClusterCacheRepository(client).put(make_artifact(), ttl=0.2))
        assert client.set.call_args.kwargs["ex"] == 1

    def test_timeout_swallowed(self):
        client = make_client()
        client.set.side_effect = RedisTimeoutError("write timed out")
        asyncio.run(ClusterCacheRepository(client).put(make_artifact()))


class TestInvalidate:
    def test_deletes_key(self):
        tenant = uuid4()
        client = make_client()
        asyncio.run(ClusterCacheRepository(client).invalidate(tenant))
        client.delete.assert_awaited_once_with(f"cluster:{tenant}")

    def test_os_error_swallowed(self):
        client = make_client()
        client.delete.side_effect = OSError("network unreachable")
        asyncio.run(ClusterCacheRepository(client).invalidate(uuid4()))


class TestClient:
    def test_client_from_config(self):
        config = CacheConfig(host="cache.internal", port=6380, database=2, pool_size=7)
        client = create_redis_client(config)

        kwargs = client.connection_pool.connection_kwargs
        assert kwargs["host"] == "cache.internal"
        assert kwargs["port"] == 6380
        assert kwargs["db"] == 2
        assert client.connection_pool.max_connections == 7

    def test_ping_failure_reports_false(self):
        client = make_client()
        client.ping.side_effect = RedisConnectionError("down")
        assert asyncio.run(ping_redis(client)) is False

    def test_ping_success(self):
        assert asyncio.run(ping_redis(make_client())) is True
