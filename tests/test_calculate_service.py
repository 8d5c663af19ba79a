# ============================================================================
# CALCULATE SERVICE TESTS
# ============================================================================
# STATUS: Tests - Fingerprint reuse, recompute, cache coherence
# PURPOSE: Verify the per-tenant calculation flow against in-memory stores
# ============================================================================
"""
Calculate Clusters Service Tests

Covers:
1. First run recomputes, stores, and caches
2. Unchanged inputs are reused (idempotence)
3. Changed inputs recompute with a new fingerprint, taken from the rows
   actually clustered
4. Empty tenants raise EmptyInputError
5. Cache outages never fail the calculation
6. Store failures propagate

Run with:
    pytest tests/test_calculate_service.py -v
"""

import asyncio
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from core.contracts import CalculateOutcome
from core.errors import EmptyInputError, StoreError
from services import CalculateClustersService

BASE_TIME = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestRecompute:
    def test_first_run_recomputes(self, calculate, cluster_store, cache, tenant_with_fields):
        outcome = asyncio.run(calculate.execute(tenant_with_fields))

        assert outcome == CalculateOutcome.RECOMPUTED
        stored = cluster_store.artifacts[tenant_with_fields]
        assert stored.payload["field_count"] == 3
        assert cache.cached(tenant_with_fields) == stored

    def test_stored_fingerprint_matches_inputs(self, calculate, cluster_store, tenant_with_fields):
        asyncio.run(calculate.execute(tenant_with_fields))
        expected = asyncio.run(cluster_store.compute_fingerprint(tenant_with_fields))
        assert cluster_store.artifacts[tenant_with_fields].source_fingerprint == expected

    def test_invalidate_precedes_put(self, calculate, cache, tenant_with_fields):
        asyncio.run(calculate.execute(tenant_with_fields))
        ops = [name for name, _ in cache.calls]
        assert ops == ["invalidate", "put"]

    def test_changed_inputs_recompute(self, calculate, cluster_store, tenant_with_fields):
        asyncio.run(calculate.execute(tenant_with_fields))
        first = cluster_store.artifacts[tenant_with_fields]

        cluster_store.add_field(tenant_with_fields, 40.0, 141.0)
        outcome = asyncio.run(calculate.execute(tenant_with_fields))

        second = cluster_store.artifacts[tenant_with_fields]
        assert outcome == CalculateOutcome.RECOMPUTED
        assert second.source_fingerprint != first.source_fingerprint
        assert second.payload["field_count"] == 4

    def test_updated_field_changes_fingerprint(self, calculate, cluster_store, tenant_with_fields):
        asyncio.run(calculate.execute(tenant_with_fields))
        cluster_store.touch(tenant_with_fields, BASE_TIME + timedelta(hours=1))
        assert asyncio.run(calculate.execute(tenant_with_fields)) == CalculateOutcome.RECOMPUTED
        assert cluster_store.upserts == 2

    def test_write_between_fingerprint_and_load(
        self, calculate, cluster_store, monkeypatch, tenant_with_fields
    ):
        """A field updated after fingerprinting is recorded in the stored fingerprint."""
        load = cluster_store.list_inputs

        async def load_after_concurrent_write(tenant_id):
            cluster_store.touch(tenant_id, BASE_TIME + timedelta(hours=2))
            return await load(tenant_id)

        monkeypatch.setattr(cluster_store, "list_inputs", load_after_concurrent_write)
        assert asyncio.run(calculate.execute(tenant_with_fields)) == CalculateOutcome.RECOMPUTED
        monkeypatch.undo()

        current = asyncio.run(cluster_store.compute_fingerprint(tenant_with_fields))
        assert cluster_store.artifacts[tenant_with_fields].source_fingerprint == current
        assert asyncio.run(calculate.execute(tenant_with_fields)) == CalculateOutcome.REUSED
        assert cluster_store.upserts == 1


class TestReuse:
    def test_second_run_reuses(self, calculate, cluster_store, cache, tenant_with_fields):
        asyncio.run(calculate.execute(tenant_with_fields))
        stored = cluster_store.artifacts[tenant_with_fields]
        cached = cache.cached(tenant_with_fields)

        outcome = asyncio.run(calculate.execute(tenant_with_fields))

        assert outcome == CalculateOutcome.REUSED
        assert cluster_store.upserts == 1
        assert cluster_store.artifacts[tenant_with_fields] is stored
        assert cache.cached(tenant_with_fields) == cached
        assert cluster_store.count("list_inputs") == 1

    def test_reuse_refills_evicted_cache(self, calculate, cluster_store, cache, tenant_with_fields):
        asyncio.run(calculate.execute(tenant_with_fields))
        cache.entries.clear()

        assert asyncio.run(calculate.execute(tenant_with_fields)) == CalculateOutcome.REUSED
        assert cache.cached(tenant_with_fields) == cluster_store.artifacts[tenant_with_fields]


class TestFailures:
    def test_empty_tenant(self, calculate, cluster_store):
        tenant = uuid4()
        with pytest.raises(EmptyInputError):
            asyncio.run(calculate.execute(tenant))
        assert tenant not in cluster_store.artifacts

    def test_cache_outage_is_not_an_error(self, calculate, cluster_store, cache, tenant_with_fields):
        cache.unavailable = True

        outcome = asyncio.run(calculate.execute(tenant_with_fields))

        assert outcome == CalculateOutcome.RECOMPUTED
        assert tenant_with_fields in cluster_store.artifacts
        assert cache.cached(tenant_with_fields) is None

    def test_store_failure_propagates(self, calculate, cluster_store, cache, tenant_with_fields):
        cluster_store.fail_on["upsert"] = StoreError("connection reset", operation="upsert")

        with pytest.raises(StoreError):
            asyncio.run(calculate.execute(tenant_with_fields))
        assert cache.calls == []

    def test_fingerprint_failure_propagates(self, calculate, cluster_store, tenant_with_fields):
        cluster_store.fail_on["compute_fingerprint"] = StoreError("timeout")
        with pytest.raises(StoreError):
            asyncio.run(calculate.execute(tenant_with_fields))


class TestCacheTtl:
    def test_ttl_passed_to_cache(self, cluster_store, cache, tenant_with_fields):
        service = CalculateClustersService(cluster_store, cache, cache_ttl=120.0)
        asyncio.run(service.execute(tenant_with_fields))
        assert cache.entries[tenant_with_fields][1] == 120.0


class TestConcurrentCalculation:
    def test_same_tenant_twice_leaves_coherent_cache(self, calculate, cluster_store, cache, tenant_with_fields):
        async def both():
            return await asyncio.gather(
                calculate.execute(tenant_with_fields),
                calculate.execute(tenant_with_fields),
            )

        outcomes = asyncio.run(both())

        assert CalculateOutcome.RECOMPUTED in outcomes
        stored = cluster_store.artifacts[tenant_with_fields]
        cached = cache.cached(tenant_with_fields)
        assert cached is None or cached == stored
