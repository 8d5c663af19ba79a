# ============================================================================
# CALCULATE CLUSTERS SERVICE
# ============================================================================
# STATUS: Core - Per-tenant cluster (re)computation
# PURPOSE: Keep the stored artifact fresh and the cache coherent with it
# ============================================================================
"""
Calculate Clusters Service

Given a tenant, make sure cluster_artifacts holds an artifact computed
from the tenant's current fields, and that the cache reflects it.

Flow:
    1. Fingerprint the current inputs
    2. Stored artifact with the same fingerprint -> refresh cache, REUSED
    3. Otherwise load inputs (empty -> EmptyInputError) and cluster them
    4. Upsert the artifact, fingerprinted from the rows just loaded so a
       field written between steps 1 and 3 is not masked
    5. Invalidate, then write the cache
    6. RECOMPUTED

Store failures propagate. Cache failures never do.
"""

from typing import Optional
from uuid import UUID

from core.contracts import CalculateOutcome
from core.errors import EmptyInputError
from core.logging import get_logger, ComponentType
from repositories.base import ClusterCache, ClusterStore
from repositories.cluster_repo import fingerprint_rows
from services.clustering import build_artifact

logger = get_logger(__name__, ComponentType.SERVICE)


class CalculateClustersService:
    """Ensures a fresh cluster artifact exists for a tenant."""

    def __init__(
        self,
        cluster_store: ClusterStore,
        cache: ClusterCache,
        cache_ttl: Optional[float] = None,
    ):
        """
        Initialize calculate service.

        Args:
            cluster_store: Authoritative artifact/input store
            cache: Advisory artifact cache
            cache_ttl: TTL for cache writes (None uses the cache default)
        """
        self.cluster_store = cluster_store
        self.cache = cache
        self.cache_ttl = cache_ttl

    async def execute(self, tenant_id: UUID) -> CalculateOutcome:
        """
        Recompute the tenant's clusters if their inputs changed.

        Args:
            tenant_id: Tenant to process

        Returns:
            REUSED if the stored artifact was current, RECOMPUTED otherwise

        Raises:
            EmptyInputError: Tenant has no field records
            StoreError: Relational store failure
        """
        fingerprint = await self.cluster_store.compute_fingerprint(tenant_id)

        existing = await self.cluster_store.get(tenant_id)
        if existing is not None and existing.source_fingerprint == fingerprint:
            await self.cache.put(existing, self.cache_ttl)
            logger.info(
                "Cluster artifact up to date",
                extra={"tenant_id": str(tenant_id), "outcome": CalculateOutcome.REUSED.value},
            )
            return CalculateOutcome.REUSED

        records = await self.cluster_store.list_inputs(tenant_id)
        if not records:
            raise EmptyInputError(tenant_id)

        # The stored fingerprint must describe exactly the rows clustered
        loaded = sorted(records, key=lambda r: r.field_id)
        fingerprint = fingerprint_rows((r.field_id, r.updated_at) for r in loaded)

        artifact = build_artifact(tenant_id, records, fingerprint)
        await self.cluster_store.upsert(artifact)

        await self.cache.invalidate(tenant_id)
        await self.cache.put(artifact, self.cache_ttl)

        logger.info(
            "Cluster artifact recomputed",
            extra={
                "tenant_id": str(tenant_id),
                "outcome": CalculateOutcome.RECOMPUTED.value,
                "field_count": len(records),
                "previous_fingerprint": existing.source_fingerprint[:12] if existing else None,
            },
        )
        return CalculateOutcome.RECOMPUTED


__all__ = ["CalculateClustersService"]
