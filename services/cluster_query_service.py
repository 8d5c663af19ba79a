# ============================================================================
# CLUSTER QUERY SERVICE
# ============================================================================
# STATUS: Read side - Serve a tenant's clusters for a map viewport
# PURPOSE: Read-through cache over cluster_artifacts
# ============================================================================
"""
Cluster Query Service

Read path for the map view:

    cache.get -> miss -> cluster_store.get -> cache.put (best effort)
    -> pick resolution(s) for the zoom -> keep cells inside the bbox

The query never computes clusters; a tenant without an artifact yields
an empty list until a job has run.
"""

from typing import List, Optional
from uuid import UUID

from core.logging import get_logger, ComponentType
from core.models import (
    ALL_RESOLUTIONS,
    BoundingBox,
    Cluster,
    ClusterArtifact,
    zoom_to_resolution,
)
from repositories.base import ClusterCache, ClusterStore

logger = get_logger(__name__, ComponentType.SERVICE)


class ClusterQueryService:
    """Read-through access to a tenant's clusters."""

    def __init__(
        self,
        cluster_store: ClusterStore,
        cache: ClusterCache,
        cache_ttl: Optional[float] = None,
    ):
        self.cluster_store = cluster_store
        self.cache = cache
        self.cache_ttl = cache_ttl

    async def get_artifact(self, tenant_id: UUID) -> Optional[ClusterArtifact]:
        """Cached artifact, falling back to the store."""
        artifact = await self.cache.get(tenant_id)
        if artifact is not None:
            return artifact

        artifact = await self.cluster_store.get(tenant_id)
        if artifact is not None:
            await self.cache.put(artifact, self.cache_ttl)
        return artifact

    async def get_clusters(
        self,
        tenant_id: UUID,
        zoom: Optional[float] = None,
        bbox: Optional[BoundingBox] = None,
    ) -> List[Cluster]:
        """
        Clusters for a tenant, filtered for a map view.

        Args:
            tenant_id: Tenant to read
            zoom: Map zoom level; None returns every resolution
            bbox: Viewport; None returns every cell

        Returns:
            Clusters ordered by resolution, then H3 index
        """
        artifact = await self.get_artifact(tenant_id)
        if artifact is None:
            logger.debug("No cluster artifact", extra={"tenant_id": str(tenant_id)})
            return []

        resolutions = ALL_RESOLUTIONS if zoom is None else (zoom_to_resolution(zoom),)

        clusters: List[Cluster] = []
        for resolution in resolutions:
            for cluster in artifact.clusters(resolution):
                if bbox is None or bbox.contains(cluster.center_lat, cluster.center_lng):
                    clusters.append(cluster)
        return clusters


__all__ = ["ClusterQueryService"]
