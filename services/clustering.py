# ============================================================================
# CLUSTERING RULE
# ============================================================================
# STATUS: Core - Pure aggregation of field records into H3 clusters
# PURPOSE: Deterministic artifact payload from a tenant's inputs
# ============================================================================
"""
Clustering Rule

Fields are grouped by their precomputed H3 cell at each supported
resolution. Every cell becomes one Cluster carrying the member count and
the mean of the members' centre points.

The output depends only on the set of inputs: records are sorted before
aggregation and cells are emitted in index order, so two runs over the
same rows produce byte-identical payloads.
"""

from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from core.models import (
    ALL_RESOLUTIONS,
    Cluster,
    ClusterArtifact,
    FieldRecord,
    Resolution,
    utcnow,
)

CENTROID_PRECISION = 6


def cluster_records(records: Iterable[FieldRecord], resolution: Resolution) -> List[Cluster]:
    """
    Aggregate records into one Cluster per H3 cell at ``resolution``.

    Records without a cell index at this resolution are left out.
    """
    members: Dict[str, List[FieldRecord]] = defaultdict(list)
    for record in sorted(records, key=lambda r: str(r.field_id)):
        cell = record.h3_index(resolution)
        if cell:
            members[cell].append(record)

    clusters = []
    for cell in sorted(members):
        group = members[cell]
        count = len(group)
        clusters.append(
            Cluster(
                resolution=resolution,
                h3_index=cell,
                field_count=count,
                center_lat=round(sum(r.center_lat for r in group) / count, CENTROID_PRECISION),
                center_lng=round(sum(r.center_lng for r in group) / count, CENTROID_PRECISION),
            )
        )
    return clusters


def build_artifact(
    tenant_id: UUID,
    records: Sequence[FieldRecord],
    fingerprint: str,
    computed_at: Optional[datetime] = None,
    resolutions: Sequence[Resolution] = ALL_RESOLUTIONS,
) -> ClusterArtifact:
    """
    Build the tenant's ClusterArtifact.

    Args:
        tenant_id: Tenant the records belong to
        records: Input field records (any order)
        fingerprint: Digest of the inputs, stored alongside the payload
        computed_at: Timestamp to record (defaults to now)
        resolutions: Resolutions to aggregate

    Returns:
        ClusterArtifact whose payload holds every resolution's cells
    """
    payload = {
        "field_count": len(records),
        "resolutions": {
            resolution.label: [c.to_payload() for c in cluster_records(records, resolution)]
            for resolution in resolutions
        },
    }
    return ClusterArtifact(
        tenant_id=tenant_id,
        payload=payload,
        computed_at=computed_at or utcnow(),
        source_fingerprint=fingerprint,
    )


__all__ = ["CENTROID_PRECISION", "cluster_records", "build_artifact"]
