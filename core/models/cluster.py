# ============================================================================
# CLUSTER MODELS
# ============================================================================
# STATUS: Core model - Inputs and outputs of the cluster computation
# PURPOSE: Field records, H3 clusters, tenant artifacts, map viewport
# EXPORTS: Resolution, FieldRecord, Cluster, ClusterArtifact, BoundingBox
# DEPENDENCIES: pydantic
# ============================================================================
"""
Cluster Models

A tenant's fields carry H3 cell indexes precomputed by the ingestion side
at four resolutions. Clustering groups the fields by cell; the result for
all four resolutions is stored as one ClusterArtifact per tenant.

Resolution levels:
    res3  ~100 km   regional
    res5  ~10 km    prefecture
    res7  ~1 km     municipality
    res9  ~100 m    detail
"""

from datetime import datetime
from enum import IntEnum
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from core.models.cluster_job import utcnow


class Resolution(IntEnum):
    """Supported H3 resolutions."""
    RES3 = 3
    RES5 = 5
    RES7 = 7
    RES9 = 9

    @property
    def label(self) -> str:
        """Payload key, e.g. ``res7``."""
        return f"res{self.value}"

    @property
    def column(self) -> str:
        """fields column holding the cell index at this resolution."""
        return f"h3_index_res{self.value}"


ALL_RESOLUTIONS = (Resolution.RES3, Resolution.RES5, Resolution.RES7, Resolution.RES9)


def zoom_to_resolution(zoom: float) -> Resolution:
    """
    Map a web-map zoom level to the H3 resolution served at that zoom.

    zoom 0-5 -> res3, 6-9 -> res5, 10-13 -> res7, 14+ -> res9
    """
    if zoom < 6:
        return Resolution.RES3
    if zoom < 10:
        return Resolution.RES5
    if zoom < 14:
        return Resolution.RES7
    return Resolution.RES9


class FieldRecord(BaseModel):
    """One input row from the fields table."""

    field_id: UUID
    tenant_id: UUID
    center_lat: float
    center_lng: float
    h3_index_res3: Optional[str] = None
    h3_index_res5: Optional[str] = None
    h3_index_res7: Optional[str] = None
    h3_index_res9: Optional[str] = None
    updated_at: datetime

    def h3_index(self, resolution: Resolution) -> Optional[str]:
        return getattr(self, resolution.column)


class Cluster(BaseModel):
    """Aggregated fields in one H3 cell."""

    resolution: Resolution
    h3_index: str
    field_count: int = Field(..., ge=1)
    center_lat: float
    center_lng: float

    def to_payload(self) -> Dict[str, Any]:
        return {
            "h3_index": self.h3_index,
            "field_count": self.field_count,
            "center_lat": self.center_lat,
            "center_lng": self.center_lng,
        }


class ClusterArtifact(BaseModel):
    """
    Persistent, tenant-scoped cluster output.

    Maps to: cluster_artifacts table (and the cache value)

    payload layout:
        {
            "field_count": 42,
            "resolutions": {
                "res3": [{"h3_index": ..., "field_count": ..., "center_lat": ..., "center_lng": ...}],
                "res5": [...],
                "res7": [...],
                "res9": [...]
            }
        }
    """

    tenant_id: UUID
    payload: Dict[str, Any]
    computed_at: datetime = Field(default_factory=utcnow)
    source_fingerprint: str = Field(..., min_length=1)

    def clusters(self, resolution: Resolution) -> List[Cluster]:
        """Decode the cells stored for one resolution."""
        items = self.payload.get("resolutions", {}).get(resolution.label, [])
        return [Cluster(resolution=resolution, **item) for item in items]


class BoundingBox(BaseModel):
    """Map viewport; south-west and north-east corners."""

    sw_lat: float
    sw_lng: float
    ne_lat: float
    ne_lng: float

    @model_validator(mode="after")
    def _check_ranges(self) -> "BoundingBox":
        for lat in (self.sw_lat, self.ne_lat):
            if not -90 <= lat <= 90:
                raise ValueError(f"latitude {lat} out of range")
        for lng in (self.sw_lng, self.ne_lng):
            if not -180 <= lng <= 180:
                raise ValueError(f"longitude {lng} out of range")
        if self.sw_lat > self.ne_lat:
            raise ValueError("south-west corner is north of north-east corner")
        return self

    def contains(self, lat: float, lng: float) -> bool:
        """Point-in-box test; handles boxes crossing the antimeridian."""
        if lat < self.sw_lat or lat > self.ne_lat:
            return False
        if self.sw_lng <= self.ne_lng:
            return self.sw_lng <= lng <= self.ne_lng
        return lng >= self.sw_lng or lng <= self.ne_lng


__all__ = [
    "Resolution",
    "ALL_RESOLUTIONS",
    "zoom_to_resolution",
    "FieldRecord",
    "Cluster",
    "ClusterArtifact",
    "BoundingBox",
]
