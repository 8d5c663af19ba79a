# ============================================================================
# MODELS MODULE
# ============================================================================
# STATUS: Model exports
# PURPOSE: Central export point for all Pydantic models
# ============================================================================
"""
Models Module - Central Export Point

Pydantic models for cluster jobs and cluster artifacts.
"""

from core.models.cluster_job import ClusterJob, utcnow
from core.models.cluster import (
    ALL_RESOLUTIONS,
    BoundingBox,
    Cluster,
    ClusterArtifact,
    FieldRecord,
    Resolution,
    zoom_to_resolution,
)

__all__ = [
    "ClusterJob",
    "utcnow",
    "ALL_RESOLUTIONS",
    "BoundingBox",
    "Cluster",
    "ClusterArtifact",
    "FieldRecord",
    "Resolution",
    "zoom_to_resolution",
]
