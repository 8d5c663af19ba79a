# ============================================================================
# REPOSITORIES MODULE
# ============================================================================
# STATUS: Data access layer
# PURPOSE: PostgreSQL and Redis access behind the store capabilities
# ============================================================================
"""
Repositories Module

Data access layer for the cluster worker.

Usage:
    from repositories import DatabasePool, ClusterJobRepository

    async with DatabasePool(settings.database) as pool:
        jobs = ClusterJobRepository(pool)
        claimed = await jobs.claim_batch(worker_id, 10)
"""

from .base import ClusterCache, ClusterStore, JobStore
from .database import (
    DatabasePool,
    open_pool,
    store_errors,
    TABLE_CLUSTER_JOBS,
    TABLE_CLUSTER_ARTIFACTS,
    TABLE_FIELDS,
)
from .cluster_job_repo import ClusterJobRepository
from .cluster_repo import ClusterRepository, fingerprint_rows
from .cluster_cache_repo import ClusterCacheRepository, cache_key

__all__ = [
    # Capabilities
    "JobStore",
    "ClusterStore",
    "ClusterCache",
    # Database
    "DatabasePool",
    "open_pool",
    "store_errors",
    "TABLE_CLUSTER_JOBS",
    "TABLE_CLUSTER_ARTIFACTS",
    "TABLE_FIELDS",
    # Repositories
    "ClusterJobRepository",
    "ClusterRepository",
    "fingerprint_rows",
    "ClusterCacheRepository",
    "cache_key",
]
