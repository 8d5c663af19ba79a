# ============================================================================
# SERVICES MODULE
# ============================================================================
# STATUS: Core - Business logic layer
# PURPOSE: Cluster calculation, job processing, enqueue and query use cases
# ============================================================================
"""
Services Module

Use cases for the cluster worker. Services depend on the store
capabilities in repositories.base, never on PostgreSQL or Redis directly.

Usage:
    from services import CalculateClustersService, ProcessJobsService

    calculate = CalculateClustersService(cluster_repo, cache_repo)
    process = ProcessJobsService(job_repo, calculate)
    result = await process.execute(batch_size=10)
"""

from .clustering import build_artifact, cluster_records
from .calculate_service import CalculateClustersService
from .process_jobs_service import BatchResult, ProcessJobsService, default_worker_id
from .enqueue_service import EnqueueJobService, EnqueueResult
from .cluster_query_service import ClusterQueryService

__all__ = [
    "build_artifact",
    "cluster_records",
    "CalculateClustersService",
    "ProcessJobsService",
    "BatchResult",
    "default_worker_id",
    "EnqueueJobService",
    "EnqueueResult",
    "ClusterQueryService",
]
