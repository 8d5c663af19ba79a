# ============================================================================
# STORE CAPABILITIES
# ============================================================================
# STATUS: Core - Abstract capabilities the use cases depend on
# PURPOSE: Decouple services from PostgreSQL/Redis so test doubles fit in
# ============================================================================
"""
Store Capabilities

Abstract bases for the three collaborators of the job-processing engine.
Concrete implementations:

    JobStore      -> repositories.cluster_job_repo.ClusterJobRepository
    ClusterStore  -> repositories.cluster_repo.ClusterRepository
    ClusterCache  -> repositories.cluster_cache_repo.ClusterCacheRepository
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from core.contracts import JobStatus
from core.models import ClusterArtifact, ClusterJob, FieldRecord


class JobStore(ABC):
    """Durable queue and status machine over cluster jobs."""

    @abstractmethod
    async def claim_batch(self, worker_id: str, limit: int) -> List[ClusterJob]:
        """
        Atomically move up to ``limit`` PENDING jobs to RUNNING.

        Oldest ``created_at`` first, ties broken by id. Two concurrent
        callers never receive the same job.
        """

    @abstractmethod
    async def mark_succeeded(self, job_id: UUID, worker_id: Optional[str] = None) -> None:
        """RUNNING -> SUCCEEDED. Raises InvalidStateError otherwise."""

    @abstractmethod
    async def mark_failed(
        self,
        job_id: UUID,
        message: str,
        worker_id: Optional[str] = None,
    ) -> None:
        """RUNNING -> FAILED with a truncated message."""

    @abstractmethod
    async def requeue(self, job_id: UUID, worker_id: Optional[str] = None) -> None:
        """RUNNING -> PENDING, keeping attempt_count."""

    @abstractmethod
    async def reclaim_stale(self, before: datetime) -> int:
        """Return RUNNING jobs claimed before ``before`` to PENDING."""

    @abstractmethod
    async def get(self, job_id: UUID) -> Optional[ClusterJob]:
        """Point lookup."""

    @abstractmethod
    async def enqueue(self, tenant_id: UUID) -> ClusterJob:
        """Insert a PENDING job for a tenant."""

    @abstractmethod
    async def has_pending_job(self, tenant_id: UUID) -> bool:
        """True if the tenant already has a PENDING job."""

    @abstractmethod
    async def count_by_status(self) -> Dict[JobStatus, int]:
        """Queue depth per status."""


class ClusterStore(ABC):
    """Authoritative cluster artifacts and their inputs."""

    @abstractmethod
    async def get(self, tenant_id: UUID) -> Optional[ClusterArtifact]:
        """Stored artifact or None."""

    @abstractmethod
    async def upsert(self, artifact: ClusterArtifact) -> None:
        """Replace the tenant's artifact in a single transaction."""

    @abstractmethod
    async def compute_fingerprint(self, tenant_id: UUID) -> str:
        """Deterministic digest of the tenant's input records."""

    @abstractmethod
    async def list_inputs(self, tenant_id: UUID) -> List[FieldRecord]:
        """Input records for the clustering rule."""


class ClusterCache(ABC):
    """
    Advisory artifact cache.

    Implementations never raise on transport errors: reads degrade to a
    miss, writes and deletes are dropped.
    """

    @abstractmethod
    async def get(self, tenant_id: UUID) -> Optional[ClusterArtifact]:
        """Cached artifact or None on miss/error."""

    @abstractmethod
    async def put(self, artifact: ClusterArtifact, ttl: Optional[float] = None) -> None:
        """Best-effort write."""

    @abstractmethod
    async def invalidate(self, tenant_id: UUID) -> None:
        """Best-effort delete."""


__all__ = ["JobStore", "ClusterStore", "ClusterCache"]
