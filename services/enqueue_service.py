# ============================================================================
# ENQUEUE JOB SERVICE
# ============================================================================
# STATUS: Producer - Request a tenant's cluster recomputation
# PURPOSE: Insert PENDING jobs, skipping tenants that already have one queued
# ============================================================================
"""
Enqueue Job Service

Producer side of the cluster_jobs queue. A tenant with a PENDING job
already has a recomputation coming, so a second one is not inserted.
A RUNNING job does not count: its fingerprint may predate the change that
triggered this request.
"""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from core.logging import get_logger, ComponentType
from core.models import ClusterJob
from repositories.base import JobStore

logger = get_logger(__name__, ComponentType.SERVICE)


@dataclass
class EnqueueResult:
    """Outcome of an enqueue request."""
    tenant_id: UUID
    enqueued: bool
    job: Optional[ClusterJob] = None


class EnqueueJobService:
    """Inserts cluster jobs for tenants."""

    def __init__(self, job_store: JobStore):
        self.job_store = job_store

    async def execute(self, tenant_id: UUID, force: bool = False) -> EnqueueResult:
        """
        Queue a recomputation for ``tenant_id``.

        Args:
            tenant_id: Tenant whose fields changed
            force: Insert even if a PENDING job exists

        Returns:
            EnqueueResult; ``enqueued`` is False when skipped
        """
        if not force and await self.job_store.has_pending_job(tenant_id):
            logger.info(
                "Cluster job already pending; skipping",
                extra={"tenant_id": str(tenant_id)},
            )
            return EnqueueResult(tenant_id=tenant_id, enqueued=False)

        job = await self.job_store.enqueue(tenant_id)
        return EnqueueResult(tenant_id=tenant_id, enqueued=True, job=job)


__all__ = ["EnqueueJobService", "EnqueueResult"]
