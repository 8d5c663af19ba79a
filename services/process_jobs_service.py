# ============================================================================
# PROCESS JOBS SERVICE
# ============================================================================
# STATUS: Core - One claim-and-process pass over the queue
# PURPOSE: Drive claimed cluster jobs to a terminal state
# ============================================================================
"""
Process Jobs Service

One invocation claims up to ``batch_size`` PENDING jobs and processes them
serially:

    claim_batch -> for each job:
        stop requested?  -> requeue this and every remaining claim, stop
        calculate        -> mark_succeeded
        calculate raised -> mark_failed("<Type>: <message>")

Error handling:
    - Calculate failures are recorded on the job; the batch continues
    - InvalidStateError / JobNotFoundError on the terminal update are
      logged; the batch continues
    - StoreError from the job store aborts the batch after requeueing the
      claims not yet started, and is re-raised
    - CancelledError propagates untouched; the in-flight job stays
      RUNNING until the janitor reclaims it
"""

import asyncio
import os
import socket
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional
from uuid import uuid4

from core.contracts import truncate_message
from core.errors import (
    BusinessRuleError,
    ClusterWorkerError,
    InvalidStateError,
    JobNotFoundError,
    StoreError,
    describe_error,
)
from core.logging import get_logger, log_context, ComponentType
from core.models import ClusterJob
from repositories.base import JobStore
from services.calculate_service import CalculateClustersService

logger = get_logger(__name__, ComponentType.SERVICE)


def default_worker_id() -> str:
    """``<hostname>-<pid>-<8 hex>``; unique per process start."""
    return f"{socket.gethostname()}-{os.getpid()}-{uuid4().hex[:8]}"


@dataclass
class BatchResult:
    """Summary of one Process Jobs invocation."""
    worker_id: str
    claimed: int = 0
    succeeded: int = 0
    failed: int = 0
    requeued: int = 0
    skipped: int = 0
    stopped: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ProcessJobsService:
    """Claims a batch of cluster jobs and drives each to completion."""

    def __init__(
        self,
        job_store: JobStore,
        calculate: CalculateClustersService,
        worker_id: Optional[str] = None,
    ):
        """
        Initialize process jobs service.

        Args:
            job_store: Durable job queue
            calculate: Per-tenant calculation use case
            worker_id: Claim identity (generated once if omitted)
        """
        self.job_store = job_store
        self.calculate = calculate
        self.worker_id = worker_id or default_worker_id()

    async def execute(
        self,
        batch_size: int,
        stop_event: Optional[asyncio.Event] = None,
    ) -> BatchResult:
        """
        Claim and process one batch.

        Args:
            batch_size: Maximum jobs to claim
            stop_event: When set, unstarted claims are requeued

        Returns:
            BatchResult counts

        Raises:
            StoreError: Job store failure (batch aborted)
        """
        result = BatchResult(worker_id=self.worker_id)

        with log_context(worker_id=self.worker_id, operation="process_jobs"):
            jobs = await self.job_store.claim_batch(self.worker_id, batch_size)
            result.claimed = len(jobs)

            if not jobs:
                logger.info("No pending cluster jobs")
                return result

            logger.info("Claimed cluster jobs", extra={"claimed": len(jobs), "batch_size": batch_size})

            for index, job in enumerate(jobs):
                if stop_event is not None and stop_event.is_set():
                    result.stopped = True
                    logger.info(
                        "Shutdown requested; requeueing unstarted jobs",
                        extra={"remaining": len(jobs) - index},
                    )
                    await self._requeue_all(jobs[index:], result)
                    break

                try:
                    await self._process_job(job, result)
                except StoreError as e:
                    logger.error(
                        "Job store failure; aborting batch",
                        extra={**e.log_fields(), "remaining": len(jobs) - index - 1},
                    )
                    await self._requeue_all(jobs[index + 1:], result)
                    raise

        logger.info("Batch finished", extra=result.to_dict())
        return result

    async def _process_job(self, job: ClusterJob, result: BatchResult) -> None:
        with log_context(job_id=job.id, tenant_id=job.tenant_id):
            try:
                outcome = await self.calculate.execute(job.tenant_id)
            except Exception as e:
                message = truncate_message(describe_error(e))
                if isinstance(e, BusinessRuleError):
                    logger.warning(
                        "Cluster calculation rejected",
                        extra={"error_type": type(e).__name__, "error": message},
                    )
                else:
                    logger.error(
                        "Cluster calculation failed",
                        extra={"error_type": type(e).__name__, "error": message},
                        exc_info=True,
                    )
                if await self._complete(job, message):
                    result.failed += 1
                else:
                    result.skipped += 1
                return

            if await self._complete(job, None):
                result.succeeded += 1
                logger.info(
                    "Cluster job succeeded",
                    extra={"outcome": outcome.value, "attempt_count": job.attempt_count},
                )
            else:
                result.skipped += 1

    async def _complete(self, job: ClusterJob, error_message: Optional[str]) -> bool:
        """
        Write the terminal status. Returns False if the row had moved on.

        StoreError propagates to abort the batch.
        """
        try:
            if error_message is None:
                await self.job_store.mark_succeeded(job.id, self.worker_id)
            else:
                await self.job_store.mark_failed(job.id, error_message, self.worker_id)
        except (InvalidStateError, JobNotFoundError) as e:
            logger.error("Terminal status update rejected", extra=e.log_fields())
            return False
        return True

    async def _requeue_all(self, jobs: List[ClusterJob], result: BatchResult) -> None:
        for job in jobs:
            try:
                await self.job_store.requeue(job.id, self.worker_id)
            except ClusterWorkerError as e:
                logger.error("Requeue failed", extra=e.log_fields())
                continue
            result.requeued += 1


__all__ = ["ProcessJobsService", "BatchResult", "default_worker_id"]
