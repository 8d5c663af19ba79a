# ============================================================================
# CLUSTER JOB REPOSITORY
# ============================================================================
# STATUS: Core - Durable queue over the cluster_jobs table
# PURPOSE: Claim, complete, requeue and reclaim cluster jobs
# ============================================================================
"""
Cluster Job Repository

PostgreSQL implementation of JobStore.

Claiming uses a CTE with FOR UPDATE SKIP LOCKED so concurrent workers
partition the PENDING set without blocking on each other's row locks.
Every status transition is a single conditional UPDATE; zero rows affected
means the job was missing or not in the expected state, which is then
reported as JobNotFoundError or InvalidStateError.
"""

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from core.contracts import JobStatus, truncate_message
from core.errors import InvalidStateError, JobNotFoundError
from core.logging import get_logger, ComponentType
from core.models import ClusterJob
from repositories.base import JobStore
from repositories.database import TABLE_CLUSTER_JOBS, store_errors

logger = get_logger(__name__, ComponentType.REPOSITORY)

_TABLE_NAME = "cluster_jobs"


class ClusterJobRepository(JobStore):
    """Repository for ClusterJob entities."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    # ------------------------------------------------------------------
    # Claiming
    # ------------------------------------------------------------------

    async def claim_batch(self, worker_id: str, limit: int) -> List[ClusterJob]:
        """
        Claim up to ``limit`` PENDING jobs for ``worker_id``.

        Args:
            worker_id: Identity recorded on every claimed row
            limit: Maximum rows to claim; non-positive claims nothing

        Returns:
            Claimed jobs (status RUNNING), oldest first
        """
        if limit <= 0:
            return []

        with store_errors("claim_batch", _TABLE_NAME):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("""
                    WITH next_jobs AS (
                        SELECT id FROM {}
                        WHERE status = %(pending)s
                        ORDER BY created_at, id
                        LIMIT %(limit)s
                        FOR UPDATE SKIP LOCKED
                    )
                    UPDATE {} AS j
                    SET status = %(running)s,
                        claimed_at = NOW(),
                        worker_id = %(worker_id)s,
                        attempt_count = j.attempt_count + 1
                    FROM next_jobs
                    WHERE j.id = next_jobs.id
                    RETURNING j.*
                    """).format(TABLE_CLUSTER_JOBS, TABLE_CLUSTER_JOBS),
                    {
                        "pending": JobStatus.PENDING.value,
                        "running": JobStatus.RUNNING.value,
                        "limit": limit,
                        "worker_id": worker_id,
                    },
                )
                rows = await result.fetchall()

        # UPDATE ... RETURNING does not preserve the CTE order
        jobs = sorted(
            (ClusterJob.from_row(row) for row in rows),
            key=lambda job: (job.created_at, str(job.id)),
        )

        if jobs:
            logger.debug(
                "Claimed jobs",
                extra={"worker_id": worker_id, "claimed": len(jobs), "limit": limit},
            )
        return jobs

    # ------------------------------------------------------------------
    # Transitions out of RUNNING
    # ------------------------------------------------------------------

    async def mark_succeeded(self, job_id: UUID, worker_id: Optional[str] = None) -> None:
        """
        RUNNING -> SUCCEEDED; worker_id is cleared.

        Raises:
            JobNotFoundError: No such job
            InvalidStateError: Job not RUNNING (or owned by another worker)
        """
        await self._transition(
            "mark_succeeded",
            job_id,
            worker_id,
            sql.SQL("""
                status = %(target)s,
                completed_at = NOW(),
                error_message = NULL,
                worker_id = NULL
            """),
            {"target": JobStatus.SUCCEEDED.value},
        )

    async def mark_failed(
        self,
        job_id: UUID,
        message: str,
        worker_id: Optional[str] = None,
    ) -> None:
        """
        RUNNING -> FAILED with ``message`` truncated to the column limit;
        worker_id is cleared.

        Raises:
            JobNotFoundError: No such job
            InvalidStateError: Job not RUNNING (or owned by another worker)
        """
        await self._transition(
            "mark_failed",
            job_id,
            worker_id,
            sql.SQL("""
                status = %(target)s,
                completed_at = NOW(),
                error_message = %(error_message)s,
                worker_id = NULL
            """),
            {
                "target": JobStatus.FAILED.value,
                "error_message": truncate_message(message),
            },
        )

    async def requeue(self, job_id: UUID, worker_id: Optional[str] = None) -> None:
        """
        RUNNING -> PENDING. attempt_count is left as is.

        Raises:
            JobNotFoundError: No such job
            InvalidStateError: Job not RUNNING (or owned by another worker)
        """
        await self._transition(
            "requeue",
            job_id,
            worker_id,
            sql.SQL("""
                status = %(target)s,
                claimed_at = NULL,
                worker_id = NULL
            """),
            {"target": JobStatus.PENDING.value},
        )

    async def _transition(
        self,
        operation: str,
        job_id: UUID,
        worker_id: Optional[str],
        assignments: sql.Composable,
        params: Dict[str, object],
    ) -> None:
        guard = sql.SQL("")
        if worker_id is not None:
            guard = sql.SQL(" AND worker_id = %(worker_id)s")

        query = sql.SQL("""
            UPDATE {table}
            SET {assignments}
            WHERE id = %(job_id)s
              AND status = %(running)s{guard}
            RETURNING id
        """).format(table=TABLE_CLUSTER_JOBS, assignments=assignments, guard=guard)

        with store_errors(operation, _TABLE_NAME, job_id=job_id):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    query,
                    {
                        **params,
                        "job_id": job_id,
                        "running": JobStatus.RUNNING.value,
                        "worker_id": worker_id,
                    },
                )
                updated = await result.fetchone()
                if updated is not None:
                    return

                current = await conn.execute(
                    sql.SQL("SELECT status, worker_id FROM {} WHERE id = %s").format(
                        TABLE_CLUSTER_JOBS
                    ),
                    (job_id,),
                )
                row = await current.fetchone()

        if row is None:
            raise JobNotFoundError(job_id, operation=operation)

        if row["status"] == JobStatus.RUNNING.value:
            raise InvalidStateError(
                f"Job {job_id} is RUNNING under worker {row['worker_id']}, not {worker_id}",
                job_id=job_id,
                current_status=row["status"],
                operation=operation,
            )
        raise InvalidStateError(
            f"Job {job_id} is {row['status']}, expected RUNNING",
            job_id=job_id,
            current_status=row["status"],
            operation=operation,
        )

    # ------------------------------------------------------------------
    # Janitor
    # ------------------------------------------------------------------

    async def reclaim_stale(self, before: datetime) -> int:
        """
        Return RUNNING jobs claimed before ``before`` to PENDING.

        Rows already locked by a live worker's transition are skipped.

        Args:
            before: Claims older than this are considered abandoned

        Returns:
            Number of jobs put back in the queue
        """
        with store_errors("reclaim_stale", _TABLE_NAME):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("""
                    WITH stale AS (
                        SELECT id FROM {}
                        WHERE status = %(running)s
                          AND claimed_at < %(before)s
                        FOR UPDATE SKIP LOCKED
                    )
                    UPDATE {} AS j
                    SET status = %(pending)s,
                        claimed_at = NULL,
                        worker_id = NULL
                    FROM stale
                    WHERE j.id = stale.id
                    RETURNING j.id
                    """).format(TABLE_CLUSTER_JOBS, TABLE_CLUSTER_JOBS),
                    {
                        "running": JobStatus.RUNNING.value,
                        "pending": JobStatus.PENDING.value,
                        "before": before,
                    },
                )
                rows = await result.fetchall()

        if rows:
            logger.warning(
                "Reclaimed stale jobs",
                extra={"reclaimed": len(rows), "claimed_before": before.isoformat()},
            )
        return len(rows)

    # ------------------------------------------------------------------
    # Producers and inspection
    # ------------------------------------------------------------------

    async def get(self, job_id: UUID) -> Optional[ClusterJob]:
        """
        Get a job by ID.

        Returns:
            ClusterJob or None if not found
        """
        with store_errors("get_job", _TABLE_NAME, job_id=job_id):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("SELECT * FROM {} WHERE id = %s").format(TABLE_CLUSTER_JOBS),
                    (job_id,),
                )
                row = await result.fetchone()

        return ClusterJob.from_row(row) if row else None

    async def enqueue(self, tenant_id: UUID) -> ClusterJob:
        """
        Insert a PENDING job for ``tenant_id``.

        id and created_at come from column defaults.
        """
        with store_errors("enqueue", _TABLE_NAME, tenant_id=tenant_id):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("""
                    INSERT INTO {} (tenant_id, status)
                    VALUES (%s, %s)
                    RETURNING *
                    """).format(TABLE_CLUSTER_JOBS),
                    (tenant_id, JobStatus.PENDING.value),
                )
                row = await result.fetchone()

        job = ClusterJob.from_row(row)
        logger.info("Enqueued cluster job", extra={"job_id": str(job.id), "tenant_id": str(tenant_id)})
        return job

    async def has_pending_job(self, tenant_id: UUID) -> bool:
        with store_errors("has_pending_job", _TABLE_NAME, tenant_id=tenant_id):
            async with self.pool.connection() as conn:
                result = await conn.execute(
                    sql.SQL("""
                    SELECT EXISTS (
                        SELECT 1 FROM {} WHERE tenant_id = %s AND status = %s
                    )
                    """).format(TABLE_CLUSTER_JOBS),
                    (tenant_id, JobStatus.PENDING.value),
                )
                row = await result.fetchone()

        return bool(row[0]) if row else False

    async def count_by_status(self) -> Dict[JobStatus, int]:
        """Job counts per status; statuses with no rows report 0."""
        with store_errors("count_by_status", _TABLE_NAME):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("SELECT status, COUNT(*) AS count FROM {} GROUP BY status").format(
                        TABLE_CLUSTER_JOBS
                    )
                )
                rows = await result.fetchall()

        counts = {status: 0 for status in JobStatus}
        for row in rows:
            counts[JobStatus(row["status"])] = row["count"]
        return counts


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["ClusterJobRepository"]
