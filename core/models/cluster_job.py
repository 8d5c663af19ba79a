# ============================================================================
# CLUSTER JOB MODEL
# ============================================================================
# STATUS: Core model - One unit of work in the cluster_jobs queue
# PURPOSE: Track a tenant's cluster (re)computation request
# EXPORTS: ClusterJob
# DEPENDENCIES: pydantic
# ============================================================================
"""
Cluster Job Model

A ClusterJob asks the worker to (re)compute one tenant's clusters.

Producers insert rows in PENDING; from then on only the engine mutates
them. Rows are never deleted by the engine.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, computed_field, field_validator

from core.contracts import ERROR_MESSAGE_MAX_LENGTH, JobStatus, truncate_message


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ClusterJob(BaseModel):
    """
    A queued cluster computation for one tenant.

    Maps to: cluster_jobs table

    Lifecycle:
        1. Inserted with status=PENDING by a producer
        2. Claimed (RUNNING) by exactly one worker; attempt_count += 1
        3. SUCCEEDED or FAILED when the calculation returns
        4. Back to PENDING if the worker shuts down before starting it,
           or if the janitor finds the claim stale
    """

    id: UUID = Field(default_factory=uuid4)
    tenant_id: UUID

    status: JobStatus = Field(default=JobStatus.PENDING)

    created_at: datetime = Field(default_factory=utcnow)
    claimed_at: Optional[datetime] = Field(
        default=None,
        description="When the current claim was taken",
    )
    completed_at: Optional[datetime] = Field(
        default=None,
        description="When the job reached a terminal state",
    )

    attempt_count: int = Field(
        default=0,
        ge=0,
        description="Number of transitions into RUNNING",
    )
    error_message: Optional[str] = Field(default=None, max_length=ERROR_MESSAGE_MAX_LENGTH)
    worker_id: Optional[str] = Field(
        default=None,
        description="Worker that currently owns the RUNNING claim",
    )

    model_config = {"frozen": False}

    @field_validator("error_message", mode="before")
    @classmethod
    def _clip_error_message(cls, value: Any) -> Any:
        if isinstance(value, str):
            return truncate_message(value)
        return value

    @computed_field
    @property
    def is_terminal(self) -> bool:
        """Check if job is in a terminal state."""
        return self.status.is_terminal()

    @computed_field
    @property
    def duration_seconds(self) -> Optional[float]:
        """Time from claim to completion, if both are known."""
        if not self.claimed_at or not self.completed_at:
            return None
        return (self.completed_at - self.claimed_at).total_seconds()

    def can_transition_to(self, new_status: JobStatus) -> bool:
        """
        Validate if a status transition is allowed.

        Valid transitions:
            PENDING -> RUNNING
            RUNNING -> SUCCEEDED, FAILED, PENDING (requeue)
            SUCCEEDED, FAILED -> (none, terminal)
        """
        allowed = {
            JobStatus.PENDING: {JobStatus.RUNNING},
            JobStatus.RUNNING: {JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.PENDING},
            JobStatus.SUCCEEDED: set(),
            JobStatus.FAILED: set(),
        }
        return new_status in allowed.get(self.status, set())

    def _require(self, new_status: JobStatus) -> None:
        if not self.can_transition_to(new_status):
            raise ValueError(f"Cannot transition from {self.status.value} to {new_status.value}")

    def mark_claimed(self, worker_id: str, now: Optional[datetime] = None) -> None:
        """PENDING -> RUNNING for worker_id."""
        self._require(JobStatus.RUNNING)
        self.status = JobStatus.RUNNING
        self.claimed_at = now or utcnow()
        self.worker_id = worker_id
        self.attempt_count += 1

    def mark_succeeded(self, now: Optional[datetime] = None) -> None:
        """RUNNING -> SUCCEEDED; clears the claim owner and any stale error."""
        self._require(JobStatus.SUCCEEDED)
        self.status = JobStatus.SUCCEEDED
        self.error_message = None
        self.completed_at = now or utcnow()
        self.worker_id = None

    def mark_failed(self, error_message: str, now: Optional[datetime] = None) -> None:
        """RUNNING -> FAILED with a bounded error message."""
        self._require(JobStatus.FAILED)
        self.status = JobStatus.FAILED
        self.error_message = truncate_message(error_message)
        self.completed_at = now or utcnow()
        self.worker_id = None

    def requeue(self) -> None:
        """RUNNING -> PENDING; attempt_count is kept."""
        self._require(JobStatus.PENDING)
        self.status = JobStatus.PENDING
        self.claimed_at = None
        self.worker_id = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ClusterJob":
        """Build from a dict_row of cluster_jobs."""
        return cls(
            id=row["id"],
            tenant_id=row["tenant_id"],
            status=JobStatus(row["status"]),
            created_at=row["created_at"],
            claimed_at=row.get("claimed_at"),
            completed_at=row.get("completed_at"),
            attempt_count=row.get("attempt_count") or 0,
            error_message=row.get("error_message"),
            worker_id=row.get("worker_id"),
        )


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["ClusterJob", "utcnow"]
