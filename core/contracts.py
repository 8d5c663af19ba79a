# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# STATUS: Foundation - Core enums shared by repositories and services
# PURPOSE: Job lifecycle states and calculation outcomes
# EXPORTS: JobStatus, CalculateOutcome, ERROR_MESSAGE_MAX_LENGTH
# DEPENDENCIES: enum
# ============================================================================
"""
Base contracts for the cluster worker.

These values cross the SQL boundary (``cluster_jobs.status``) and the
service boundary (``CalculateClustersService`` results), so they are kept
in one place.
"""

from enum import Enum


# Upper bound for cluster_jobs.error_message
ERROR_MESSAGE_MAX_LENGTH = 2048


# ============================================================================
# STATUS ENUMS
# ============================================================================

class JobStatus(str, Enum):
    """
    Cluster job lifecycle states.

    State transitions:
        PENDING -> RUNNING -> SUCCEEDED
                           -> FAILED
                RUNNING -> PENDING (requeue on shutdown / stale reclaim)
    """
    PENDING = "PENDING"          # Enqueued, waiting for a worker
    RUNNING = "RUNNING"          # Claimed by exactly one worker
    SUCCEEDED = "SUCCEEDED"      # Clusters computed or reused
    FAILED = "FAILED"            # Calculation raised; see error_message

    def is_terminal(self) -> bool:
        """Check if this is a terminal state (no further transitions)."""
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED)


class CalculateOutcome(str, Enum):
    """Result of a single cluster calculation for a tenant."""
    REUSED = "reused"            # Stored artifact matched the input fingerprint
    RECOMPUTED = "recomputed"    # New artifact written and cache refreshed


def truncate_message(message: str, limit: int = ERROR_MESSAGE_MAX_LENGTH) -> str:
    """Clip an error message to the column bound."""
    if message is None:
        return ""
    return message if len(message) <= limit else message[:limit]


__all__ = [
    "ERROR_MESSAGE_MAX_LENGTH",
    "JobStatus",
    "CalculateOutcome",
    "truncate_message",
]
