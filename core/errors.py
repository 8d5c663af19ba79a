# ============================================================================
# ERROR TAXONOMY
# ============================================================================
# STATUS: Foundation - Exceptions raised across component boundaries
# PURPOSE: Carry operation/table/tenant context so logs hold the full chain
# EXPORTS: ClusterWorkerError and subclasses
# ============================================================================
"""
Error taxonomy for the cluster worker.

    ClusterWorkerError
    ├── ConfigurationError      fatal at startup
    ├── StoreError              transient transport failure (batch-level)
    │   └── DataIntegrityError  constraint violation (aborts the batch)
    ├── InvalidStateError       unexpected job transition (fatal for one job)
    ├── JobNotFoundError        missing job row (fatal for one job)
    └── BusinessRuleError       domain rule violated (job marked FAILED)
        └── EmptyInputError     tenant has no input records

Cache failures never leave the cache layer and have no class here.
"""

from typing import Any, Dict, Optional


class ClusterWorkerError(Exception):
    """Base exception with structured context for logging."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        tenant_id: Optional[Any] = None,
        job_id: Optional[Any] = None,
    ):
        self.operation = operation
        self.table = table
        self.tenant_id = str(tenant_id) if tenant_id is not None else None
        self.job_id = str(job_id) if job_id is not None else None
        super().__init__(message)

    @property
    def sqlstate(self) -> Optional[str]:
        """SQLSTATE of the underlying driver error, if any."""
        cause = self.__cause__
        return getattr(cause, "sqlstate", None) if cause is not None else None

    def log_fields(self) -> Dict[str, Any]:
        """Key/value context for structured log records."""
        fields: Dict[str, Any] = {"error_type": type(self).__name__}
        for key in ("operation", "table", "tenant_id", "job_id", "sqlstate"):
            value = getattr(self, key)
            if value is not None:
                fields[key] = value
        return fields


class ConfigurationError(ClusterWorkerError):
    """Missing or unparseable configuration."""

    def __init__(self, message: str, variable: Optional[str] = None):
        self.variable = variable
        super().__init__(message, operation="load_config")


class StoreError(ClusterWorkerError):
    """Relational store call failed (network, timeout, server error)."""


class DataIntegrityError(StoreError):
    """A database constraint was violated; this is a bug, not a hiccup."""


class InvalidStateError(ClusterWorkerError):
    """Job is not in the state a transition requires."""

    def __init__(
        self,
        message: str,
        job_id: Optional[Any] = None,
        current_status: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        self.current_status = current_status
        super().__init__(message, operation=operation, table="cluster_jobs", job_id=job_id)


class JobNotFoundError(ClusterWorkerError):
    """Job row does not exist."""

    def __init__(self, job_id: Any, operation: Optional[str] = None):
        super().__init__(
            f"Job {job_id} not found",
            operation=operation,
            table="cluster_jobs",
            job_id=job_id,
        )


class BusinessRuleError(ClusterWorkerError):
    """Input violates a domain rule; the job fails, the process does not."""


class EmptyInputError(BusinessRuleError):
    """Tenant has no field records to cluster."""

    def __init__(self, tenant_id: Any):
        super().__init__(
            f"Tenant {tenant_id} has no field records to cluster",
            operation="calculate_clusters",
            table="fields",
            tenant_id=tenant_id,
        )


def describe_error(exc: BaseException) -> str:
    """Render an exception as the text stored in cluster_jobs.error_message."""
    text = str(exc).strip()
    name = type(exc).__name__
    return f"{name}: {text}" if text else name


__all__ = [
    "ClusterWorkerError",
    "ConfigurationError",
    "StoreError",
    "DataIntegrityError",
    "InvalidStateError",
    "JobNotFoundError",
    "BusinessRuleError",
    "EmptyInputError",
    "describe_error",
]
