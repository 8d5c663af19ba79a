# ============================================================================
# CORE MODULE
# ============================================================================
# STATUS: Core module initialization
# PURPOSE: Export contracts, models and errors
# ============================================================================

from core.contracts import CalculateOutcome, JobStatus
from core.errors import (
    BusinessRuleError,
    ClusterWorkerError,
    ConfigurationError,
    DataIntegrityError,
    EmptyInputError,
    InvalidStateError,
    JobNotFoundError,
    StoreError,
)
from core.models import ClusterArtifact, ClusterJob, FieldRecord, Resolution

__all__ = [
    # Enums
    "JobStatus",
    "CalculateOutcome",
    # Models
    "ClusterJob",
    "ClusterArtifact",
    "FieldRecord",
    "Resolution",
    # Errors
    "ClusterWorkerError",
    "ConfigurationError",
    "StoreError",
    "DataIntegrityError",
    "InvalidStateError",
    "JobNotFoundError",
    "BusinessRuleError",
    "EmptyInputError",
]
