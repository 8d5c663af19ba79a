# ============================================================================
# SCHEMA DEPLOYMENT
# ============================================================================
# STATUS: Infrastructure - Idempotent DDL for the worker's tables
# PURPOSE: Create cluster_jobs, cluster_artifacts and fields if absent
# ============================================================================
"""
Schema Deployment

Every statement is idempotent (IF NOT EXISTS), so deployment can be
re-run against a live database. The fields table is owned by the
ingestion side; it is created here only so a fresh database is usable.

Usage:
    async with DatabasePool(settings.database) as pool:
        result = await deploy_schema(pool, dry_run=False)
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import psycopg
from psycopg_pool import AsyncConnectionPool

from core.logging import get_logger, ComponentType

logger = get_logger(__name__, ComponentType.TOOL)


DDL_STATEMENTS: List[tuple] = [
    (
        "extension_pgcrypto",
        "CREATE EXTENSION IF NOT EXISTS pgcrypto",
    ),
    (
        "table_cluster_jobs",
        """
        CREATE TABLE IF NOT EXISTS cluster_jobs (
            id             UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            tenant_id      UUID NOT NULL,
            status         TEXT NOT NULL DEFAULT 'PENDING'
                           CHECK (status IN ('PENDING', 'RUNNING', 'SUCCEEDED', 'FAILED')),
            created_at     TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            claimed_at     TIMESTAMPTZ,
            completed_at   TIMESTAMPTZ,
            attempt_count  INTEGER NOT NULL DEFAULT 0 CHECK (attempt_count >= 0),
            worker_id      TEXT,
            error_message  TEXT
        )
        """,
    ),
    (
        "index_cluster_jobs_claim",
        "CREATE INDEX IF NOT EXISTS idx_cluster_jobs_status_created "
        "ON cluster_jobs (status, created_at, id)",
    ),
    (
        "index_cluster_jobs_tenant",
        "CREATE INDEX IF NOT EXISTS idx_cluster_jobs_tenant_status "
        "ON cluster_jobs (tenant_id, status)",
    ),
    (
        "table_cluster_artifacts",
        """
        CREATE TABLE IF NOT EXISTS cluster_artifacts (
            tenant_id           UUID PRIMARY KEY,
            payload             JSONB NOT NULL,
            computed_at         TIMESTAMPTZ NOT NULL,
            source_fingerprint  TEXT NOT NULL
        )
        """,
    ),
    (
        "table_fields",
        """
        CREATE TABLE IF NOT EXISTS fields (
            id             UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            tenant_id      UUID NOT NULL,
            center_lat     DOUBLE PRECISION NOT NULL,
            center_lng     DOUBLE PRECISION NOT NULL,
            h3_index_res3  TEXT,
            h3_index_res5  TEXT,
            h3_index_res7  TEXT,
            h3_index_res9  TEXT,
            updated_at     TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        """,
    ),
    (
        "index_fields_tenant",
        "CREATE INDEX IF NOT EXISTS idx_fields_tenant ON fields (tenant_id)",
    ),
]


@dataclass
class StepResult:
    """Result of a single deployment step."""
    name: str
    status: str  # 'success', 'failed', 'skipped'
    message: str = ""
    error: Optional[str] = None


@dataclass
class DeploymentResult:
    """Complete result of a schema deployment."""
    timestamp: str
    success: bool
    dry_run: bool
    steps: List[StepResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "success": self.success,
            "dry_run": self.dry_run,
            "steps": [
                {"name": s.name, "status": s.status, "message": s.message, "error": s.error}
                for s in self.steps
            ],
        }


async def deploy_schema(
    pool: Optional[AsyncConnectionPool],
    dry_run: bool = False,
) -> DeploymentResult:
    """
    Apply DDL_STATEMENTS in order, stopping at the first failure.

    Args:
        pool: Open pool (may be None when dry_run)
        dry_run: Record every step as skipped without touching the database

    Returns:
        DeploymentResult with one StepResult per statement
    """
    result = DeploymentResult(
        timestamp=datetime.now(timezone.utc).isoformat(),
        success=True,
        dry_run=dry_run,
    )

    if dry_run:
        for name, ddl in DDL_STATEMENTS:
            result.steps.append(StepResult(name=name, status="skipped", message=" ".join(ddl.split())))
        return result

    if pool is None:
        raise ValueError("deploy_schema requires a pool unless dry_run is set")

    async with pool.connection() as conn:
        for name, ddl in DDL_STATEMENTS:
            if not result.success:
                result.steps.append(StepResult(name=name, status="skipped", message="previous step failed"))
                continue
            try:
                async with conn.transaction():
                    await conn.execute(ddl)
            except psycopg.Error as e:
                logger.error("Schema step failed", extra={"step": name, "error": str(e)})
                result.success = False
                result.steps.append(StepResult(name=name, status="failed", error=str(e)))
                continue
            result.steps.append(StepResult(name=name, status="success", message="applied"))

    logger.info(
        "Schema deployment finished",
        extra={"success": result.success, "steps": len(result.steps)},
    )
    return result


__all__ = ["DDL_STATEMENTS", "StepResult", "DeploymentResult", "deploy_schema"]
