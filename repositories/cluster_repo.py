# ============================================================================
# CLUSTER REPOSITORY
# ============================================================================
# STATUS: Core - Authoritative cluster artifacts and their field inputs
# PURPOSE: Database access for cluster_artifacts and fields tables
# ============================================================================
"""
Cluster Repository

PostgreSQL implementation of ClusterStore.

cluster_artifacts holds at most one row per tenant. The fingerprint of a
tenant's inputs is a SHA-256 digest over ``id|updated_at`` of every field
row, ordered by id; any insert, delete or update of a field changes it.
"""

import hashlib
from typing import List, Optional
from uuid import UUID

from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Json
from psycopg_pool import AsyncConnectionPool

from core.logging import get_logger, ComponentType
from core.models import ClusterArtifact, FieldRecord
from repositories.base import ClusterStore
from repositories.database import TABLE_CLUSTER_ARTIFACTS, TABLE_FIELDS, store_errors

logger = get_logger(__name__, ComponentType.REPOSITORY)


def fingerprint_rows(rows) -> str:
    """
    Digest ``(id, updated_at)`` pairs already ordered by id.

    An empty input still yields a stable digest.
    """
    digest = hashlib.sha256()
    for field_id, updated_at in rows:
        digest.update(f"{field_id}|{updated_at.isoformat()}\n".encode("utf-8"))
    return digest.hexdigest()


class ClusterRepository(ClusterStore):
    """Repository for ClusterArtifact entities and their FieldRecord inputs."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    async def get(self, tenant_id: UUID) -> Optional[ClusterArtifact]:
        """
        Get the stored artifact for a tenant.

        Args:
            tenant_id: Tenant identifier

        Returns:
            ClusterArtifact or None if never computed
        """
        with store_errors("get_artifact", "cluster_artifacts", tenant_id=tenant_id):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("""
                    SELECT tenant_id, payload, computed_at, source_fingerprint
                    FROM {} WHERE tenant_id = %s
                    """).format(TABLE_CLUSTER_ARTIFACTS),
                    (tenant_id,),
                )
                row = await result.fetchone()

        if row is None:
            return None
        return ClusterArtifact(
            tenant_id=row["tenant_id"],
            payload=row["payload"],
            computed_at=row["computed_at"],
            source_fingerprint=row["source_fingerprint"],
        )

    async def upsert(self, artifact: ClusterArtifact) -> None:
        """
        Insert or replace the tenant's artifact.

        Runs in one transaction; readers see the old row or the new one.
        """
        with store_errors("upsert_artifact", "cluster_artifacts", tenant_id=artifact.tenant_id):
            async with self.pool.connection() as conn:
                async with conn.transaction():
                    await conn.execute(
                        sql.SQL("""
                        INSERT INTO {} (tenant_id, payload, computed_at, source_fingerprint)
                        VALUES (%(tenant_id)s, %(payload)s, %(computed_at)s, %(source_fingerprint)s)
                        ON CONFLICT (tenant_id) DO UPDATE SET
                            payload = EXCLUDED.payload,
                            computed_at = EXCLUDED.computed_at,
                            source_fingerprint = EXCLUDED.source_fingerprint
                        """).format(TABLE_CLUSTER_ARTIFACTS),
                        {
                            "tenant_id": artifact.tenant_id,
                            "payload": Json(artifact.payload),
                            "computed_at": artifact.computed_at,
                            "source_fingerprint": artifact.source_fingerprint,
                        },
                    )

        logger.info(
            "Stored cluster artifact",
            extra={
                "tenant_id": str(artifact.tenant_id),
                "fingerprint": artifact.source_fingerprint[:12],
            },
        )

    async def compute_fingerprint(self, tenant_id: UUID) -> str:
        with store_errors("compute_fingerprint", "fields", tenant_id=tenant_id):
            async with self.pool.connection() as conn:
                result = await conn.execute(
                    sql.SQL("""
                    SELECT id, updated_at FROM {}
                    WHERE tenant_id = %s
                    ORDER BY id
                    """).format(TABLE_FIELDS),
                    (tenant_id,),
                )
                rows = await result.fetchall()

        return fingerprint_rows(rows)

    async def list_inputs(self, tenant_id: UUID) -> List[FieldRecord]:
        """
        Load the tenant's field records, ordered by id.

        Returns:
            FieldRecord list (empty if the tenant has no fields)
        """
        with store_errors("list_inputs", "fields", tenant_id=tenant_id):
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                result = await conn.execute(
                    sql.SQL("""
                    SELECT id AS field_id, tenant_id, center_lat, center_lng,
                           h3_index_res3, h3_index_res5, h3_index_res7, h3_index_res9,
                           updated_at
                    FROM {}
                    WHERE tenant_id = %s
                    ORDER BY id
                    """).format(TABLE_FIELDS),
                    (tenant_id,),
                )
                rows = await result.fetchall()

        return [FieldRecord(**row) for row in rows]


__all__ = ["ClusterRepository", "fingerprint_rows"]
