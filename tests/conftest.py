# ============================================================================
# TEST FIXTURES
# ============================================================================
# STATUS: Tests - Shared in-memory stores and fixtures
# PURPOSE: Exercise services and the runtime without PostgreSQL or Redis
# ============================================================================
"""
In-memory implementations of JobStore, ClusterStore and ClusterCache.

They enforce the same transition rules and raise the same errors as the
PostgreSQL/Redis repositories. Failures can be injected per operation:

    job_store.fail_on["mark_succeeded"] = StoreError("boom")
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple
from uuid import UUID, uuid4

import pytest

from core.contracts import JobStatus, truncate_message
from core.errors import InvalidStateError, JobNotFoundError
from core.models import ClusterArtifact, ClusterJob, FieldRecord
from repositories.base import ClusterCache, ClusterStore, JobStore
from repositories.cluster_repo import fingerprint_rows
from services import CalculateClustersService, ProcessJobsService

BASE_TIME = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class _FailureInjection:
    """Raise a queued exception the next time an operation runs."""

    def __init__(self):
        self.fail_on: Dict[str, BaseException] = {}
        self.calls: List[Tuple[str, tuple]] = []

    def _enter(self, operation: str, *args) -> None:
        self.calls.append((operation, args))
        error = self.fail_on.pop(operation, None)
        if error is not None:
            raise error

    def count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)


class InMemoryJobStore(_FailureInjection, JobStore):
    """Dict-backed JobStore. Claims are atomic: no await between read and write."""

    def __init__(self):
        super().__init__()
        self.jobs: Dict[UUID, ClusterJob] = {}
        self._tick = 0

    # helpers --------------------------------------------------------------

    def add(
        self,
        tenant_id: Optional[UUID] = None,
        status: JobStatus = JobStatus.PENDING,
        created_at: Optional[datetime] = None,
        **fields,
    ) -> ClusterJob:
        self._tick += 1
        job = ClusterJob(
            tenant_id=tenant_id or uuid4(),
            status=status,
            created_at=created_at or BASE_TIME + timedelta(seconds=self._tick),
            **fields,
        )
        self.jobs[job.id] = job
        return job

    def status_of(self, job: ClusterJob) -> JobStatus:
        return self.jobs[job.id].status

    def by_status(self, status: JobStatus) -> List[ClusterJob]:
        return [j for j in self.jobs.values() if j.status == status]

    def _owned_running(self, operation: str, job_id: UUID, worker_id: Optional[str]) -> ClusterJob:
        job = self.jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id, operation=operation)
        if job.status != JobStatus.RUNNING or (
            worker_id is not None and job.worker_id != worker_id
        ):
            raise InvalidStateError(
                f"Job {job_id} is {job.status.value}",
                job_id=job_id,
                current_status=job.status.value,
                operation=operation,
            )
        return job

    # JobStore -------------------------------------------------------------

    async def claim_batch(self, worker_id: str, limit: int) -> List[ClusterJob]:
        self._enter("claim_batch", worker_id, limit)
        await asyncio.sleep(0)
        if limit <= 0:
            return []
        pending = sorted(
            self.by_status(JobStatus.PENDING),
            key=lambda j: (j.created_at, str(j.id)),
        )[:limit]
        now = datetime.now(timezone.utc)
        for job in pending:
            job.mark_claimed(worker_id, now)
        return [job.model_copy() for job in pending]

    async def mark_succeeded(self, job_id: UUID, worker_id: Optional[str] = None) -> None:
        self._enter("mark_succeeded", job_id, worker_id)
        await asyncio.sleep(0)
        self._owned_running("mark_succeeded", job_id, worker_id).mark_succeeded()

    async def mark_failed(self, job_id: UUID, message: str, worker_id: Optional[str] = None) -> None:
        self._enter("mark_failed", job_id, message, worker_id)
        await asyncio.sleep(0)
        job = self._owned_running("mark_failed", job_id, worker_id)
        job.mark_failed(truncate_message(message))

    async def requeue(self, job_id: UUID, worker_id: Optional[str] = None) -> None:
        self._enter("requeue", job_id, worker_id)
        self._owned_running("requeue", job_id, worker_id).requeue()

    async def reclaim_stale(self, before: datetime) -> int:
        self._enter("reclaim_stale", before)
        stale = [
            j for j in self.by_status(JobStatus.RUNNING)
            if j.claimed_at is not None and j.claimed_at < before
        ]
        for job in stale:
            job.requeue()
        return len(stale)

    async def get(self, job_id: UUID) -> Optional[ClusterJob]:
        self._enter("get", job_id)
        job = self.jobs.get(job_id)
        return job.model_copy() if job else None

    async def enqueue(self, tenant_id: UUID) -> ClusterJob:
        self._enter("enqueue", tenant_id)
        return self.add(tenant_id).model_copy()

    async def has_pending_job(self, tenant_id: UUID) -> bool:
        self._enter("has_pending_job", tenant_id)
        return any(j.tenant_id == tenant_id for j in self.by_status(JobStatus.PENDING))

    async def count_by_status(self) -> Dict[JobStatus, int]:
        self._enter("count_by_status")
        return {status: len(self.by_status(status)) for status in JobStatus}


class InMemoryClusterStore(_FailureInjection, ClusterStore):
    """Dict-backed ClusterStore over field records and artifacts."""

    def __init__(self):
        super().__init__()
        self.fields: Dict[UUID, List[FieldRecord]] = {}
        self.artifacts: Dict[UUID, ClusterArtifact] = {}
        self.upserts = 0

    def add_field(
        self,
        tenant_id: UUID,
        lat: float,
        lng: float,
        cells: Optional[Dict[int, str]] = None,
        updated_at: Optional[datetime] = None,
    ) -> FieldRecord:
        cells = cells or {3: "83a", 5: "85a", 7: "87a", 9: "89a"}
        record = FieldRecord(
            field_id=uuid4(),
            tenant_id=tenant_id,
            center_lat=lat,
            center_lng=lng,
            h3_index_res3=cells.get(3),
            h3_index_res5=cells.get(5),
            h3_index_res7=cells.get(7),
            h3_index_res9=cells.get(9),
            updated_at=updated_at or BASE_TIME,
        )
        self.fields.setdefault(tenant_id, []).append(record)
        return record

    def touch(self, tenant_id: UUID, when: datetime) -> None:
        """Bump updated_at of the tenant's first field."""
        records = self.fields[tenant_id]
        records[0] = records[0].model_copy(update={"updated_at": when})

    async def get(self, tenant_id: UUID) -> Optional[ClusterArtifact]:
        self._enter("get", tenant_id)
        return self.artifacts.get(tenant_id)

    async def upsert(self, artifact: ClusterArtifact) -> None:
        self._enter("upsert", artifact.tenant_id)
        await asyncio.sleep(0)
        self.artifacts[artifact.tenant_id] = artifact
        self.upserts += 1

    async def compute_fingerprint(self, tenant_id: UUID) -> str:
        self._enter("compute_fingerprint", tenant_id)
        records = sorted(self.fields.get(tenant_id, []), key=lambda r: r.field_id)
        return fingerprint_rows((r.field_id, r.updated_at) for r in records)

    async def list_inputs(self, tenant_id: UUID) -> List[FieldRecord]:
        self._enter("list_inputs", tenant_id)
        return sorted(self.fields.get(tenant_id, []), key=lambda r: r.field_id)


class InMemoryClusterCache(_FailureInjection, ClusterCache):
    """
    Dict-backed ClusterCache storing JSON like the Redis repository.

    With ``unavailable`` set every call behaves like a swallowed transport
    error: reads miss, writes are dropped.
    """

    def __init__(self):
        super().__init__()
        self.entries: Dict[UUID, Tuple[str, Optional[float]]] = {}
        self.unavailable = False

    async def get(self, tenant_id: UUID) -> Optional[ClusterArtifact]:
        self._enter("get", tenant_id)
        if self.unavailable or tenant_id not in self.entries:
            return None
        return ClusterArtifact.model_validate_json(self.entries[tenant_id][0])

    async def put(self, artifact: ClusterArtifact, ttl: Optional[float] = None) -> None:
        self._enter("put", artifact.tenant_id, ttl)
        if not self.unavailable:
            self.entries[artifact.tenant_id] = (artifact.model_dump_json(), ttl)

    async def invalidate(self, tenant_id: UUID) -> None:
        self._enter("invalidate", tenant_id)
        if not self.unavailable:
            self.entries.pop(tenant_id, None)

    def cached(self, tenant_id: UUID) -> Optional[ClusterArtifact]:
        entry = self.entries.get(tenant_id)
        return ClusterArtifact.model_validate_json(entry[0]) if entry else None


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def job_store() -> InMemoryJobStore:
    return InMemoryJobStore()


@pytest.fixture
def cluster_store() -> InMemoryClusterStore:
    return InMemoryClusterStore()


@pytest.fixture
def cache() -> InMemoryClusterCache:
    return InMemoryClusterCache()


@pytest.fixture
def calculate(cluster_store, cache) -> CalculateClustersService:
    return CalculateClustersService(cluster_store, cache)


@pytest.fixture
def make_process(job_store, calculate) -> Callable[..., ProcessJobsService]:
    """Factory so a test can build several workers over the same stores."""
    def _make(worker_id: str = "worker-a", calculate_service=None) -> ProcessJobsService:
        return ProcessJobsService(job_store, calculate_service or calculate, worker_id=worker_id)
    return _make


@pytest.fixture
def tenant_with_fields(cluster_store) -> UUID:
    """A tenant with three fields: two sharing a res9 cell, one apart."""
    tenant_id = uuid4()
    cluster_store.add_field(tenant_id, 35.0, 139.0, {3: "83aa", 5: "85aa", 7: "87aa", 9: "89aa"})
    cluster_store.add_field(tenant_id, 35.2, 139.2, {3: "83aa", 5: "85aa", 7: "87aa", 9: "89aa"})
    cluster_store.add_field(tenant_id, 36.0, 140.0, {3: "83aa", 5: "85aa", 7: "87bb", 9: "89bb"})
    return tenant_id
