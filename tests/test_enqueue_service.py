# ============================================================================
# ENQUEUE SERVICE TESTS
# ============================================================================
# STATUS: Tests - Producer side of the queue
# PURPOSE: Verify PENDING de-duplication and the force override
# ============================================================================
"""
Enqueue Job Service Tests

Run with:
    pytest tests/test_enqueue_service.py -v
"""

import asyncio
from uuid import uuid4

import pytest

from core.contracts import JobStatus
from core.errors import StoreError
from services import EnqueueJobService


class TestEnqueue:
    def test_new_tenant_is_enqueued(self, job_store):
        tenant = uuid4()

        result = asyncio.run(EnqueueJobService(job_store).execute(tenant))

        assert result.enqueued
        assert result.job.tenant_id == tenant
        assert result.job.status == JobStatus.PENDING
        assert result.job.attempt_count == 0
        assert len(job_store.jobs) == 1

    def test_pending_job_is_not_duplicated(self, job_store):
        tenant = uuid4()
        job_store.add(tenant_id=tenant)

        result = asyncio.run(EnqueueJobService(job_store).execute(tenant))

        assert not result.enqueued
        assert result.job is None
        assert len(job_store.jobs) == 1

    def test_running_job_does_not_block(self, job_store):
        tenant = uuid4()
        job_store.add(tenant_id=tenant, status=JobStatus.RUNNING, worker_id="w", attempt_count=1)

        result = asyncio.run(EnqueueJobService(job_store).execute(tenant))

        assert result.enqueued
        assert len(job_store.by_status(JobStatus.PENDING)) == 1

    def test_force(self, job_store):
        tenant = uuid4()
        job_store.add(tenant_id=tenant)

        result = asyncio.run(EnqueueJobService(job_store).execute(tenant, force=True))

        assert result.enqueued
        assert len(job_store.by_status(JobStatus.PENDING)) == 2
        assert job_store.count("has_pending_job") == 0

    def test_store_error_propagates(self, job_store):
        job_store.fail_on["enqueue"] = StoreError("insert failed", operation="enqueue")
        with pytest.raises(StoreError):
            asyncio.run(EnqueueJobService(job_store).execute(uuid4()))
