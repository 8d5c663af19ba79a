#!/usr/bin/env python3
# ============================================================================
# CLI JOB SUBMISSION TOOL
# ============================================================================
# STATUS: Tool - Enqueue a cluster job for a tenant
# PURPOSE: Producer-side test of the cluster_jobs queue without the API
# ============================================================================
"""
Enqueue a cluster recomputation for a tenant.

Does exactly what the producer side of the field API does:
1. Skips if the tenant already has a PENDING job (unless --force)
2. Inserts a PENDING row into cluster_jobs
3. A worker claims it, computes clusters, marks it SUCCEEDED/FAILED

Usage:
    python tools/submit_job.py 0b8f6c4e-6d0e-4a55-9a47-2f7bb6e1e0a1
    python tools/submit_job.py <tenant-uuid> --force
    python tools/submit_job.py <tenant-uuid> --poll --timeout 300

Requires:
    DB_PASSWORD (and the other DB_* variables, or a .env file)
"""

import argparse
import asyncio
import os
import sys
import time
from typing import Optional
from uuid import UUID

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import load_settings
from core.errors import ClusterWorkerError, ConfigurationError
from core.logging import configure_logging
from core.models import ClusterJob
from repositories import ClusterJobRepository, DatabasePool
from services import EnqueueJobService


async def poll_status(
    repo: ClusterJobRepository,
    job_id: UUID,
    timeout: int = 120,
    interval: float = 5.0,
) -> Optional[ClusterJob]:
    """Poll the job row until it reaches a terminal state."""
    print(f"\nPolling for completion (job_id={job_id})...")
    print(f"  Timeout: {timeout}s\n")

    start = time.monotonic()
    while time.monotonic() - start < timeout:
        job = await repo.get(job_id)
        elapsed = int(time.monotonic() - start)
        if job is None:
            print(f"  [{elapsed:3d}s] Job not found")
            return None

        print(f"  [{elapsed:3d}s] status={job.status.value} attempts={job.attempt_count}")
        if job.is_terminal:
            print("\n--- FINAL RESULT ---")
            print(job.model_dump_json(indent=2))
            return job

        await asyncio.sleep(interval)

    print(f"\nTimeout after {timeout}s")
    return None


async def submit(args: argparse.Namespace) -> int:
    settings = load_settings()
    configure_logging(settings.logger.level)

    async with DatabasePool(settings.database) as pool:
        repo = ClusterJobRepository(pool)
        result = await EnqueueJobService(repo).execute(args.tenant_id, force=args.force)

        if not result.enqueued:
            print(f"Tenant {args.tenant_id} already has a PENDING job; nothing enqueued.")
            print("Use --force to enqueue anyway.")
            return 0

        job = result.job
        print("Submitted successfully!")
        print(f"  job_id:    {job.id}")
        print(f"  tenant_id: {job.tenant_id}")
        print(f"  status:    {job.status.value}")

        if args.poll:
            final = await poll_status(repo, job.id, timeout=args.timeout)
            return 0 if final is not None and final.status.value == "SUCCEEDED" else 1

    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Enqueue a cluster job for a tenant",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s 0b8f6c4e-6d0e-4a55-9a47-2f7bb6e1e0a1
  %(prog)s 0b8f6c4e-6d0e-4a55-9a47-2f7bb6e1e0a1 --force
  %(prog)s 0b8f6c4e-6d0e-4a55-9a47-2f7bb6e1e0a1 --poll --timeout 300
        """,
    )
    parser.add_argument("tenant_id", type=UUID, help="Tenant UUID")
    parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Enqueue even if a PENDING job already exists",
    )
    parser.add_argument(
        "--poll", "-p",
        action="store_true",
        help="Poll the job until it completes",
    )
    parser.add_argument(
        "--timeout", "-t",
        type=int,
        default=120,
        help="Poll timeout in seconds (default: 120)",
    )

    args = parser.parse_args()

    try:
        sys.exit(asyncio.run(submit(args)))
    except ConfigurationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(2)
    except ClusterWorkerError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
