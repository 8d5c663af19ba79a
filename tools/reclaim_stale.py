#!/usr/bin/env python3
# ============================================================================
# STALE JOB RECLAIM TOOL
# ============================================================================
# STATUS: Tool - Manual janitor run
# PURPOSE: Return long-RUNNING cluster jobs to PENDING
# ============================================================================
"""
Reclaim cluster jobs abandoned by crashed or killed workers.

A RUNNING job whose claim is older than --older-than goes back to PENDING
with its worker_id cleared; attempt_count is kept. The daemon does the
same every JANITOR_INTERVAL; this tool is for one-off maintenance.

Usage:
    python tools/reclaim_stale.py                    # STALE_AFTER from env
    python tools/reclaim_stale.py --older-than 30m
    python tools/reclaim_stale.py --status           # queue depth only
"""

import argparse
import asyncio
import os
import sys
from datetime import timedelta

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import load_settings, parse_duration
from core.errors import ClusterWorkerError, ConfigurationError
from core.logging import configure_logging
from core.models import utcnow
from repositories import ClusterJobRepository, DatabasePool


async def reclaim(args: argparse.Namespace) -> int:
    settings = load_settings()
    configure_logging(settings.logger.level)

    stale_after = (
        parse_duration(args.older_than, "--older-than")
        if args.older_than
        else settings.worker.stale_after
    )

    async with DatabasePool(settings.database) as pool:
        repo = ClusterJobRepository(pool)

        if not args.status:
            cutoff = utcnow() - timedelta(seconds=stale_after)
            reclaimed = await repo.reclaim_stale(cutoff)
            print(f"Reclaimed {reclaimed} job(s) claimed before {cutoff.isoformat()}")

        counts = await repo.count_by_status()
        print("\nQueue depth:")
        for status, count in counts.items():
            print(f"  {status.value:<10} {count}")

    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Return stale RUNNING cluster jobs to PENDING",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--older-than", "-o",
        help="Claim age considered stale, e.g. 600, 10m, 1h (default: STALE_AFTER)",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Only print queue depth",
    )
    args = parser.parse_args()

    try:
        sys.exit(asyncio.run(reclaim(args)))
    except ConfigurationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(2)
    except ClusterWorkerError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
