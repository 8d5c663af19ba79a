#!/usr/bin/env python
# ============================================================================
# SCHEMA DEPLOYMENT SCRIPT
# ============================================================================
# PURPOSE: Deploy cluster worker tables to PostgreSQL
# USAGE:
#   python scripts/deploy_schema.py --dry-run    # Preview SQL
#   python scripts/deploy_schema.py              # Execute deployment
# ============================================================================

import sys
import os
import argparse
import asyncio

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import load_settings
from core.errors import ClusterWorkerError, ConfigurationError
from core.logging import configure_logging
from infrastructure import deploy_schema
from repositories import DatabasePool


async def run(dry_run: bool):
    if dry_run:
        return await deploy_schema(None, dry_run=True)

    settings = load_settings()
    print(f"Target: {settings.database.describe()}")
    async with DatabasePool(settings.database) as pool:
        return await deploy_schema(pool)


def main():
    parser = argparse.ArgumentParser(
        description="Deploy cluster worker schema to PostgreSQL",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/deploy_schema.py --dry-run     # Preview DDL without executing
  python scripts/deploy_schema.py               # Deploy schema

Environment Variables:
  DB_HOST               Database host (default: localhost)
  DB_PORT               Database port (default: 5432)
  DB_USER               Database user (default: postgres)
  DB_PASSWORD           Database password (required)
  DB_NAME               Database name (default: field_manager_db)
  DB_SSL_MODE           SSL mode (default: disable)
        """
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print DDL without executing"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    args = parser.parse_args()

    configure_logging("DEBUG" if args.verbose else "INFO")

    print("=" * 70)
    print("CLUSTER WORKER - Schema Deployment")
    print("=" * 70)
    print(f"\nMode: {'DRY RUN' if args.dry_run else 'EXECUTE'}\n")

    try:
        result = asyncio.run(run(args.dry_run))
    except ConfigurationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(2)
    except ClusterWorkerError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    print("\n[RESULTS]\n")
    for step in result.steps:
        marker = {"success": "OK  ", "failed": "FAIL", "skipped": "SKIP"}.get(step.status, "??  ")
        print(f"[{marker}] {step.name}")
        if args.dry_run or args.verbose:
            print(f"       {step.message}")
        if step.error:
            print(f"       Error: {step.error}")

    print("\n" + "=" * 70)
    if result.success:
        print("Deployment completed successfully!")
    else:
        print("Deployment failed!")
        sys.exit(1)
    print("=" * 70)


if __name__ == "__main__":
    main()
