# ============================================================================
# WORKER MAIN ENTRY POINT
# ============================================================================
# STATUS: Core - Worker process entry point
# PURPOSE: Load settings, open resources, run the cluster worker
# ============================================================================
"""
Worker Main Entry Point

Starts a cluster worker process that:
1. Loads settings (.env first, real environment wins)
2. Opens the PostgreSQL pool, then the Redis client
3. Runs one batch (RUN_ONCE=true) or polls until SIGINT/SIGTERM
4. Closes Redis, then the pool

Usage:
    python -m worker.main
    cluster-worker            # console script

Exit codes:
    0  normal termination
    1  processing or dependency failure
    2  configuration error
"""

import asyncio
import sys
from typing import Optional

from core.config import Settings, load_settings
from core.errors import ClusterWorkerError, ConfigurationError
from core.logging import configure_logging, get_logger, ComponentType
from infrastructure.cache import close_redis, create_redis_client, ping_redis
from repositories.database import DatabasePool
from worker.runtime import WorkerRuntime
from __version__ import __version__, BUILD_DATE

logger = get_logger(__name__, ComponentType.WORKER)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


async def main(settings: Optional[Settings] = None) -> int:
    """
    Main entry point.

    Args:
        settings: Preloaded settings (loaded from the environment if None)

    Returns:
        Process exit code
    """
    if settings is None:
        try:
            settings = load_settings()
        except ConfigurationError as e:
            configure_logging("INFO")
            logger.error(f"Invalid configuration: {e}", extra=e.log_fields())
            return EXIT_CONFIG

    configure_logging(settings.logger.level, json_output=settings.logger.is_production)

    logger.info("=" * 60)
    logger.info(f"Cluster Worker Starting v{__version__} ({BUILD_DATE})")
    logger.info("=" * 60)
    logger.info(
        "Configuration loaded",
        extra={
            "database": settings.database.describe(),
            "cache": f"{settings.cache.host}:{settings.cache.port}",
            "batch_size": settings.worker.batch_size,
            "run_once": settings.worker.run_once,
            "environment": settings.logger.environment,
        },
    )

    try:
        async with DatabasePool(settings.database) as pool:
            redis_client = create_redis_client(settings.cache)
            try:
                await ping_redis(redis_client)
                runtime = WorkerRuntime.from_resources(settings, pool, redis_client)
                logger.info(f"Worker ID: {runtime.worker_id}")

                if settings.worker.run_once:
                    result = await runtime.run_once()
                    logger.info("Run-once batch complete", extra=result.to_dict())
                else:
                    await runtime.run_daemon()
            finally:
                await close_redis(redis_client)
    except ClusterWorkerError as e:
        logger.error(f"Worker failed: {e}", extra=e.log_fields(), exc_info=True)
        return EXIT_FAILURE

    logger.info("Cluster Worker stopped")
    return EXIT_OK


def run() -> None:
    """Synchronous entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
