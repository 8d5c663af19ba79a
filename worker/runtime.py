# ============================================================================
# WORKER RUNTIME
# ============================================================================
# STATUS: Core - Process lifecycle around ProcessJobsService
# PURPOSE: Run-once and daemon modes, signals, janitor, shutdown timeout
# ============================================================================
"""
Worker Runtime

Drives ProcessJobsService in one of two modes:

    run_once    one batch, then return its BatchResult (errors propagate)
    run_daemon  batch immediately, then every POLL_INTERVAL until stopped

Daemon tick:
    1. Janitor (at most once per JANITOR_INTERVAL): reclaim RUNNING jobs
       claimed more than STALE_AFTER ago
    2. Batch; errors are logged and the loop continues
    3. Log queue depth
    4. Wait POLL_INTERVAL or until the stop event is set

Shutdown:
    In either mode SIGINT/SIGTERM set the stop event. The in-flight batch
    requeues its unstarted claims and returns. In daemon mode, if it has
    not returned within SHUTDOWN_TIMEOUT the batch task is cancelled; the
    job it was working on stays RUNNING for the janitor. Whatever the
    cancelled task still raised or returned is logged.
"""

import asyncio
import signal
from datetime import timedelta
from typing import Optional

from psycopg_pool import AsyncConnectionPool
from redis.asyncio import Redis

from core.config import Settings, WorkerSettings
from core.errors import ClusterWorkerError
from core.logging import get_logger, ComponentType
from core.models import utcnow
from repositories import ClusterCacheRepository, ClusterJobRepository, ClusterRepository
from repositories.base import JobStore
from services import BatchResult, CalculateClustersService, ProcessJobsService

logger = get_logger(__name__, ComponentType.WORKER)


class WorkerRuntime:
    """Owns the stop event and the polling loop for one worker process."""

    def __init__(
        self,
        config: WorkerSettings,
        job_store: JobStore,
        process: ProcessJobsService,
        stop_event: Optional[asyncio.Event] = None,
    ):
        self.config = config
        self.job_store = job_store
        self.process = process
        self.stop_event = stop_event or asyncio.Event()
        self._last_janitor_run: Optional[float] = None
        self._signals_installed = False

    @classmethod
    def from_resources(
        cls,
        settings: Settings,
        pool: AsyncConnectionPool,
        redis_client: Redis,
    ) -> "WorkerRuntime":
        """
        Wire repositories and services over an open pool and Redis client.

        Args:
            settings: Loaded settings
            pool: Open PostgreSQL pool (owned by the caller)
            redis_client: Redis client (owned by the caller)

        Returns:
            WorkerRuntime ready to run
        """
        job_repo = ClusterJobRepository(pool)
        cluster_repo = ClusterRepository(pool)
        cache_repo = ClusterCacheRepository(redis_client, default_ttl=settings.cache.ttl)

        calculate = CalculateClustersService(cluster_repo, cache_repo)
        process = ProcessJobsService(job_repo, calculate)
        return cls(settings.worker, job_repo, process)

    @property
    def worker_id(self) -> str:
        return self.process.worker_id

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    def request_stop(self) -> None:
        """Ask the runtime to finish; safe to call more than once."""
        if not self.stop_event.is_set():
            logger.info("Shutdown signal received", extra={"worker_id": self.worker_id})
        self.stop_event.set()

    def install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self.request_stop)
            except NotImplementedError:
                # Windows doesn't support add_signal_handler
                signal.signal(sig, lambda s, f: self.request_stop())
        self._signals_installed = True

    def remove_signal_handlers(self) -> None:
        if not self._signals_installed:
            return
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.remove_signal_handler(sig)
            except NotImplementedError:
                signal.signal(sig, signal.SIG_DFL)
        self._signals_installed = False

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    async def run_once(self, handle_signals: bool = True) -> BatchResult:
        """
        Process a single batch.

        A signal during the batch stops further claims; unstarted claims
        are requeued before this returns.

        Args:
            handle_signals: Install SIGINT/SIGTERM handlers for the duration

        Raises:
            StoreError: Job store failure during the batch
        """
        logger.info(
            "Running single batch",
            extra={"worker_id": self.worker_id, "batch_size": self.config.batch_size},
        )
        if handle_signals:
            self.install_signal_handlers()
        try:
            return await self.process.execute(self.config.batch_size, self.stop_event)
        finally:
            if handle_signals:
                self.remove_signal_handlers()

    async def run_daemon(self, handle_signals: bool = True) -> None:
        """
        Poll until the stop event is set.

        Args:
            handle_signals: Install SIGINT/SIGTERM handlers for the duration
        """
        if handle_signals:
            self.install_signal_handlers()

        logger.info(
            "Worker daemon started",
            extra={
                "worker_id": self.worker_id,
                "batch_size": self.config.batch_size,
                "poll_interval": self.config.poll_interval,
            },
        )

        try:
            while not self.stop_event.is_set():
                await self.run_janitor_if_due()
                if self.stop_event.is_set():
                    break
                await self.run_tick()
                await self.log_queue_depth()

                try:
                    await asyncio.wait_for(self.stop_event.wait(), timeout=self.config.poll_interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            if handle_signals:
                self.remove_signal_handlers()

        logger.info("Worker daemon stopped", extra={"worker_id": self.worker_id})

    # ------------------------------------------------------------------
    # Tick pieces
    # ------------------------------------------------------------------

    async def run_tick(self) -> Optional[BatchResult]:
        """
        Run one batch, bounded by SHUTDOWN_TIMEOUT once a stop is requested.

        Returns:
            BatchResult, or None if the batch failed or was cancelled
        """
        batch = asyncio.create_task(
            self.process.execute(self.config.batch_size, self.stop_event)
        )
        stop_waiter = asyncio.create_task(self.stop_event.wait())

        try:
            await asyncio.wait({batch, stop_waiter}, return_when=asyncio.FIRST_COMPLETED)

            if not batch.done():
                logger.info(
                    "Waiting for in-flight batch to drain",
                    extra={"shutdown_timeout": self.config.shutdown_timeout},
                )
                await asyncio.wait({batch}, timeout=self.config.shutdown_timeout)

            if not batch.done():
                logger.warning(
                    "Batch did not drain before shutdown timeout; cancelling",
                    extra={"shutdown_timeout": self.config.shutdown_timeout},
                )
                batch.cancel()
                await asyncio.wait({batch})
        except asyncio.CancelledError:
            batch.cancel()
            raise
        finally:
            stop_waiter.cancel()

        if batch.cancelled():
            return None

        try:
            return batch.result()
        except ClusterWorkerError as e:
            logger.error("Batch failed", extra=e.log_fields(), exc_info=True)
        except Exception as e:
            logger.error(
                "Batch failed with unexpected error",
                extra={"error_type": type(e).__name__, "error": str(e)},
                exc_info=True,
            )
        return None

    async def run_janitor_if_due(self) -> Optional[int]:
        """
        Reclaim stale RUNNING jobs if JANITOR_INTERVAL has elapsed.

        Returns:
            Number of jobs reclaimed, or None if not run or failed
        """
        now = asyncio.get_running_loop().time()
        if (
            self._last_janitor_run is not None
            and now - self._last_janitor_run < self.config.janitor_interval
        ):
            return None
        self._last_janitor_run = now

        cutoff = utcnow() - timedelta(seconds=self.config.stale_after)
        try:
            reclaimed = await self.job_store.reclaim_stale(cutoff)
        except ClusterWorkerError as e:
            logger.error("Stale job reclaim failed", extra=e.log_fields())
            return None

        if reclaimed:
            logger.info("Reclaimed stale jobs", extra={"reclaimed": reclaimed})
        return reclaimed

    async def log_queue_depth(self) -> None:
        try:
            counts = await self.job_store.count_by_status()
        except ClusterWorkerError as e:
            logger.warning("Queue depth unavailable", extra=e.log_fields())
            return
        logger.info(
            "Queue depth",
            extra={status.value.lower(): count for status, count in counts.items()},
        )


__all__ = ["WorkerRuntime"]
