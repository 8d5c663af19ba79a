# ============================================================================
# WORKER MODULE
# ============================================================================
# STATUS: Core - Cluster worker process
# PURPOSE: Runtime loop and process entry point
# ============================================================================
"""
Worker Module

Background process that drains the cluster_jobs queue.

Usage:
    python -m worker.main
"""

from worker.runtime import WorkerRuntime

__all__ = ["WorkerRuntime"]
