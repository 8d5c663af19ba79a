# ============================================================================
# INFRASTRUCTURE MODULE
# ============================================================================
# STATUS: Infrastructure - Redis client and schema deployment
# PURPOSE: External system wiring that repositories build on
# ============================================================================
"""
Infrastructure module for the cluster worker.

Provides:
- create_redis_client / ping_redis / close_redis: Redis lifecycle
- deploy_schema: Idempotent DDL for cluster_jobs, cluster_artifacts, fields

Usage:
    from infrastructure import create_redis_client, deploy_schema

    client = create_redis_client(settings.cache)
    result = await deploy_schema(pool)
"""

from infrastructure.cache import (
    CACHE_ERRORS,
    close_redis,
    create_redis_client,
    ping_redis,
)
from infrastructure.schema import (
    DDL_STATEMENTS,
    DeploymentResult,
    StepResult,
    deploy_schema,
)

__all__ = [
    # Redis
    'CACHE_ERRORS',
    'create_redis_client',
    'ping_redis',
    'close_redis',
    # Schema
    'DDL_STATEMENTS',
    'DeploymentResult',
    'StepResult',
    'deploy_schema',
]
