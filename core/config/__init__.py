# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# STATUS: Core - Configuration
# PURPOSE: Centralized configuration management
# ============================================================================
"""
Configuration Module

Environment-driven settings for the cluster worker.
"""

from core.config.settings import (
    DatabaseConfig,
    CacheConfig,
    LoggerConfig,
    WorkerSettings,
    Settings,
    load_settings,
    parse_duration,
    parse_bool,
)

__all__ = [
    "DatabaseConfig",
    "CacheConfig",
    "LoggerConfig",
    "WorkerSettings",
    "Settings",
    "load_settings",
    "parse_duration",
    "parse_bool",
]
