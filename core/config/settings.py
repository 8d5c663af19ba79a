# ============================================================================
# ENVIRONMENT SETTINGS
# ============================================================================
# STATUS: Core - Configuration loaded once at startup
# PURPOSE: Typed settings for the worker, PostgreSQL, Redis and logging
# ============================================================================
"""
Environment Settings

All configuration is read from environment variables (optionally seeded
from a ``.env`` file). Every setting has a default except ``DB_PASSWORD``.
Unparseable values raise ConfigurationError so the process fails fast.

Durations accept Go-style strings (``500ms``, ``5s``, ``1m30s``, ``2h``)
or a bare number of seconds.
"""

import os
import re
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import load_dotenv
from psycopg.conninfo import make_conninfo

from core.errors import ConfigurationError


_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_TRUE_VALUES = {"1", "t", "true", "yes", "y", "on"}
_FALSE_VALUES = {"0", "f", "false", "no", "n", "off"}


# ============================================================================
# PARSERS
# ============================================================================

def parse_duration(value: str, name: str = "duration") -> float:
    """
    Parse a duration into seconds.

    Args:
        value: ``"60"``, ``"60s"``, ``"1m30s"``, ``"250ms"``...
        name: Variable name for the error message

    Returns:
        Duration in seconds

    Raises:
        ConfigurationError: If the value cannot be parsed or is negative
    """
    text = str(value).strip().lower()
    if not text:
        raise ConfigurationError(f"{name} is empty", variable=name)

    try:
        seconds = float(text)
    except ValueError:
        pos = 0
        seconds = 0.0
        for match in _DURATION_PART.finditer(text):
            if match.start() != pos:
                break
            amount, unit = float(match.group(1)), match.group(2)
            seconds += amount * {"ms": 0.001, "s": 1, "m": 60, "h": 3600}[unit]
            pos = match.end()
        if pos != len(text) or pos == 0:
            raise ConfigurationError(
                f"{name}={value!r} is not a valid duration", variable=name
            )

    if seconds < 0:
        raise ConfigurationError(f"{name} must not be negative", variable=name)
    return seconds


def parse_bool(value: str, name: str = "flag") -> bool:
    """Parse a boolean flag; raises ConfigurationError on anything else."""
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name}={value!r} is not a valid boolean", variable=name)


def _env_str(env: Mapping[str, str], name: str, default: Optional[str]) -> Optional[str]:
    value = env.get(name)
    return default if value is None or value == "" else value


def _env_int(env: Mapping[str, str], name: str, default: int, minimum: Optional[int] = None) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{name}={raw!r} is not an integer", variable=name) from None
    if minimum is not None and value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}", variable=name)
    return value


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    return parse_bool(raw, name)


def _env_duration(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    return parse_duration(raw, name)


# ============================================================================
# SETTINGS
# ============================================================================

@dataclass(frozen=True)
class DatabaseConfig:
    """PostgreSQL connection settings."""
    password: str
    host: str = "localhost"
    port: int = 5432
    user: str = "postgres"
    name: str = "field_manager_db"
    sslmode: str = "disable"
    pool_min_size: int = 1
    pool_max_size: int = 4

    def conninfo(self) -> str:
        """Key/value connection string (values escaped by psycopg)."""
        return make_conninfo(
            host=self.host,
            port=self.port,
            user=self.user,
            password=self.password,
            dbname=self.name,
            sslmode=self.sslmode,
        )

    def describe(self) -> str:
        """Connection target without credentials, for logs."""
        return f"{self.user}@{self.host}:{self.port}/{self.name}?sslmode={self.sslmode}"

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "DatabaseConfig":
        password = env.get("DB_PASSWORD")
        if not password:
            raise ConfigurationError("DB_PASSWORD is required", variable="DB_PASSWORD")
        return cls(
            password=password,
            host=_env_str(env, "DB_HOST", "localhost"),
            port=_env_int(env, "DB_PORT", 5432, minimum=1),
            user=_env_str(env, "DB_USER", "postgres"),
            name=_env_str(env, "DB_NAME", "field_manager_db"),
            sslmode=_env_str(env, "DB_SSL_MODE", "disable"),
            pool_min_size=_env_int(env, "DB_POOL_MIN_SIZE", 1, minimum=0),
            pool_max_size=_env_int(env, "DB_POOL_MAX_SIZE", 4, minimum=1),
        )


@dataclass(frozen=True)
class CacheConfig:
    """Redis/Valkey connection settings."""
    host: str = "localhost"
    port: int = 6379
    password: Optional[str] = None
    database: int = 0
    max_retries: int = 3
    connect_timeout: float = 5.0
    read_timeout: float = 5.0
    write_timeout: float = 5.0
    pool_size: int = 10
    min_idle_conns: int = 5
    tls_enabled: bool = False
    ttl: float = 30 * 60.0

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "CacheConfig":
        return cls(
            host=_env_str(env, "CACHE_HOST", "localhost"),
            port=_env_int(env, "CACHE_PORT", 6379, minimum=1),
            password=_env_str(env, "CACHE_PASSWORD", None),
            database=_env_int(env, "CACHE_DATABASE", 0, minimum=0),
            max_retries=_env_int(env, "CACHE_MAX_RETRIES", 3, minimum=0),
            connect_timeout=_env_duration(env, "CACHE_CONNECT_TIMEOUT", 5.0),
            read_timeout=_env_duration(env, "CACHE_READ_TIMEOUT", 5.0),
            write_timeout=_env_duration(env, "CACHE_WRITE_TIMEOUT", 5.0),
            pool_size=_env_int(env, "CACHE_POOL_SIZE", 10, minimum=1),
            min_idle_conns=_env_int(env, "CACHE_MIN_IDLE_CONNS", 5, minimum=0),
            tls_enabled=_env_bool(env, "CACHE_TLS_ENABLED", False),
            ttl=_env_duration(env, "CACHE_TTL", 30 * 60.0),
        )


@dataclass(frozen=True)
class LoggerConfig:
    """Log level and output format."""
    level: str = "INFO"
    environment: str = "development"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "LoggerConfig":
        level = _env_str(env, "LOG_LEVEL", "INFO").upper()
        if level not in ("DEBUG", "INFO", "WARN", "WARNING", "ERROR"):
            raise ConfigurationError(f"LOG_LEVEL={level!r} is not supported", variable="LOG_LEVEL")
        environment = _env_str(env, "ENVIRONMENT", "development").lower()
        if environment not in ("development", "production"):
            raise ConfigurationError(
                f"ENVIRONMENT={environment!r} must be development or production",
                variable="ENVIRONMENT",
            )
        return cls(level=level, environment=environment)


@dataclass(frozen=True)
class WorkerSettings:
    """Batch loop, ticker and janitor settings."""
    batch_size: int = 10
    run_once: bool = False
    poll_interval: float = 60.0
    shutdown_timeout: float = 30.0
    janitor_interval: float = 600.0
    stale_after: float = 600.0

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "WorkerSettings":
        poll_interval = _env_duration(env, "POLL_INTERVAL", 60.0)
        if poll_interval <= 0:
            raise ConfigurationError("POLL_INTERVAL must be positive", variable="POLL_INTERVAL")
        return cls(
            batch_size=_env_int(env, "BATCH_SIZE", 10, minimum=1),
            run_once=_env_bool(env, "RUN_ONCE", False),
            poll_interval=poll_interval,
            shutdown_timeout=_env_duration(env, "SHUTDOWN_TIMEOUT", 30.0),
            janitor_interval=_env_duration(env, "JANITOR_INTERVAL", 600.0),
            stale_after=_env_duration(env, "STALE_AFTER", 600.0),
        )


@dataclass(frozen=True)
class Settings:
    """Complete process configuration."""
    database: DatabaseConfig
    cache: CacheConfig = field(default_factory=CacheConfig)
    logger: LoggerConfig = field(default_factory=LoggerConfig)
    worker: WorkerSettings = field(default_factory=WorkerSettings)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from a mapping (defaults to ``os.environ``)."""
        env = os.environ if env is None else env
        return cls(
            database=DatabaseConfig.from_env(env),
            cache=CacheConfig.from_env(env),
            logger=LoggerConfig.from_env(env),
            worker=WorkerSettings.from_env(env),
        )


def load_settings(dotenv_path: Optional[str] = None) -> Settings:
    """
    Load settings for the running process.

    A ``.env`` file is read first when present; variables already set in
    the environment win.
    """
    load_dotenv(dotenv_path=dotenv_path, override=False)
    return Settings.from_env()


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
