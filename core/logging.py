# ============================================================================
# STRUCTURED LOGGING
# ============================================================================
# STATUS: Core - Structured logging with context
# PURPOSE: Key/value logging indexable by tenant_id, job_id, worker_id
# ============================================================================
"""
Structured Logging

Provides structured logging for the cluster worker.

Features:
- Component-based loggers
- Contextual fields (job_id, tenant_id, worker_id)
- JSON output for log aggregation (ENVIRONMENT=production)
- Human-readable key=value output for development

Usage:
    from core.logging import get_logger, log_context

    logger = get_logger(__name__)

    with log_context(job_id="...", tenant_id="..."):
        logger.info("Processing job", extra={"attempt_count": 1})
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union
from enum import Enum


class ComponentType(str, Enum):
    """Component types for logging categorization."""
    WORKER = "worker"
    SERVICE = "service"
    REPOSITORY = "repository"
    CACHE = "cache"
    TOOL = "tool"


@dataclass
class LogContext:
    """
    Context for structured logging.

    Held in a ContextVar so each asyncio task sees its own fields.
    """
    job_id: Optional[str] = None
    tenant_id: Optional[str] = None
    worker_id: Optional[str] = None
    component: Optional[str] = None
    operation: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, excluding None values."""
        result = {}
        for key, value in asdict(self).items():
            if value is not None and key != "extra":
                result[key] = value
        if self.extra:
            result.update(self.extra)
        return result


_current_context: ContextVar[Optional[LogContext]] = ContextVar(
    "cluster_worker_log_context", default=None
)


def get_current_context() -> LogContext:
    """Get current logging context."""
    return _current_context.get() or LogContext()


@contextmanager
def log_context(**kwargs):
    """
    Context manager for adding logging context.

    Args:
        **kwargs: Context fields to add. Unknown keys go to ``extra``.

    Example:
        with log_context(job_id="...", tenant_id="..."):
            logger.info("Processing job")
    """
    parent = get_current_context()
    known = {"job_id", "tenant_id", "worker_id", "component", "operation"}

    def _pick(key):
        if key in kwargs and kwargs[key] is not None:
            return str(kwargs[key])
        return getattr(parent, key)

    extra = {**parent.extra, **kwargs.get("extra", {})}
    extra.update({k: v for k, v in kwargs.items() if k not in known and k != "extra"})

    new_context = LogContext(
        job_id=_pick("job_id"),
        tenant_id=_pick("tenant_id"),
        worker_id=_pick("worker_id"),
        component=_pick("component"),
        operation=_pick("operation"),
        extra=extra,
    )

    token = _current_context.set(new_context)
    try:
        yield new_context
    finally:
        _current_context.reset(token)


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs log records as JSON for easy parsing by log aggregators.
    """

    def __init__(
        self,
        include_timestamp: bool = True,
        include_level: bool = True,
        include_logger: bool = True,
        include_source: bool = True,
    ):
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_level = include_level
        self.include_logger = include_logger
        self.include_source = include_source

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {}

        if self.include_timestamp:
            log_data["timestamp"] = datetime.now(timezone.utc).isoformat()

        if self.include_level:
            log_data["level"] = record.levelname

        if self.include_logger:
            log_data["logger"] = record.name

        log_data["message"] = record.getMessage()

        # Context and call-site fields are flattened so they can be indexed
        fields = getattr(record, "fields", None)
        if fields:
            for key, value in fields.items():
                log_data.setdefault(key, value)
        else:
            log_data.update(get_current_context().to_dict())

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.include_source:
            log_data["source"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class HumanFormatter(logging.Formatter):
    """
    Human-readable formatter for development.

    Appends key=value pairs after the message.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for human reading."""
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        level = record.levelname.ljust(8)

        message = record.getMessage()

        fields = getattr(record, "fields", None) or get_current_context().to_dict()
        fields_str = ""
        if fields:
            fields_str = " " + " ".join(f"{k}={v}" for k, v in fields.items())

        result = f"{timestamp} {level} {record.name}: {message}{fields_str}"

        if record.exc_info:
            result += f"\n{self.formatException(record.exc_info)}"

        return result


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that includes context in log records.

    Call-site ``extra`` is merged over the current LogContext and stored
    on the record as ``fields``.
    """

    def process(self, msg, kwargs):
        """Process log record to include context."""
        fields = get_current_context().to_dict()

        component = self.extra.get("component") if self.extra else None
        if component is not None and "component" not in fields:
            fields["component"] = getattr(component, "value", component)

        fields.update(kwargs.get("extra") or {})
        kwargs["extra"] = {"fields": fields}

        return msg, kwargs


def get_logger(
    name: str,
    component: Optional[ComponentType] = None,
) -> ContextLogger:
    """
    Get a context-aware logger.

    Args:
        name: Logger name (usually ``__name__``)
        component: Optional component type for categorization

    Returns:
        ContextLogger instance
    """
    base_logger = logging.getLogger(name)
    return ContextLogger(base_logger, {"component": component})


def parse_level(level: Union[str, int]) -> int:
    """Resolve a level name (WARN accepted as WARNING) to its number."""
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name == "WARN":
        name = "WARNING"
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.INFO


def configure_logging(
    level: Union[str, int] = "INFO",
    json_output: bool = False,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARN/WARNING, ERROR)
        json_output: Use JSON format (for production)
    """
    formatter: logging.Formatter
    if json_output:
        formatter = StructuredFormatter()
    else:
        formatter = HumanFormatter()

    root = logging.getLogger()
    root.setLevel(parse_level(level))

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root.addHandler(handler)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ComponentType",
    "LogContext",
    "StructuredFormatter",
    "HumanFormatter",
    "ContextLogger",
    "get_logger",
    "parse_level",
    "configure_logging",
    "log_context",
    "get_current_context",
]
