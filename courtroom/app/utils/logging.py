"""
Structured logging system for the court session service.

This module provides:
- Structured JSON logging with correlation IDs
- Rich console output for development
- Performance context tracking for store and service operations
- Route entry/exit and business event helpers used by the API layer
"""

import json
import logging
import sys
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from courtroom.config.settings import get_settings


# Request-scoped state; each asyncio task sees its own copy
_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
_performance_context: ContextVar[Optional[Dict[str, Any]]] = ContextVar(
    "performance_context", default=None
)

# Rich console for enhanced output
console = Console(stderr=True)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class CorrelationIDProcessor:
    """Structlog processor to add correlation IDs to log records."""

    def __call__(self, logger, method_name, event_dict):
        correlation_id = get_correlation_id()
        if correlation_id and "correlation_id" not in event_dict:
            event_dict["correlation_id"] = correlation_id
        return event_dict


class TimestampProcessor:
    """Structlog processor to add ISO timestamps to log records."""

    def __call__(self, logger, method_name, event_dict):
        event_dict.setdefault("timestamp", _utc_timestamp())
        return event_dict


class PerformanceProcessor:
    """Structlog processor to attach the active performance context."""

    def __call__(self, logger, method_name, event_dict):
        perf_context = _performance_context.get()
        if perf_context:
            for key, value in perf_context.items():
                event_dict.setdefault(key, value)
        return event_dict


class CourtroomLogFormatter:
    """
    Final structlog renderer.

    Produces either a JSON line or a rich-markup console line depending on
    ``use_json``.
    """

    LEVEL_COLORS = {
        "DEBUG": "dim white",
        "INFO": "blue",
        "WARNING": "yellow",
        "ERROR": "red",
        "CRITICAL": "bold red",
    }

    STANDARD_FIELDS = {"timestamp", "level", "logger", "correlation_id", "event"}

    def __init__(self, use_json: bool = False):
        self.use_json = use_json

    def __call__(self, _, __, event_dict):
        if self.use_json:
            return json.dumps(event_dict, default=str)
        return self._format_console_output(event_dict)

    def _format_console_output(self, event_dict: Dict[str, Any]) -> str:
        timestamp = event_dict.get("timestamp", "")
        level = str(event_dict.get("level", "INFO")).upper()
        logger_name = event_dict.get("logger", "")
        correlation_id = event_dict.get("correlation_id", "")
        event = escape(str(event_dict.get("event", "")))

        parts = []
        if timestamp:
            parts.append(f"[dim]{timestamp[:19]}[/dim]")

        level_color = self.LEVEL_COLORS.get(level, "white")
        parts.append(f"[{level_color}]{level:8}[/{level_color}]")

        if logger_name:
            parts.append(f"[cyan]{escape(str(logger_name))}[/cyan]")

        if correlation_id:
            parts.append(f"[magenta]{str(correlation_id)[:8]}[/magenta]")

        parts.append(f"[white]{event}[/white]")

        context_fields = {
            k: v for k, v in event_dict.items()
            if k not in self.STANDARD_FIELDS
        }
        if context_fields:
            context_str = " ".join(f"{k}={v}" for k, v in context_fields.items())
            parts.append(f"[dim]{escape(context_str)}[/dim]")

        return " ".join(parts)


def _add_logger_name(logger, method_name, event_dict):
    name = getattr(logger, "name", None)
    if name and "logger" not in event_dict:
        event_dict["logger"] = name
    return event_dict


def setup_logging(
    level: str = "INFO",
    use_json: bool = False,
    log_file: Optional[Path] = None,
    enable_correlation_ids: bool = True
) -> None:
    """
    Setup structured logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        use_json: Output structured JSON logs
        log_file: Optional file path for log output
        enable_correlation_ids: Enable correlation ID tracking
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        _add_logger_name,
        TimestampProcessor(),
    ]

    if enable_correlation_ids:
        processors.append(CorrelationIDProcessor())

    processors.append(PerformanceProcessor())
    processors.append(structlog.processors.format_exc_info)
    processors.append(CourtroomLogFormatter(use_json=use_json))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    if not use_json:
        rich_handler = RichHandler(
            console=console,
            show_time=False,
            show_level=False,
            show_path=False,
            rich_tracebacks=True,
            markup=True
        )
        rich_handler.setLevel(numeric_level)
        root_logger.addHandler(rich_handler)
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(numeric_level)
        root_logger.addHandler(handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter('%(message)s'))
        root_logger.addHandler(file_handler)


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog bound logger
    """
    return structlog.get_logger(name)


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """
    Set correlation ID for the current request context.

    Args:
        correlation_id: Optional correlation ID, generates UUID if None

    Returns:
        The correlation ID that was set
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())

    _correlation_id.set(correlation_id)
    return correlation_id


def get_correlation_id() -> Optional[str]:
    """Get the correlation ID for the current request context."""
    return _correlation_id.get()


def clear_correlation_id() -> None:
    """Clear the correlation ID for the current request context."""
    _correlation_id.set(None)


@contextmanager
def performance_context(
    operation: str,
    **context: Any
):
    """
    Context manager for performance monitoring.

    Args:
        operation: Name of the operation being measured
        **context: Additional context to include in logs

    Usage:
        with performance_context("session_start", session_id="64f0..."):
            ...
    """
    start_time = time.time()
    logger = get_logger("performance")

    perf_context = {
        "operation": operation,
        **context
    }
    token = _performance_context.set(perf_context)

    logger.debug("Operation started", **perf_context)

    try:
        yield perf_context
    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            "Operation failed",
            operation=operation,
            duration=duration,
            error=str(e),
            **context
        )
        raise
    else:
        duration = time.time() - start_time
        logger.info(
            "Operation completed",
            operation=operation,
            duration=duration,
            **context
        )
    finally:
        _performance_context.reset(token)


class DatabaseLogger:
    """Specialized logger for database operations."""

    def __init__(self):
        self.logger = get_logger("database")

    def query_executed(
        self,
        database_type: str,
        operation: str,
        collection: Optional[str] = None,
        duration: Optional[float] = None,
        result_count: Optional[int] = None
    ):
        """Log database query execution."""
        self.logger.debug(
            "Database query executed",
            database_type=database_type,
            operation=operation,
            collection=collection,
            duration=duration,
            result_count=result_count,
            event_type="query_executed"
        )

    def connection_established(self, database_type: str, database_name: str):
        """Log database connection establishment."""
        self.logger.info(
            "Database connection established",
            database_type=database_type,
            database_name=database_name,
            event_type="connection_established"
        )

    def connection_failed(self, database_type: str, error: str):
        """Log database connection failures."""
        self.logger.error(
            "Database connection failed",
            database_type=database_type,
            error=error,
            event_type="connection_failed"
        )


database_logger = DatabaseLogger()


def initialize_logging_from_settings() -> None:
    """Initialize logging using application settings."""
    settings = get_settings()

    log_file = Path(settings.logging.log_file_path) if settings.logging.log_file_path else None
    setup_logging(
        level=settings.logging.level,
        use_json=settings.logging.format == "json",
        log_file=log_file,
        enable_correlation_ids=settings.logging.enable_correlation_ids
    )

    logger = get_logger(__name__)
    logger.info(
        "Logging system initialized",
        level=settings.logging.level,
        format=settings.logging.format,
        correlation_ids_enabled=settings.logging.enable_correlation_ids
    )


def log_business_event(
    event_type: str,
    request: Optional[Any] = None,
    user_id: Optional[str] = None,
    session_id: Optional[str] = None,
    case_id: Optional[str] = None,
    **context: Any
) -> None:
    """
    Log business events with structured context.

    Used for audit-style records of court activity such as a session being
    created, started or ended, a docket entry being activated, a participant
    joining or a chat message being posted.

    Args:
        event_type: Type of business event (e.g., "session_started")
        request: Optional FastAPI Request object for automatic context extraction
        user_id: Optional user identifier associated with the event
        session_id: Optional court session identifier
        case_id: Optional court case identifier
        **context: Additional context data for the event

    Usage:
        log_business_event("session_ended", request, session_id=sid, unresolved_count=2)
    """
    business_logger = get_logger("business")

    event_context: Dict[str, Any] = {"event_type": event_type}

    if request is not None:
        url = getattr(request, "url", None)
        if url is not None:
            event_context["request_path"] = str(url.path)
            event_context["request_method"] = getattr(request, "method", "UNKNOWN")

        state = getattr(request, "state", None)
        if state is not None:
            if not user_id:
                user_id = getattr(state, "user_id", None)
            state_correlation_id = getattr(state, "correlation_id", None)
            if state_correlation_id:
                event_context["correlation_id"] = state_correlation_id

    if user_id:
        event_context["user_id"] = user_id
    if session_id:
        event_context["session_id"] = session_id
    if case_id:
        event_context["case_id"] = case_id

    event_context.update(context)

    business_logger.info(f"Business event: {event_type}", **event_context)


def log_route_entry(
    request: Any,
    endpoint_name: Optional[str] = None,
    **context: Any
) -> None:
    """
    Log API route entry with request context.

    Args:
        request: FastAPI Request object
        endpoint_name: Optional endpoint name override
        **context: Additional context for the log entry
    """
    route_logger = get_logger("routes")

    route_context: Dict[str, Any] = {"route_event": "entry"}

    url = getattr(request, "url", None)
    if url is not None:
        route_context["path"] = str(url.path)
        if url.query:
            route_context["query_params"] = str(url.query)

    if hasattr(request, "method"):
        route_context["method"] = request.method

    client = getattr(request, "client", None)
    if client is not None:
        route_context["client_ip"] = getattr(client, "host", "unknown")

    if endpoint_name:
        route_context["endpoint"] = endpoint_name

    route_context.update(context)

    route_logger.info("Route handler entered", **route_context)


def log_route_exit(
    request: Any,
    result: Any = None,
    status_code: Optional[int] = None,
    endpoint_name: Optional[str] = None,
    **context: Any
) -> None:
    """
    Log API route exit with response context.

    Args:
        request: FastAPI Request object
        result: Optional response result
        status_code: HTTP status code
        endpoint_name: Optional endpoint name override
        **context: Additional context for the log entry
    """
    route_logger = get_logger("routes")

    route_context: Dict[str, Any] = {"route_event": "exit"}

    url = getattr(request, "url", None)
    if url is not None:
        route_context["path"] = str(url.path)

    if hasattr(request, "method"):
        route_context["method"] = request.method

    if endpoint_name:
        route_context["endpoint"] = endpoint_name

    if status_code:
        route_context["status_code"] = status_code

    if result is not None:
        route_context["result_type"] = type(result).__name__
        if isinstance(result, (list, tuple, dict)):
            route_context["result_count"] = len(result)

    route_context.update(context)

    route_logger.info("Route handler completed", **route_context)
