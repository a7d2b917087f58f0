"""
Structured Logging for DB Client.

This module provides:
- Structured JSON logging with consistent fields
- Statement execution logging with trace correlation
- Failed-query diagnostics
- Log level filtering and formatting options
"""

from __future__ import annotations

import json
import logging
import sys
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .config import LoggingConfig
    from .result import Diagnostic

# =============================================================================
# Log Record Types
# =============================================================================


@dataclass
class LogContext:
    """Context information attached to log records."""

    trace_id: str | None = None
    statement_id: str | None = None
    host: str | None = None
    database: str | None = None
    operation: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d = {k: v for k, v in asdict(self).items() if v is not None and k != "extra"}
        d.update(self.extra)
        return d

    def with_update(self, **kwargs) -> LogContext:
        """Create a new context with updated values."""
        return LogContext(
            trace_id=kwargs.get("trace_id", self.trace_id),
            statement_id=kwargs.get("statement_id", self.statement_id),
            host=kwargs.get("host", self.host),
            database=kwargs.get("database", self.database),
            operation=kwargs.get("operation", self.operation),
            extra={**self.extra, **kwargs.get("extra", {})},
        )


@dataclass
class QueryLog:
    """Log record for a statement execution."""

    statement_id: str
    operation: str
    sql: str

    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    duration_ms: float | None = None

    param_count: int = 0
    success: bool = True
    num_rows: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


# =============================================================================
# Structured Logger
# =============================================================================


class StructuredLogger:
    """
    Logger with structured JSON output and context tracking.

    Example:
        ```python
        logger = StructuredLogger("db_client")

        with logger.trace_context(host="db.internal", database="shop"):
            logger.log_query(QueryLog(...))
        ```
    """

    def __init__(
        self,
        name: str = "db_client",
        level: str = "INFO",
        json_output: bool = True,
        max_sql_length: int = 500,
        log_sql: bool = True,
        log_params: bool = True,
        redact_passwords: bool = True,
    ):
        self.name = name
        self.json_output = json_output
        self.max_sql_length = max_sql_length
        self.log_sql = log_sql
        self.log_params = log_params
        self.redact_passwords = redact_passwords

        self._logger = logging.getLogger(name)
        self._logger.setLevel(getattr(logging, level.upper()))

        self._context: LogContext = LogContext()

        if not self._logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            if json_output:
                handler.setFormatter(JSONFormatter())
            else:
                handler.setFormatter(TextFormatter())
            self._logger.addHandler(handler)

    @property
    def context(self) -> LogContext:
        return self._context

    def credential(self, password: str | None) -> str:
        """Render a password for log output, honoring ``redact_passwords``."""
        if self.redact_passwords:
            return redact_password(password)
        return password or "<not set>"

    @contextmanager
    def trace_context(
        self,
        trace_id: str | None = None,
        **kwargs,
    ) -> Iterator[str]:
        """
        Context manager for trace correlation.

        Args:
            trace_id: Trace ID (auto-generated if not provided)
            **kwargs: Additional context fields

        Yields:
            The trace ID
        """
        trace_id = trace_id or generate_trace_id()
        old_context = self._context

        try:
            self._context = old_context.with_update(trace_id=trace_id, **kwargs)
            yield trace_id
        finally:
            self._context = old_context

    @contextmanager
    def statement_context(self, statement_id: str, operation: str) -> Iterator[str]:
        """Context manager for a single statement execution."""
        old_context = self._context
        try:
            self._context = old_context.with_update(statement_id=statement_id, operation=operation)
            yield statement_id
        finally:
            self._context = old_context

    def _log(
        self,
        level: int,
        message: str,
        event_type: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        """Internal logging method."""
        if not self._logger.isEnabledFor(level):
            return

        record_data = {
            "message": message,
            **self._context.to_dict(),
        }

        if event_type:
            record_data["event_type"] = event_type

        if data:
            record_data.update(data)

        if self.json_output:
            self._logger.log(level, json.dumps(record_data, default=str))
        else:
            extras = " ".join(f"{k}={v}" for k, v in record_data.items() if k != "message")
            self._logger.log(level, f"{message} {extras}")

    def debug(self, message: str, **kwargs) -> None:
        self._log(logging.DEBUG, message, data=kwargs)

    def info(self, message: str, **kwargs) -> None:
        self._log(logging.INFO, message, data=kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._log(logging.WARNING, message, data=kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._log(logging.ERROR, message, data=kwargs)

    # Typed logging methods

    def log_query(self, query: QueryLog) -> None:
        """Log a statement execution."""
        level = logging.DEBUG if query.success else logging.WARNING
        message = f"Executed {query.operation}"
        if query.duration_ms is not None:
            message += f" ({query.duration_ms:.1f}ms)"
        data = query.to_dict()
        if self.log_sql:
            data["sql"] = truncate_for_log(query.sql, self.max_sql_length)
        else:
            data.pop("sql", None)
        self._log(level, message, event_type="query", data=data)

    def log_error(
        self,
        error: Exception,
        message: str | None = None,
        **kwargs,
    ) -> None:
        """Log an error with context."""
        error_data = {
            "error_type": type(error).__name__,
            "error_message": str(error),
            **kwargs,
        }

        # Extract additional info from DBClientError
        if hasattr(error, "code") and hasattr(error.code, "value"):
            error_data["error_code"] = str(error.code.value)
        if getattr(error, "driver_errno", None) is not None:
            error_data["driver_errno"] = error.driver_errno
        if hasattr(error, "context") and hasattr(error.context, "to_dict"):
            error_data["error_context"] = error.context.to_dict()

        self._log(
            logging.ERROR,
            message or f"Error: {error}",
            event_type="error",
            data=error_data,
        )

    def log_diagnostic(self, diagnostic: Diagnostic) -> None:
        """Log a failed query at the caller's location."""
        data = diagnostic.to_dict()
        data["sql"] = truncate_for_log(diagnostic.sql, self.max_sql_length)
        if not self.log_params:
            data["params"] = "<redacted>"
        self._log(
            logging.ERROR,
            f"Error in: {diagnostic.file}, on line: {diagnostic.line}",
            event_type="query_error",
            data=data,
        )


# =============================================================================
# Formatters
# =============================================================================


class JSONFormatter(logging.Formatter):
    """JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }

        # Parse JSON message if present
        try:
            message_data = json.loads(record.getMessage())
            if isinstance(message_data, dict):
                log_data.update(message_data)
            else:
                log_data["message"] = record.getMessage()
        except (json.JSONDecodeError, TypeError):
            log_data["message"] = record.getMessage()

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        color = self.LEVEL_COLORS.get(record.levelname, "")
        reset = self.RESET if color else ""

        return f"{timestamp} {color}{record.levelname:8}{reset} {record.getMessage()}"


# =============================================================================
# Utilities
# =============================================================================


def generate_trace_id() -> str:
    """Generate a unique trace ID."""
    return f"trace_{uuid.uuid4().hex[:16]}"


def generate_statement_id() -> str:
    """Generate a unique statement ID."""
    return f"stmt_{uuid.uuid4().hex[:12]}"


def redact_password(password: str | None) -> str:
    """Redact a password for safe logging."""
    if not password:
        return "<not set>"
    return "***"


def truncate_for_log(text: str, max_length: int = 200) -> str:
    """Truncate text for logging."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + f"... ({len(text)} chars total)"


# =============================================================================
# Timing Utilities
# =============================================================================


@dataclass
class Timer:
    """Simple timer for measuring durations."""

    start_time: float = field(default_factory=time.perf_counter)
    end_time: float | None = None

    def stop(self) -> float:
        """Stop the timer and return duration in milliseconds."""
        self.end_time = time.perf_counter()
        return self.elapsed_ms

    @property
    def elapsed_ms(self) -> float:
        """Elapsed time in milliseconds."""
        end = self.end_time or time.perf_counter()
        return (end - self.start_time) * 1000


@contextmanager
def timed() -> Iterator[Timer]:
    """Context manager for timing operations."""
    timer = Timer()
    try:
        yield timer
    finally:
        timer.stop()


# =============================================================================
# Global Logger
# =============================================================================

_default_logger: StructuredLogger | None = None


def get_logger(name: str = "db_client") -> StructuredLogger:
    """Get or create a structured logger."""
    global _default_logger
    if _default_logger is None or _default_logger.name != name:
        _default_logger = StructuredLogger(name)
    return _default_logger


def logger_from_config(config: LoggingConfig, name: str = "db_client") -> StructuredLogger:
    """Build a logger from a LoggingConfig section."""
    return StructuredLogger(
        name,
        level=config.level,
        json_output=config.format == "json",
        max_sql_length=config.max_sql_length,
        log_sql=config.log_sql,
        log_params=config.log_params,
        redact_passwords=config.redact_passwords,
    )


__all__ = [
    # Context
    "LogContext",
    # Log records
    "QueryLog",
    # Logger
    "StructuredLogger",
    # Formatters
    "JSONFormatter",
    "TextFormatter",
    # Timing
    "Timer",
    "timed",
    # Utilities
    "generate_trace_id",
    "generate_statement_id",
    "redact_password",
    "truncate_for_log",
    # Global
    "get_logger",
    "logger_from_config",
]
