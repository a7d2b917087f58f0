"""
Error taxonomy for db-client.

This module provides a hierarchical exception system with:
- Error codes for programmatic handling
- Structured context for debugging
- Driver error mapping
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for the database client."""

    # Driver errors (1xxx)
    DRIVER_UNAVAILABLE = "ERR_1000"

    # Connection errors (2xxx)
    CONNECTION_ERROR = "ERR_2000"
    SESSION_INIT_ERROR = "ERR_2001"

    # Statement errors (3xxx)
    QUERY_ERROR = "ERR_3000"
    NO_STATEMENT_PREPARED = "ERR_3001"
    PARAMETER_ERROR = "ERR_3002"

    # Configuration errors (6xxx)
    CONFIG_ERROR = "ERR_6000"
    INVALID_CONFIG = "ERR_6001"

    # Internal errors (9xxx)
    INTERNAL_ERROR = "ERR_9000"


@dataclass
class ErrorContext:
    """Structured context for error debugging."""

    host: str | None = None
    database: str | None = None
    operation: str | None = None
    sql: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "host": self.host,
            "database": self.database,
            "operation": self.operation,
            "sql": self.sql,
            **self.extra,
        }


class DBClientError(Exception):
    """
    Base exception for all database client errors.

    Attributes:
        code: Standardized error code for programmatic handling
        message: Human-readable error message
        context: Structured debugging context
        cause: Original exception that caused this error
        driver_errno: MySQL error number reported by the driver, if any
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
        driver_errno: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.context = context or ErrorContext()
        self.cause = cause
        self.driver_errno = driver_errno

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code.value,
            "message": self.message,
            "driver_errno": self.driver_errno,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
        }


# =============================================================================
# Driver & Connection Errors
# =============================================================================


class DriverUnavailableError(DBClientError):
    """The MySQL driver is either not installed or not importable."""

    code = ErrorCode.DRIVER_UNAVAILABLE

    def __init__(
        self,
        message: str = "MySQL driver is either not installed or not enabled",
        *,
        driver: str | None = None,
        **kwargs,
    ):
        if driver:
            message = f"{driver} driver is either not installed or not enabled"
        super().__init__(message, **kwargs)
        self.driver = driver


class DBConnectionError(DBClientError):
    """Connecting to the database server failed."""

    code = ErrorCode.CONNECTION_ERROR

    def __init__(
        self,
        reason: str,
        **kwargs,
    ):
        super().__init__(
            f"Failed to connect to database. Reason: {to_utf8(reason)}",
            **kwargs,
        )
        self.reason = to_utf8(reason)


# =============================================================================
# Statement Errors
# =============================================================================


class QueryError(DBClientError):
    """The driver reported a failure while executing a statement."""

    code = ErrorCode.QUERY_ERROR


class ParameterError(QueryError):
    """Bound parameters do not match the statement's placeholders."""

    code = ErrorCode.PARAMETER_ERROR


class NoStatementPreparedError(DBClientError):
    """A bind or execute was attempted before any statement was prepared."""

    code = ErrorCode.NO_STATEMENT_PREPARED

    def __init__(
        self,
        message: str = "No statement has been prepared",
        **kwargs,
    ):
        super().__init__(message, **kwargs)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigError(DBClientError):
    """Base class for configuration errors."""

    code = ErrorCode.CONFIG_ERROR


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    code = ErrorCode.INVALID_CONFIG

    def __init__(
        self,
        message: str = "Invalid configuration",
        *,
        field_name: str | None = None,
        **kwargs,
    ):
        if field_name:
            message = f"Invalid configuration for '{field_name}': {message}"
        super().__init__(message, **kwargs)
        self.field_name = field_name


# =============================================================================
# Utilities
# =============================================================================


def to_utf8(text: Any) -> str:
    """
    Normalize driver diagnostic text into valid UTF-8.

    Bytes are decoded as UTF-8 and fall back to latin-1, which MySQL servers
    configured with a legacy charset still emit. Strings have any lone
    surrogates replaced so the result always encodes cleanly.
    """
    if text is None:
        return ""
    if isinstance(text, (bytes, bytearray)):
        raw = bytes(text)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            return raw.decode("latin-1")
    return str(text).encode("utf-8", errors="replace").decode("utf-8")


def driver_message(exc: BaseException) -> tuple[int | None, str]:
    """
    Split a driver exception into its MySQL errno and message.

    MySQL driver exceptions carry ``(errno, message)`` as their args; anything
    else is rendered with ``str()``.
    """
    args = getattr(exc, "args", ())
    if len(args) >= 2 and isinstance(args[0], int):
        message = args[1]
        if isinstance(message, (bytes, bytearray)):
            message = to_utf8(message)
        return args[0], str(message)
    return None, str(exc)


def error_from_driver(
    exc: BaseException,
    *,
    operation: str | None = None,
    sql: str | None = None,
    context: ErrorContext | None = None,
) -> QueryError:
    """
    Wrap a driver exception raised during execution in a QueryError.

    The driver's message is surfaced unchanged.

    Args:
        exc: Exception raised by the driver
        operation: Client operation in progress
        sql: Statement text being executed
        context: Base context to extend

    Returns:
        QueryError carrying the driver errno and the original exception
    """
    errno, message = driver_message(exc)
    ctx = context or ErrorContext()
    ctx = ErrorContext(
        host=ctx.host,
        database=ctx.database,
        operation=operation or ctx.operation,
        sql=sql if sql is not None else ctx.sql,
        extra=dict(ctx.extra),
    )
    return QueryError(
        message,
        context=ctx,
        cause=exc if isinstance(exc, Exception) else None,
        driver_errno=errno,
    )


__all__ = [
    "ErrorCode",
    "ErrorContext",
    "DBClientError",
    "DriverUnavailableError",
    "DBConnectionError",
    "QueryError",
    "ParameterError",
    "NoStatementPreparedError",
    "ConfigError",
    "InvalidConfigError",
    "to_utf8",
    "driver_message",
    "error_from_driver",
]
