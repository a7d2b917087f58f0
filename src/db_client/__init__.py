"""
Top-level package for the database client.

Environment variables are loaded from the nearest `.env` so connection
settings (DB_HOST, DB_USER, ...) are available on import.
"""
from dotenv import find_dotenv, load_dotenv

_ = load_dotenv(find_dotenv(usecwd=True))

from .client import DatabaseClient, build_dsn, load_driver, session_statements
from .config import ConnectionConfig, LoggingConfig, Settings, configure, get_settings, load_env
from .errors import (
    ConfigError,
    DBClientError,
    DBConnectionError,
    DriverUnavailableError,
    ErrorCode,
    ErrorContext,
    InvalidConfigError,
    NoStatementPreparedError,
    ParameterError,
    QueryError,
)
from .result import Diagnostic, QueryOutcome, ResultEnvelope
from .statement import ParamType, PreparedStatement, compile_placeholders

__all__ = [
    "DatabaseClient",
    "build_dsn",
    "load_driver",
    "session_statements",
    "ConnectionConfig",
    "LoggingConfig",
    "Settings",
    "configure",
    "get_settings",
    "load_env",
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
    "ResultEnvelope",
    "Diagnostic",
    "QueryOutcome",
    "ParamType",
    "PreparedStatement",
    "compile_placeholders",
]
