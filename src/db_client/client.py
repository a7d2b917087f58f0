"""
Synchronous MySQL client.

DatabaseClient owns one connection and at most one prepared statement. Rows
come back as dicts and every execution yields a ResultEnvelope.

Error policy:
- ``execute()`` raises QueryError when the driver fails.
- ``query()`` never raises for driver failures; it logs a Diagnostic located
  at the caller and returns the zero-value envelope.
- ``try_execute()`` / ``try_query()`` return a QueryOutcome and leave the
  decision to the caller.

Instances are not thread-safe; use one client per thread.
"""

from __future__ import annotations

import importlib
import importlib.util
import inspect
from collections.abc import Mapping, Sequence
from types import FrameType, ModuleType
from typing import Any

from .config import DEFAULT_PORT, ConnectionConfig, Settings, get_settings
from .errors import (
    DBClientError,
    DBConnectionError,
    DriverUnavailableError,
    ErrorCode,
    ErrorContext,
    NoStatementPreparedError,
    driver_message,
    error_from_driver,
)
from .logging import QueryLog, StructuredLogger, get_logger, logger_from_config, timed
from .result import Diagnostic, QueryOutcome, ResultEnvelope
from .statement import ParamType, PreparedStatement

DRIVER_NAME = "pymysql"

Params = Sequence[Any] | Mapping[str, Any]


def load_driver(name: str = DRIVER_NAME) -> ModuleType:
    """
    Import the MySQL driver.

    Raises:
        DriverUnavailableError: If the driver is not installed
    """
    if importlib.util.find_spec(name) is None:
        raise DriverUnavailableError(driver=name)
    driver = importlib.import_module(name)
    importlib.import_module(f"{name}.cursors")
    return driver


def build_dsn(config: ConnectionConfig) -> str:
    """Render the connection as a DSN string, omitting an absent database."""
    if config.database is None:
        return f"mysql:host={config.host};port={config.port};charset={config.charset}"
    return f"mysql:host={config.host};port={config.port};dbname={config.database};charset={config.charset}"


def session_statements(config: ConnectionConfig) -> tuple[str, ...]:
    """Statements run on every new connection, in order."""
    charset = config.charset
    return (
        f"SET NAMES '{charset}'",
        f"SET CHARACTER SET {charset}",
        f"SET CHARACTER_SET_CONNECTION={charset}",
        f"SET SQL_MODE = '{config.sql_mode}'",
        f"SET time_zone = '{config.time_zone}'",
    )


class DatabaseClient:
    """
    Convenience wrapper around a single MySQL connection.

    Example:
        ```python
        with DatabaseClient("127.0.0.1", "app", "secret", "shop") as db:
            result = db.query("SELECT id, name FROM product WHERE id = ?", [7])
            print(result.row)

            db.prepare("INSERT INTO product (name) VALUES (:name)")
            db.bind_param(":name", "lamp")
            db.execute()
            new_id = db.get_last_insert_id()
        ```
    """

    def __init__(
        self,
        host: str,
        username: str,
        password: str,
        database: str | None = None,
        port: int = DEFAULT_PORT,
        *,
        config: ConnectionConfig | None = None,
        logger: StructuredLogger | None = None,
        driver: ModuleType | Any | None = None,
    ):
        self._connection: Any = None
        self._statement: PreparedStatement | None = None
        self.last_diagnostic: Diagnostic | None = None

        self.config = config or ConnectionConfig(
            host=host,
            username=username,
            password=password,
            database=database,
            port=port,
        )
        self._logger = logger or get_logger()
        self._driver = driver if driver is not None else load_driver()
        self.dsn = build_dsn(self.config)

        self._connect()
        self._init_session()

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        driver: ModuleType | Any | None = None,
    ) -> DatabaseClient:
        """Create a client from Settings (the global settings by default)."""
        settings = settings or get_settings()
        conn = settings.connection
        return cls(
            conn.host,
            conn.username,
            conn.password,
            conn.database,
            conn.port,
            config=conn,
            logger=logger_from_config(settings.logging),
            driver=driver,
        )

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    def _connect(self) -> None:
        cfg = self.config
        try:
            self._connection = self._driver.connect(
                host=cfg.host,
                port=cfg.port,
                user=cfg.username,
                password=cfg.password,
                database=cfg.database,
                charset=cfg.charset,
                connect_timeout=cfg.connect_timeout,
                autocommit=cfg.autocommit,
                cursorclass=self._driver.cursors.DictCursor,
            )
        except self._driver.MySQLError as exc:
            errno, reason = driver_message(exc)
            error = DBConnectionError(
                reason,
                context=self._error_context("connect"),
                cause=exc,
                driver_errno=errno,
            )
            self._logger.log_error(
                error,
                dsn=self.dsn,
                user=cfg.username,
                password=self._logger.credential(cfg.password),
            )
            raise error from exc

        self._logger.info(
            "Connected to database",
            dsn=self.dsn,
            user=cfg.username,
            password=self._logger.credential(cfg.password),
        )

    def _init_session(self) -> None:
        for sql in session_statements(self.config):
            cursor = self._connection.cursor()
            try:
                cursor.execute(sql)
            except self._driver.MySQLError as exc:
                errno, message = driver_message(exc)
                self._logger.warning(
                    "Session initialization statement failed",
                    sql=sql,
                    error_message=message,
                    driver_errno=errno,
                    error_code=ErrorCode.SESSION_INIT_ERROR.value,
                )
            finally:
                cursor.close()

    def is_connected(self) -> bool:
        """Whether the connection handle is held. No round trip is made."""
        return self._connection is not None

    def close(self) -> None:
        """Release the connection. Safe to call more than once."""
        self._release(log=True)

    def _release(self, log: bool) -> None:
        connection, self._connection = self._connection, None
        self._statement = None
        if connection is None:
            return
        try:
            connection.close()
        except self._driver.MySQLError as exc:
            if log:
                self._logger.debug("Connection already closed", error_message=str(exc))
            return
        if log:
            self._logger.info("Disconnected from database", dsn=self.dsn)

    def __enter__(self) -> DatabaseClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self):
        # Handlers may already be torn down at interpreter exit
        if getattr(self, "_connection", None) is not None:
            self._release(log=False)

    # =========================================================================
    # Prepared statements
    # =========================================================================

    def prepare(self, sql: str) -> None:
        """Prepare ``sql``, replacing any previously prepared statement."""
        self._statement = PreparedStatement(sql)

    def bind_param(
        self,
        parameter: int | str,
        value: Any,
        data_type: ParamType | int = ParamType.STR,
        length: int = 0,
    ) -> None:
        """
        Bind a value to a placeholder of the prepared statement.

        Args:
            parameter: 1-based position for ``?`` or the name for ``:name``
            value: Value to bind
            data_type: Declared parameter type
            length: Maximum length for string/binary values (0 = unlimited)

        Raises:
            NoStatementPreparedError: If nothing has been prepared
        """
        self._require_statement().bind(parameter, value, data_type, length)

    def execute(self) -> ResultEnvelope:
        """
        Run the prepared statement with its bound parameters.

        Raises:
            NoStatementPreparedError: If nothing has been prepared
            QueryError: If the driver reports a failure
        """
        return self._run(self._require_statement(), "execute")

    def try_execute(self) -> QueryOutcome:
        """Like ``execute()`` but returns failures instead of raising."""
        try:
            return QueryOutcome.success(self.execute())
        except DBClientError as exc:
            return QueryOutcome.failure(exc)

    # =========================================================================
    # One-shot queries
    # =========================================================================

    def query(self, sql: str, params: Params = ()) -> ResultEnvelope:
        """
        Prepare and run ``sql`` in one call.

        A sequence is bound positionally, a mapping by name. Failures are
        logged as a Diagnostic (also kept in ``last_diagnostic``) and the
        zero-value envelope is returned.
        """
        outcome = self.try_query(sql, params, frame=_caller_frame())
        if outcome.diagnostic is not None:
            self._logger.log_diagnostic(outcome.diagnostic)
        return outcome.result

    def try_query(
        self,
        sql: str,
        params: Params = (),
        *,
        frame: FrameType | None = None,
    ) -> QueryOutcome:
        """
        Prepare and run ``sql``, returning success or failure explicitly.

        Args:
            sql: Statement text with ``?`` or ``:name`` placeholders
            params: Values to bind
            frame: Frame the failure is attributed to (defaults to the caller)
        """
        frame = frame or _caller_frame()
        self.last_diagnostic = None
        try:
            statement = PreparedStatement(sql)
            self._statement = statement
            statement.bind_many(params)
            result = self._run(statement, "query")
        except DBClientError as exc:
            diagnostic = Diagnostic.capture(sql, params, exc, frame)
            self.last_diagnostic = diagnostic
            return QueryOutcome.failure(exc, diagnostic)
        return QueryOutcome.success(result)

    # =========================================================================
    # Statement metadata
    # =========================================================================

    def count_affected(self) -> int:
        """Row count reported for the last statement, 0 if none."""
        if self._statement is not None:
            return self._statement.row_count
        return 0

    def get_last_insert_id(self) -> int:
        """Last AUTO_INCREMENT value generated on this connection."""
        return int(self._require_connection().insert_id())

    # =========================================================================
    # Internals
    # =========================================================================

    def _run(self, statement: PreparedStatement, operation: str) -> ResultEnvelope:
        connection = self._require_connection()
        log = QueryLog(
            statement_id=statement.statement_id,
            operation=operation,
            sql=statement.sql,
            param_count=len(statement.bindings),
        )

        with self._logger.statement_context(statement.statement_id, operation):
            try:
                with timed() as timer:
                    result = statement.run(connection)
            except self._driver.MySQLError as exc:
                error = error_from_driver(
                    exc,
                    operation=operation,
                    sql=statement.sql,
                    context=self._error_context(operation),
                )
                log.success = False
                log.error = error.message
                log.duration_ms = timer.elapsed_ms
                self._logger.log_query(log)
                raise error from exc

            log.duration_ms = timer.elapsed_ms
            log.num_rows = result.num_rows
            self._logger.log_query(log)

        return result

    def _require_statement(self) -> PreparedStatement:
        if self._statement is None:
            raise NoStatementPreparedError(context=self._error_context())
        return self._statement

    def _require_connection(self) -> Any:
        if self._connection is None:
            raise DBClientError(
                "Connection is closed",
                code=ErrorCode.CONNECTION_ERROR,
                context=self._error_context(),
            )
        return self._connection

    def _error_context(self, operation: str | None = None) -> ErrorContext:
        return ErrorContext(
            host=self.config.host,
            database=self.config.database,
            operation=operation,
        )

    def __repr__(self) -> str:
        state = "connected" if self.is_connected() else "disconnected"
        return f"<DatabaseClient {self.dsn} ({state})>"


def _caller_frame() -> FrameType | None:
    """Frame of whoever called the function that calls this helper."""
    frame = inspect.currentframe()
    try:
        return frame.f_back.f_back if frame and frame.f_back else None
    finally:
        del frame


__all__ = [
    "DRIVER_NAME",
    "DatabaseClient",
    "build_dsn",
    "load_driver",
    "session_statements",
]
