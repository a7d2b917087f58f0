"""
Scriptable fake of the MySQL driver used across the test suite.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Any


class FakeMySQLError(Exception):
    """Mirrors the driver's (errno, message) exception args."""


class FakeOperationalError(FakeMySQLError):
    pass


class FakeProgrammingError(FakeMySQLError):
    pass


@dataclass
class Scripted:
    """Canned response for one SQL text."""

    rows: list[dict[str, Any]] | None = None
    rowcount: int | None = None
    error: Exception | None = None
    insert_id: int | None = None


class FakeCursor:
    def __init__(self, connection: FakeConnection):
        self._connection = connection
        self.description = None
        self.rowcount = -1
        self._rows: list[dict[str, Any]] = []
        self.closed = False

    def execute(self, sql: str, args: Any = None) -> int:
        self._connection.executed.append((sql, args))
        scripted = self._connection.script.get(sql, Scripted(rowcount=0))
        if scripted.error is not None:
            raise scripted.error
        if scripted.insert_id is not None:
            self._connection.last_insert_id = scripted.insert_id
        if scripted.rows is not None:
            self._rows = [dict(r) for r in scripted.rows]
            names = list(self._rows[0]) if self._rows else ["col"]
            self.description = tuple((n, None, None, None, None, None, None) for n in names)
            self.rowcount = len(self._rows) if scripted.rowcount is None else scripted.rowcount
        else:
            self._rows = []
            self.description = None
            self.rowcount = scripted.rowcount or 0
        return self.rowcount

    def fetchall(self) -> tuple[dict[str, Any], ...]:
        rows, self._rows = self._rows, []
        return tuple(rows)

    def close(self) -> None:
        self.closed = True


@dataclass
class FakeConnection:
    script: dict[str, Scripted] = field(default_factory=dict)
    executed: list[tuple[str, Any]] = field(default_factory=list)
    cursors: list[FakeCursor] = field(default_factory=list)
    last_insert_id: int = 0
    closed: bool = False

    def cursor(self) -> FakeCursor:
        cursor = FakeCursor(self)
        self.cursors.append(cursor)
        return cursor

    def insert_id(self) -> int:
        return self.last_insert_id

    def close(self) -> None:
        if self.closed:
            raise FakeMySQLError("Already closed")
        self.closed = True

    @property
    def statements(self) -> list[str]:
        return [sql for sql, _ in self.executed]


class FakeDriver(SimpleNamespace):
    """Module-like stand-in for the MySQL driver."""

    MySQLError = FakeMySQLError
    OperationalError = FakeOperationalError
    ProgrammingError = FakeProgrammingError
    cursors = SimpleNamespace(DictCursor=object())

    def __init__(self, connection: FakeConnection | None = None, connect_error: Exception | None = None):
        super().__init__()
        self.connection = connection or FakeConnection()
        self.connect_error = connect_error
        self.connect_kwargs: dict[str, Any] = {}

    def connect(self, **kwargs: Any) -> FakeConnection:
        self.connect_kwargs = kwargs
        if self.connect_error is not None:
            raise self.connect_error
        return self.connection
