"""
Result types returned by the database client.

Every execution path yields a ResultEnvelope. QueryOutcome pairs an envelope
with the error (if any) so an empty result and a failed query stay
distinguishable.
"""

from __future__ import annotations

import os
import pprint
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import FrameType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .errors import DBClientError

Row = dict[str, Any]


@dataclass(frozen=True)
class ResultEnvelope:
    """
    Normalized result of a statement execution.

    Attributes:
        row: First returned row, or an empty dict when there is none
        rows: All returned rows in driver order
        num_rows: Rows returned for SELECT, rows affected otherwise
    """

    row: Row = field(default_factory=dict)
    rows: list[Row] = field(default_factory=list)
    num_rows: int = 0

    @classmethod
    def empty(cls) -> ResultEnvelope:
        """The zero-value envelope."""
        return cls()

    @classmethod
    def from_rows(cls, rows: Sequence[Mapping[str, Any]] | None, row_count: int | None) -> ResultEnvelope:
        data = [dict(r) for r in rows or ()]
        return cls(
            row=dict(data[0]) if data else {},
            rows=data,
            num_rows=max(int(row_count or 0), 0),
        )

    @property
    def first(self) -> Row | None:
        return self.rows[0] if self.rows else None

    @property
    def is_empty(self) -> bool:
        return not self.rows and self.num_rows == 0

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[Row]:
        return iter(self.rows)

    def to_dict(self) -> dict[str, Any]:
        return {"row": dict(self.row), "rows": [dict(r) for r in self.rows], "num_rows": self.num_rows}


@dataclass(frozen=True)
class Diagnostic:
    """Record of a failed query, located at the caller's frame."""

    file: str
    line: int
    function: str
    sql: str
    params: str
    error: str
    code: str | None = None
    errno: int | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @classmethod
    def capture(
        cls,
        sql: str,
        params: Any,
        error: BaseException,
        frame: FrameType | None = None,
    ) -> Diagnostic:
        """
        Build a diagnostic for ``error``.

        Args:
            sql: Statement text that failed
            params: Parameters supplied with it, dumped with pprint
            error: The raised exception
            frame: Calling frame to attribute the failure to
        """
        if frame is not None:
            file, line, function = frame.f_code.co_filename, frame.f_lineno, frame.f_code.co_name
        else:
            file, line, function = "<unknown>", 0, "<unknown>"

        code = getattr(error, "code", None)
        return cls(
            file=os.path.abspath(file) if not file.startswith("<") else file,
            line=line,
            function=function,
            sql=sql,
            params=pprint.pformat(params, sort_dicts=False),
            error=getattr(error, "message", None) or str(error),
            code=code.value if code is not None and hasattr(code, "value") else None,
            errno=getattr(error, "driver_errno", None),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "file": self.file,
            "line": self.line,
            "function": self.function,
            "sql": self.sql,
            "params": self.params,
            "error": self.error,
            "code": self.code,
            "errno": self.errno,
            "timestamp": self.timestamp,
        }

    def __str__(self) -> str:
        return f"Error in: {self.file}, on line: {self.line}\n{self.sql}\n{self.params}"


@dataclass(frozen=True)
class QueryOutcome:
    """Either a successful envelope or the error that prevented one."""

    result: ResultEnvelope = field(default_factory=ResultEnvelope.empty)
    error: DBClientError | None = None
    diagnostic: Diagnostic | None = None

    @classmethod
    def success(cls, result: ResultEnvelope) -> QueryOutcome:
        return cls(result=result)

    @classmethod
    def failure(cls, error: DBClientError, diagnostic: Diagnostic | None = None) -> QueryOutcome:
        return cls(result=ResultEnvelope.empty(), error=error, diagnostic=diagnostic)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def unwrap(self) -> ResultEnvelope:
        """Return the envelope, or raise the stored error."""
        if self.error is not None:
            raise self.error
        return self.result


__all__ = [
    "Row",
    "ResultEnvelope",
    "Diagnostic",
    "QueryOutcome",
]
