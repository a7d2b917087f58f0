"""
Prepared statements with PDO-style placeholders.

Statements are written with ``?`` (positional) or ``:name`` (named)
placeholders. They are compiled once into the ``%s`` / ``%(name)s`` format
the MySQL driver expects, and parameters are attached with ``bind()`` before
the statement is run.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any

from .errors import ParameterError
from .logging import generate_statement_id
from .result import ResultEnvelope

# =============================================================================
# Placeholder Compilation
# =============================================================================


class PlaceholderStyle(str, Enum):
    NONE = "none"
    POSITIONAL = "positional"
    NAMED = "named"


@dataclass(frozen=True)
class CompiledSQL:
    """SQL rewritten for the driver's format-style parameters."""

    source: str
    text: str
    style: PlaceholderStyle = PlaceholderStyle.NONE
    positional_count: int = 0
    names: tuple[str, ...] = ()

    @property
    def has_placeholders(self) -> bool:
        return self.style is not PlaceholderStyle.NONE


def _is_name_start(ch: str) -> bool:
    return ch.isalpha() or ch == "_"


def _is_name_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def _skip_quoted(sql: str, start: int) -> int:
    """Return the index just past the quoted literal that opens at ``start``."""
    quote = sql[start]
    i = start + 1
    n = len(sql)
    while i < n:
        ch = sql[i]
        if ch == "\\" and quote != "`":
            i += 2
            continue
        if ch == quote:
            # Doubled quote is an escaped quote
            if i + 1 < n and sql[i + 1] == quote:
                i += 2
                continue
            return i + 1
        i += 1
    return n


def _skip_line_comment(sql: str, start: int) -> int:
    end = sql.find("\n", start)
    return len(sql) if end == -1 else end + 1


def _skip_block_comment(sql: str, start: int) -> int:
    end = sql.find("*/", start + 2)
    return len(sql) if end == -1 else end + 2


def compile_placeholders(sql: str) -> CompiledSQL:
    """
    Rewrite ``?`` and ``:name`` placeholders into driver format.

    Literal ``%`` characters are doubled so the driver's string formatting
    leaves them intact. Quoted strings, identifiers and comments are copied
    without placeholder substitution.

    Raises:
        ParameterError: If positional and named placeholders are mixed
    """
    out: list[str] = []
    positional = 0
    names: list[str] = []
    i = 0
    n = len(sql)

    while i < n:
        ch = sql[i]

        if ch in ("'", '"', "`"):
            end = _skip_quoted(sql, i)
            out.append(sql[i:end].replace("%", "%%"))
            i = end
        elif ch == "#" or (ch == "-" and sql.startswith("--", i) and (i + 2 >= n or sql[i + 2].isspace())):
            end = _skip_line_comment(sql, i)
            out.append(sql[i:end].replace("%", "%%"))
            i = end
        elif ch == "/" and sql.startswith("/*", i):
            end = _skip_block_comment(sql, i)
            out.append(sql[i:end].replace("%", "%%"))
            i = end
        elif ch == "%":
            out.append("%%")
            i += 1
        elif ch == "?":
            positional += 1
            out.append("%s")
            i += 1
        elif ch == ":":
            if i + 1 < n and sql[i + 1] in (":", "="):
                out.append(sql[i:i + 2])
                i += 2
            elif i + 1 < n and _is_name_start(sql[i + 1]):
                j = i + 2
                while j < n and _is_name_char(sql[j]):
                    j += 1
                name = sql[i + 1:j]
                if name not in names:
                    names.append(name)
                out.append(f"%({name})s")
                i = j
            else:
                out.append(ch)
                i += 1
        else:
            out.append(ch)
            i += 1

    if positional and names:
        raise ParameterError("Invalid parameter number: mixed named and positional parameters")

    if positional:
        style = PlaceholderStyle.POSITIONAL
    elif names:
        style = PlaceholderStyle.NAMED
    else:
        style = PlaceholderStyle.NONE

    return CompiledSQL(
        source=sql,
        text="".join(out),
        style=style,
        positional_count=positional,
        names=tuple(names),
    )


# =============================================================================
# Parameter Binding
# =============================================================================


class ParamType(IntEnum):
    """Declared type of a bound parameter."""

    NULL = 0
    INT = 1
    STR = 2
    LOB = 3
    BOOL = 5

    @classmethod
    def from_flags(cls, data_type: int) -> ParamType:
        """
        Resolve a declared type, ignoring PDO-style modifier bits.

        Raises:
            ParameterError: If the base type is not recognized
        """
        if isinstance(data_type, ParamType):
            return data_type
        if isinstance(data_type, bool) or not isinstance(data_type, int):
            raise ParameterError(f"Invalid parameter type: {data_type!r}")
        try:
            return cls(data_type & ~_PARAM_FLAG_MASK)
        except ValueError as exc:
            raise ParameterError(f"Invalid parameter type: {data_type!r}") from exc

    def coerce(self, value: Any, length: int = 0) -> Any:
        """
        Convert ``value`` to what the driver should receive for this type.

        Raises:
            ParameterError: If ``value`` cannot be represented as this type
        """
        if self is ParamType.NULL:
            return None
        if value is None:
            return None
        if self is ParamType.INT:
            try:
                return int(value)
            except (TypeError, ValueError) as exc:
                raise ParameterError(f"Cannot bind {value!r} as an integer parameter") from exc
        if self is ParamType.BOOL:
            return bool(value)
        if self is ParamType.LOB:
            if hasattr(value, "read"):
                value = value.read()
            if isinstance(value, (bytes, bytearray, memoryview)):
                value = bytes(value)
            else:
                value = _as_text(value).encode("utf-8")
            return value[:length] if length > 0 else value

        # STR
        if isinstance(value, (bool, int, float)):
            value = _as_text(value)
        if length > 0 and isinstance(value, (str, bytes, bytearray)):
            value = value[:length]
        return value


# PDO::PARAM_INPUT_OUTPUT, PARAM_STR_NATL and PARAM_STR_CHAR
_PARAM_FLAG_MASK = 0x80000000 | 0x40000000 | 0x20000000


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else ""
    return str(value)


@dataclass(frozen=True)
class Binding:
    """A value bound to one placeholder."""

    key: int | str
    value: Any
    data_type: ParamType = ParamType.STR
    length: int = 0

    def driver_value(self) -> Any:
        return self.data_type.coerce(self.value, self.length)


def normalize_key(parameter: int | str) -> int | str:
    """Map a bind target to a 1-based position or a bare placeholder name."""
    if isinstance(parameter, bool):
        raise ParameterError(f"Invalid parameter identifier: {parameter!r}")
    if isinstance(parameter, int):
        if parameter < 1:
            raise ParameterError("Invalid parameter number: columns/parameters are 1-based")
        return parameter
    if isinstance(parameter, str):
        name = parameter[1:] if parameter.startswith(":") else parameter
        if not name or not _is_name_start(name[0]) or not all(_is_name_char(c) for c in name):
            raise ParameterError(f"Invalid parameter name: {parameter!r}")
        return name
    raise ParameterError(f"Invalid parameter identifier: {parameter!r}")


# =============================================================================
# Prepared Statement
# =============================================================================


@dataclass
class PreparedStatement:
    """
    A compiled statement plus the values bound to it.

    Sub-states: prepared (``executed`` is False, ``row_count`` is 0) and
    executed (``row_count`` holds the driver's reported count).
    """

    sql: str
    compiled: CompiledSQL = field(init=False)
    statement_id: str = field(default_factory=generate_statement_id)
    bindings: dict[int | str, Binding] = field(default_factory=dict)
    row_count: int = 0
    executed: bool = False

    def __post_init__(self):
        self.compiled = compile_placeholders(self.sql)

    def bind(
        self,
        parameter: int | str,
        value: Any,
        data_type: ParamType | int = ParamType.STR,
        length: int = 0,
    ) -> None:
        key = normalize_key(parameter)
        data_type = ParamType.from_flags(data_type)
        if length > 0:
            binding = Binding(key, value, data_type, length)
        else:
            binding = Binding(key, value, data_type)
        self.bindings[key] = binding

    def bind_many(self, params: Sequence[Any] | Mapping[str, Any] | None) -> None:
        """Bind a positional sequence (1-based) or a mapping of names."""
        if not params:
            return
        if isinstance(params, Mapping):
            for name, value in params.items():
                self.bind(name, value, _infer_type(value))
        elif isinstance(params, (str, bytes)):
            raise ParameterError("Parameters must be a sequence or mapping, not a string")
        else:
            for position, value in enumerate(params, start=1):
                self.bind(position, value, _infer_type(value))

    def parameters(self) -> tuple[Any, ...] | dict[str, Any] | None:
        """
        Resolve bindings into the driver's argument.

        Raises:
            ParameterError: If bindings do not match the placeholders
        """
        style = self.compiled.style
        keys = set(self.bindings)

        if style is PlaceholderStyle.NONE:
            if keys:
                raise ParameterError(
                    "Invalid parameter number: number of bound variables does not match number of tokens"
                )
            return None

        if style is PlaceholderStyle.POSITIONAL:
            expected = set(range(1, self.compiled.positional_count + 1))
            if keys != expected:
                raise ParameterError(
                    "Invalid parameter number: number of bound variables does not match number of tokens"
                )
            return tuple(self.bindings[i].driver_value() for i in sorted(expected))

        missing = [n for n in self.compiled.names if n not in keys]
        if missing:
            raise ParameterError(f"Invalid parameter number: parameter was not defined: {missing[0]}")
        extra = keys - set(self.compiled.names)
        if extra:
            raise ParameterError(
                "Invalid parameter number: number of bound variables does not match number of tokens"
            )
        return {name: self.bindings[name].driver_value() for name in self.compiled.names}

    def run(self, connection: Any) -> ResultEnvelope:
        """
        Execute on ``connection`` and fetch every row.

        Driver exceptions propagate unchanged.
        """
        args = self.parameters()
        text = self.compiled.text if args is not None else self.sql

        cursor = connection.cursor()
        try:
            cursor.execute(text, args)
            rows = cursor.fetchall() if cursor.description else []
            row_count = cursor.rowcount
        finally:
            cursor.close()

        result = ResultEnvelope.from_rows(rows, row_count)
        self.row_count = result.num_rows
        self.executed = True
        return result


def _infer_type(value: Any) -> ParamType:
    if value is None:
        return ParamType.NULL
    if isinstance(value, bool):
        return ParamType.BOOL
    if isinstance(value, int):
        return ParamType.INT
    if isinstance(value, (bytes, bytearray, memoryview)):
        return ParamType.LOB
    return ParamType.STR


__all__ = [
    "PlaceholderStyle",
    "CompiledSQL",
    "compile_placeholders",
    "ParamType",
    "Binding",
    "normalize_key",
    "PreparedStatement",
]
