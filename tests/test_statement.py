"""
Tests for placeholder compilation and prepared statements.
"""
import io

import pytest

from db_client.errors import ParameterError
from db_client.statement import (
    Binding,
    ParamType,
    PlaceholderStyle,
    PreparedStatement,
    compile_placeholders,
    normalize_key,
)

from tests.fakes import FakeConnection, Scripted


class TestCompilePlaceholders:
    """Test rewriting of ? and :name placeholders."""

    def test_no_placeholders(self):
        compiled = compile_placeholders("SELECT 1 AS x")

        assert compiled.style is PlaceholderStyle.NONE
        assert compiled.text == "SELECT 1 AS x"
        assert not compiled.has_placeholders

    def test_positional(self):
        compiled = compile_placeholders("SELECT * FROM t WHERE a = ? AND b = ?")

        assert compiled.style is PlaceholderStyle.POSITIONAL
        assert compiled.positional_count == 2
        assert compiled.text == "SELECT * FROM t WHERE a = %s AND b = %s"

    def test_named(self):
        compiled = compile_placeholders("UPDATE t SET name = :name WHERE id = :id OR parent = :id")

        assert compiled.style is PlaceholderStyle.NAMED
        assert compiled.names == ("name", "id")
        assert compiled.text == "UPDATE t SET name = %(name)s WHERE id = %(id)s OR parent = %(id)s"

    def test_percent_is_escaped(self):
        compiled = compile_placeholders("SELECT * FROM t WHERE name LIKE 'a%' AND b = ?")

        assert compiled.text == "SELECT * FROM t WHERE name LIKE 'a%%' AND b = %s"

    def test_placeholders_inside_literals_are_ignored(self):
        sql = "SELECT '?', \"it's :not\", `col?` FROM t WHERE a = :a"
        compiled = compile_placeholders(sql)

        assert compiled.names == ("a",)
        assert compiled.text == "SELECT '?', \"it's :not\", `col?` FROM t WHERE a = %(a)s"

    def test_escaped_quotes(self):
        compiled = compile_placeholders("SELECT 'it''s ?', 'a\\'?' , ?")

        assert compiled.positional_count == 1
        assert compiled.text.endswith(", %s")

    def test_comments_are_ignored(self):
        sql = "SELECT ? -- what about ?\n# or :this\n/* and ? */ FROM t"
        compiled = compile_placeholders(sql)

        assert compiled.positional_count == 1
        assert compiled.text == "SELECT %s -- what about ?\n# or :this\n/* and ? */ FROM t"

    def test_double_dash_without_space_is_not_a_comment(self):
        compiled = compile_placeholders("SELECT 5--? ")

        assert compiled.positional_count == 1

    def test_assignment_and_cast_operators(self):
        compiled = compile_placeholders("SELECT @x := 1, a::text")

        assert compiled.style is PlaceholderStyle.NONE
        assert compiled.text == "SELECT @x := 1, a::text"

    def test_mixed_styles_rejected(self):
        with pytest.raises(ParameterError, match="mixed named and positional"):
            compile_placeholders("SELECT ? FROM t WHERE a = :a")


class TestParamType:
    """Test coercion of bound values."""

    def test_pdo_constant_values(self):
        assert ParamType.NULL == 0
        assert ParamType.INT == 1
        assert ParamType.STR == 2
        assert ParamType.LOB == 3
        assert ParamType.BOOL == 5

    def test_int(self):
        assert ParamType.INT.coerce("42") == 42
        assert ParamType.INT.coerce(True) == 1

    def test_str(self):
        assert ParamType.STR.coerce(42) == "42"
        assert ParamType.STR.coerce(True) == "1"
        assert ParamType.STR.coerce(False) == ""
        assert ParamType.STR.coerce("abc") == "abc"

    def test_none_passes_through(self):
        assert ParamType.STR.coerce(None) is None
        assert ParamType.INT.coerce(None) is None
        assert ParamType.NULL.coerce("anything") is None

    def test_bool(self):
        assert ParamType.BOOL.coerce(1) is True
        assert ParamType.BOOL.coerce(0) is False

    def test_lob(self):
        assert ParamType.LOB.coerce("é") == "é".encode("utf-8")
        assert ParamType.LOB.coerce(io.BytesIO(b"\x00\x01")) == b"\x00\x01"

    def test_length_caps_strings_and_blobs(self):
        assert ParamType.STR.coerce("abcdef", length=3) == "abc"
        assert ParamType.LOB.coerce(b"abcdef", length=2) == b"ab"
        assert ParamType.INT.coerce("12345", length=2) == 12345

    def test_lob_stringifies_scalars(self):
        assert ParamType.LOB.coerce(5) == b"5"
        assert ParamType.LOB.coerce(True) == b"1"
        assert ParamType.LOB.coerce(bytearray(b"ab")) == b"ab"

    def test_int_rejects_non_numeric(self):
        with pytest.raises(ParameterError, match="integer"):
            ParamType.INT.coerce("abc")

        with pytest.raises(ParameterError):
            ParamType.INT.coerce(object())

    def test_from_flags_ignores_modifier_bits(self):
        assert ParamType.from_flags(ParamType.STR | 0x40000000) is ParamType.STR
        assert ParamType.from_flags(ParamType.STR | 0x20000000) is ParamType.STR
        assert ParamType.from_flags(ParamType.INT | 0x80000000) is ParamType.INT
        assert ParamType.from_flags(3) is ParamType.LOB

    def test_from_flags_rejects_unknown_types(self):
        with pytest.raises(ParameterError, match="Invalid parameter type"):
            ParamType.from_flags(4)

        with pytest.raises(ParameterError):
            ParamType.from_flags("str")


class TestNormalizeKey:
    """Test bind target normalization."""

    def test_position(self):
        assert normalize_key(1) == 1

    def test_name_with_and_without_colon(self):
        assert normalize_key(":name") == "name"
        assert normalize_key("name") == "name"

    @pytest.mark.parametrize("bad", [0, -1, True, "", ":", "1abc", 1.5])
    def test_invalid(self, bad):
        with pytest.raises(ParameterError):
            normalize_key(bad)


class TestPreparedStatement:
    """Test binding and execution of prepared statements."""

    def test_initial_state(self):
        stmt = PreparedStatement("SELECT 1")

        assert stmt.row_count == 0
        assert stmt.executed is False
        assert stmt.statement_id.startswith("stmt_")

    def test_bind_records_length_only_when_positive(self):
        stmt = PreparedStatement("INSERT INTO t (a, b) VALUES (?, ?)")
        stmt.bind(1, "x")
        stmt.bind(2, b"yy", ParamType.LOB, 16)

        assert stmt.bindings[1] == Binding(1, "x", ParamType.STR, 0)
        assert stmt.bindings[2].length == 16

    def test_positional_parameters(self):
        stmt = PreparedStatement("SELECT * FROM t WHERE a = ? AND b = ?")
        stmt.bind(2, 7, ParamType.INT)
        stmt.bind(1, "x")

        assert stmt.parameters() == ("x", 7)

    def test_named_parameters(self):
        stmt = PreparedStatement("SELECT * FROM t WHERE a = :a AND b = :b")
        stmt.bind(":b", 2, ParamType.INT)
        stmt.bind("a", "one")

        assert stmt.parameters() == {"a": "one", "b": 2}

    def test_rebinding_replaces_value(self):
        stmt = PreparedStatement("SELECT ?")
        stmt.bind(1, "first")
        stmt.bind(1, "second")

        assert stmt.parameters() == ("second",)

    def test_missing_positional(self):
        stmt = PreparedStatement("SELECT ?, ?")
        stmt.bind(1, "x")

        with pytest.raises(ParameterError, match="does not match number of tokens"):
            stmt.parameters()

    def test_missing_named(self):
        stmt = PreparedStatement("SELECT :a, :b")
        stmt.bind("a", 1)

        with pytest.raises(ParameterError, match="not defined: b"):
            stmt.parameters()

    def test_extra_named(self):
        stmt = PreparedStatement("SELECT :a")
        stmt.bind("a", 1)
        stmt.bind("zzz", 2)

        with pytest.raises(ParameterError):
            stmt.parameters()

    def test_bindings_without_placeholders(self):
        stmt = PreparedStatement("SELECT 1")
        stmt.bind(1, "x")

        with pytest.raises(ParameterError):
            stmt.parameters()

    def test_no_placeholders_no_bindings(self):
        assert PreparedStatement("SELECT 1").parameters() is None

    def test_bind_many_sequence_infers_types(self):
        stmt = PreparedStatement("INSERT INTO t VALUES (?, ?, ?, ?)")
        stmt.bind_many([1, "a", None, b"\x00"])

        assert [stmt.bindings[i].data_type for i in range(1, 5)] == [
            ParamType.INT,
            ParamType.STR,
            ParamType.NULL,
            ParamType.LOB,
        ]
        assert stmt.parameters() == (1, "a", None, b"\x00")

    def test_bind_many_mapping(self):
        stmt = PreparedStatement("SELECT :a")
        stmt.bind_many({"a": 5})

        assert stmt.parameters() == {"a": 5}

    def test_bind_many_rejects_string(self):
        stmt = PreparedStatement("SELECT ?")

        with pytest.raises(ParameterError):
            stmt.bind_many("abc")

    def test_run_select(self):
        conn = FakeConnection(script={
            "SELECT id FROM t WHERE id > %s": Scripted(rows=[{"id": 1}, {"id": 2}]),
        })
        stmt = PreparedStatement("SELECT id FROM t WHERE id > ?")
        stmt.bind(1, 0, ParamType.INT)

        result = stmt.run(conn)

        assert conn.executed == [("SELECT id FROM t WHERE id > %s", (0,))]
        assert result.rows == [{"id": 1}, {"id": 2}]
        assert result.row == {"id": 1}
        assert result.num_rows == 2
        assert stmt.executed is True
        assert stmt.row_count == 2
        assert conn.cursors[0].closed

    def test_run_without_params_sends_original_text(self):
        conn = FakeConnection(script={"SELECT '100%'": Scripted(rows=[{"100%": "100%"}])})
        stmt = PreparedStatement("SELECT '100%'")

        stmt.run(conn)

        assert conn.executed == [("SELECT '100%'", None)]

    def test_run_closes_cursor_on_error(self):
        conn = FakeConnection(script={"BROKEN": Scripted(error=RuntimeError("boom"))})
        stmt = PreparedStatement("BROKEN")

        with pytest.raises(RuntimeError):
            stmt.run(conn)

        assert conn.cursors[0].closed
        assert stmt.executed is False
