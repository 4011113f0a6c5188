"""
Tests for Connection: lifecycle, table management, queries and read-only mode.
"""

from unittest.mock import patch

import pandas as pd
import pytest

from dbframe import connect, create_memory_config, create_sqlite_config
from dbframe.dbi.connection import Connection
from dbframe_base.errors import (
    ConfigurationError,
    DatabaseConnectionError,
    DataError,
    QueryError,
    ReadOnlyError,
    ValidationError,
)
from dbframe_base.logging import ConsoleHandler, disable_console_logging, root_logger


@pytest.fixture
def frame():
    return pd.DataFrame({"x": [1, 2, 3], "y": ["a", "b", None]})


class TestConnect:
    def test_default_is_in_memory_sqlite(self, empty_con):
        assert isinstance(empty_con, Connection)
        assert empty_con.dialect_name == "sqlite"
        assert empty_con.is_valid()
        assert empty_con.list_tables() == []

    def test_accepts_config_and_overrides(self):
        con = connect(create_memory_config(), page_size=5)
        assert con.config.page_size == 5
        con.disconnect()

    def test_quiet_connection_keeps_verbose_console_handler(self):
        verbose = connect(verbose=True)
        quiet = connect()
        try:
            consoles = [
                h for h in root_logger().handlers if isinstance(h, ConsoleHandler)
            ]
            assert len(consoles) == 1
        finally:
            quiet.disconnect()
            verbose.disconnect()
            disable_console_logging()

    def test_rejects_other_types(self):
        with pytest.raises(ConfigurationError, match="expects a URL"):
            connect(42)

    def test_invalid_config(self):
        with pytest.raises(ConfigurationError, match="Invalid connection configuration"):
            connect("not-a-url")

    def test_missing_dialect_package(self):
        with pytest.raises(ConfigurationError, match="No SQLAlchemy dialect installed"):
            connect("nosuchdb://localhost/x")

    def test_unreachable_database(self, tmp_path):
        missing = tmp_path / "missing_dir" / "db.sqlite"
        with pytest.raises(DatabaseConnectionError, match="Could not connect"):
            connect(f"sqlite:///{missing.as_posix()}")

    def test_context_manager_disconnects(self):
        with connect() as con:
            assert con.is_valid()
        assert not con.is_valid()

    def test_disconnect_is_idempotent(self):
        con = connect()
        con.disconnect()
        con.close()
        assert not con.is_valid()

    def test_operations_after_disconnect_raise(self):
        con = connect()
        con.disconnect()
        with pytest.raises(DatabaseConnectionError, match="Connection is closed"):
            con.list_tables()

    def test_repr(self, empty_con):
        assert repr(empty_con) == "<Connection sqlite:// [sqlite, open]>"


class TestTables:
    def test_write_and_read(self, empty_con, frame):
        assert empty_con.write_table("t", frame) == 3
        assert empty_con.exists_table("t")
        assert empty_con.list_fields("t") == ["x", "y"]
        df = empty_con.read_table("t")
        assert df["x"].tolist() == [1, 2, 3]
        assert df["y"].tolist() == ["a", "b", None]

    def test_write_existing_table_fails(self, empty_con, frame):
        empty_con.write_table("t", frame)
        with pytest.raises(DataError, match="already exists"):
            empty_con.write_table("t", frame)

    def test_overwrite_and_append(self, empty_con, frame):
        empty_con.write_table("t", frame)
        empty_con.write_table("t", frame, append=True)
        assert len(empty_con.read_table("t")) == 6
        empty_con.write_table("t", frame.head(1), overwrite=True)
        assert len(empty_con.read_table("t")) == 1

    def test_failed_overwrite_keeps_old_table(self, empty_con, frame):
        empty_con.write_table("t", frame)
        bad = pd.DataFrame({"z": [{"nested": 1}]})
        with pytest.raises(DataError, match="Failed to write table t"):
            empty_con.write_table("t", bad, overwrite=True)
        assert empty_con.list_fields("t") == ["x", "y"]
        assert empty_con.read_table("t")["x"].tolist() == [1, 2, 3]

    def test_overwrite_and_append_together_fail(self, empty_con, frame):
        with pytest.raises(ValidationError, match="not both"):
            empty_con.write_table("t", frame, overwrite=True, append=True)

    def test_remove_table(self, empty_con, frame):
        empty_con.write_table("t", frame)
        empty_con.remove_table("t")
        assert not empty_con.exists_table("t")

    def test_remove_missing_table(self, empty_con):
        with pytest.raises(DataError, match="does not exist"):
            empty_con.remove_table("missing")
        empty_con.remove_table("missing", fail_if_missing=False)

    def test_exists_table_is_case_sensitive(self, empty_con, frame):
        empty_con.write_table("t", frame)
        assert not empty_con.exists_table("T")

    def test_read_missing_table_suggests_names(self, con):
        with pytest.raises(DataError) as exc_info:
            con.read_table("flight")
        assert "Similar tables: flights" in exc_info.value.suggestions

    def test_temporary_tables_disappear_on_disconnect(self, tmp_path, frame):
        config = create_sqlite_config(tmp_path / "db.sqlite")
        with connect(config) as con:
            con.write_table("keep", frame)
            con.write_table("scratch", frame, temporary=True)
            assert con.list_tables() == ["keep", "scratch"]
        with connect(config) as con:
            assert con.list_tables() == ["keep"]


class TestQueries:
    def test_get_query(self, con):
        df = con.get_query("SELECT COUNT(*) AS n FROM flights")
        assert df["n"].tolist() == [18]

    def test_get_query_with_params(self, con):
        df = con.get_query(
            "SELECT flight FROM flights WHERE carrier = :carrier ORDER BY flight",
            {"carrier": "DL"},
        )
        assert df["flight"].tolist() == [461, 1806, 2042]

    def test_get_query_empty_result_keeps_columns(self, con):
        df = con.get_query("SELECT carrier, name FROM airlines WHERE 1 = 0")
        assert list(df.columns) == ["carrier", "name"]
        assert len(df) == 0

    def test_bad_sql_raises_query_error(self, con):
        with pytest.raises(QueryError) as exc_info:
            con.get_query("SELECT nope FROM flights")
        assert exc_info.value.sql == "SELECT nope FROM flights"
        assert exc_info.value.cause is not None

    def test_connection_usable_after_query_error(self, con):
        with pytest.raises(QueryError):
            con.execute("INSERT INTO nowhere VALUES (1)")
        assert con.get_query("SELECT 1 AS one")["one"].tolist() == [1]

    def test_execute_returns_row_count(self, con):
        changed = con.execute("UPDATE flights SET hour = 0 WHERE carrier = 'EV'")
        assert changed == 2

    def test_new_send_query_clears_previous(self, con):
        first = con.send_query("SELECT * FROM flights")
        first.fetch(1)
        with patch.object(con.logger, "warning") as mock_warning:
            second = con.send_query("SELECT * FROM airlines")
        mock_warning.assert_called_once()
        assert first.is_cleared
        assert len(second.fetch(-1)) == 7
        second.clear()

    def test_page_size_from_config(self, frame):
        con = connect(page_size=2)
        con.write_table("t", frame)
        rs = con.send_query("SELECT * FROM t")
        assert [len(chunk) for chunk in rs] == [2, 1]
        rs.clear()

        rs = con.send_query("SELECT * FROM t")
        assert len(rs.fetch()) == 3
        rs.clear()
        con.disconnect()


class TestLazyEntryPoints:
    def test_tbl(self, con):
        flights = con.tbl("flights")
        assert flights.columns[:4] == ["year", "month", "day", "hour"]

    def test_tbl_missing_table(self, con):
        with pytest.raises(DataError, match="does not exist"):
            con.tbl("nope")

    def test_copy_to_generates_names(self, empty_con, frame):
        first = empty_con.copy_to(frame)
        second = empty_con.copy_to(frame)
        assert empty_con.list_tables() == ["dbframe_001", "dbframe_002"]
        assert first.collect()["x"].tolist() == [1, 2, 3]
        assert second.columns == ["x", "y"]

    def test_copy_to_named_and_overwrite(self, empty_con, frame):
        empty_con.copy_to(frame, name="upload")
        with pytest.raises(DataError):
            empty_con.copy_to(frame, name="upload")
        table = empty_con.copy_to(frame.head(2), name="upload", overwrite=True)
        assert table.count_rows() == 2


class TestReadOnly:
    """Read-only connections refuse writes before any SQL is sent."""

    @pytest.fixture
    def ro_con(self, tmp_path, frame):
        path = tmp_path / "ro.sqlite"
        with connect(create_sqlite_config(path)) as con:
            con.write_table("t", frame)
        con = connect(create_sqlite_config(path, read_only=True))
        yield con
        con.disconnect()

    def test_reads_work(self, ro_con):
        assert ro_con.read_only
        assert ro_con.list_tables() == ["t"]
        assert ro_con.tbl("t").count_rows() == 3

    @pytest.mark.parametrize(
        "operation",
        [
            lambda con, df: con.write_table("u", df),
            lambda con, df: con.remove_table("t"),
            lambda con, df: con.copy_to(df),
            lambda con, df: con.execute("DELETE FROM t"),
            lambda con, df: con.tbl("t").compute(),
        ],
    )
    def test_writes_rejected(self, ro_con, frame, operation):
        with patch.object(ro_con, "_run") as mock_run:
            with pytest.raises(ReadOnlyError, match="connection is read-only"):
                operation(ro_con, frame)
        mock_run.assert_not_called()
