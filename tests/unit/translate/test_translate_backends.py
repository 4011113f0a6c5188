"""
Simulated backends, table sources and dialect selection.
"""

import pandas as pd
import pytest
from sqlalchemy import Integer, String

from dbframe import (
    col,
    in_schema,
    lazy_frame,
    simulate_dbi,
    simulate_dialect,
    simulate_mssql,
    simulate_oracle,
    sql,
)
from dbframe.translate import SimulatedConnection
from dbframe_base.errors import ConfigurationError, DataError, TranslationError, ValidationError


class TestSimulateDialect:
    @pytest.mark.parametrize(
        "name, dialect_name",
        [
            ("dbi", "dbi"),
            ("sqlite", "sqlite"),
            ("postgres", "postgresql"),
            ("PostgreSQL", "postgresql"),
            ("mysql", "mysql"),
            ("mssql", "mssql"),
            ("oracle", "oracle"),
        ],
    )
    def test_known_dialects(self, name, dialect_name):
        con = simulate_dialect(name)
        assert isinstance(con, SimulatedConnection)
        assert con.dialect_name == dialect_name

    def test_unknown_dialect(self):
        with pytest.raises(ConfigurationError, match="Unknown dialect 'teradata'") as exc_info:
            simulate_dialect("teradata")
        assert any("postgres" in s for s in exc_info.value.suggestions)

    @pytest.mark.duckdb
    def test_duckdb(self, render):
        pytest.importorskip("duckdb_engine")
        table = lazy_frame(["x"], con=simulate_dialect("duckdb")).head(2)
        assert render(table).endswith("LIMIT 2")


class TestLimitSpelling:
    def test_mssql_top(self, render):
        sql_text = render(lazy_frame(["x", "y"], con=simulate_mssql()).head(3))
        assert sql_text == "SELECT TOP 3 df.x, df.y FROM df"

    def test_oracle_fetch_first(self, render):
        sql_text = render(lazy_frame(["x"], con=simulate_oracle()).head(3))
        assert "FETCH FIRST 3 ROWS ONLY" in sql_text

    def test_generic_limit(self, render):
        assert render(lazy_frame(["x"]).head(3)).endswith("LIMIT 3")


class TestLazyFrame:
    def test_default_is_generic(self):
        table = lazy_frame(["x", "y"])
        assert table.backend.dialect_name == "dbi"
        assert table.columns == ["x", "y"]

    def test_typed_columns(self):
        table = lazy_frame({"x": Integer(), "s": String()})
        assert isinstance(table.level.scope()["x"].type, Integer)

    def test_from_dataframe(self):
        df = pd.DataFrame({"x": [1, 2], "s": ["a", "b"]})
        table = lazy_frame(df, name="local")
        assert table.columns == ["x", "s"]
        assert isinstance(table.level.scope()["x"].type, Integer)

    def test_needs_columns(self):
        with pytest.raises(ValidationError, match="at least one column"):
            lazy_frame([])


class TestSources:
    def test_registered_table(self, sqlite_sim, render):
        sqlite_sim.register_table("events", ["id", "kind"])
        assert sqlite_sim.list_tables() == ["events"]
        assert render(sqlite_sim.tbl("events")) == "SELECT events.id, events.kind FROM events"

    def test_unknown_table_suggests(self, sqlite_sim):
        sqlite_sim.register_table("events", ["id"])
        with pytest.raises(DataError, match="not registered"):
            sqlite_sim.tbl("event")

    def test_in_schema(self, sqlite_sim, render):
        sqlite_sim.register_table("t", ["a"], schema="s")
        table = sqlite_sim.tbl(in_schema("s", "t"))
        assert render(table) == "SELECT s.t.a FROM s.t"
        assert "# Source:   table<s.t>" in repr(table)

    def test_in_schema_needs_both_parts(self):
        with pytest.raises(ValidationError):
            in_schema("", "t")

    def test_sql_source(self, sqlite_sim, render):
        source = sql("SELECT 1 AS a, 2 AS b;", columns=["a", "b"])
        assert source.text == "SELECT 1 AS a, 2 AS b"
        table = sqlite_sim.tbl(source).filter(col("a") > 0)
        sql_text = render(table)
        assert sql_text.startswith("SELECT q01.a, q01.b FROM (SELECT 1 AS a, 2 AS b) AS q01")
        assert sql_text.endswith("WHERE q01.a > 0")

    def test_sql_source_next_subquery_is_q02(self, sqlite_sim, render):
        table = sqlite_sim.tbl(sql("SELECT 1 AS a", columns=["a"]))
        sql_text = render(table.mutate(b=col("a") + 1).filter(col("b") > 1))
        assert "AS q02" in sql_text

    def test_sql_source_needs_columns_when_simulated(self, sqlite_sim):
        with pytest.raises(TranslationError, match="cannot discover the columns"):
            sqlite_sim.tbl(sql("SELECT 1 AS a"))

    def test_empty_sql(self):
        with pytest.raises(ValidationError):
            sql("   ")

    def test_bad_source_type(self, sqlite_sim):
        with pytest.raises(ValidationError, match="Cannot read a table from int"):
            sqlite_sim.tbl(42)

    def test_unique_names(self):
        con = simulate_dbi()
        assert con.unique_table_name() == "dbframe_001"
        assert con.unique_table_name() == "dbframe_002"
