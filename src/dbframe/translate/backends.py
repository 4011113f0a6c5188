"""
Table sources and simulated backends.

A simulated backend renders SQL for a database dialect without connecting
to anything, which is useful to see how a pipeline translates:

    >>> con = simulate_mssql()
    >>> lf = lazy_frame(["x", "y"], con=con)
    >>> lf.head(3).show_query()
    <SQL>
    SELECT TOP 3 df.x, df.y
    FROM df
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd
import sqlalchemy as sa
from sqlalchemy.dialects.mssql.base import MSDialect
from sqlalchemy.dialects.mysql.base import MySQLDialect
from sqlalchemy.dialects.oracle.base import OracleDialect
from sqlalchemy.dialects.postgresql.base import PGDialect
from sqlalchemy.dialects.sqlite.base import SQLiteDialect
from sqlalchemy.engine import Dialect
from sqlalchemy.engine.default import DefaultDialect
from sqlalchemy.sql.selectable import FromClause, TableClause

from dbframe_base.config import DEFAULT_TEMP_PREFIX
from dbframe_base.context import SuggestionGenerator
from dbframe_base.errors import ConfigurationError, DataError, TranslationError, ValidationError

from .lazy import LazyTable


@dataclass(frozen=True)
class InSchema:
    """A table inside a database schema, for ``tbl()``."""

    schema: str
    table: str

    def __str__(self) -> str:
        return f"{self.schema}.{self.table}"


@dataclass(frozen=True)
class SqlQuery:
    """
    A literal SQL query used as a table source.

    Attributes:
        text: The SELECT statement
        columns: Output column names; needed only on simulated backends,
            which cannot ask a database
    """

    text: str
    columns: Optional[Tuple[str, ...]] = None

    def __str__(self) -> str:
        return self.text


def in_schema(schema: str, table: str) -> InSchema:
    """Refer to ``table`` in ``schema``."""
    if not schema or not table:
        raise ValidationError("in_schema() needs a schema and a table name")
    return InSchema(schema, table)


def sql(text: str, columns: Optional[Sequence[str]] = None) -> SqlQuery:
    """Use a SQL query as a table source: ``con.tbl(sql("SELECT ..."))``."""
    if not text or not text.strip():
        raise ValidationError("sql() needs a non-empty query", field="text")
    return SqlQuery(text.strip().rstrip(";"), tuple(columns) if columns else None)


TableSource = Union[str, InSchema, SqlQuery]


def lazy_table(backend: Any, source: TableSource) -> LazyTable:
    """Build a LazyTable over a table name, ``in_schema()`` or ``sql()`` source."""
    if isinstance(source, SqlQuery):
        alias = "q01"
        return LazyTable.from_source(
            backend,
            backend.query_source(source, alias),
            label="SQL <query>",
            subquery_count=1,
        )
    if isinstance(source, InSchema):
        return LazyTable.from_source(
            backend,
            backend.table_source(source.table, schema=source.schema),
            label=f"table<{source}>",
        )
    if isinstance(source, str):
        return LazyTable.from_source(
            backend, backend.table_source(source), label=f"table<{source}>"
        )
    raise ValidationError(
        f"Cannot read a table from {type(source).__name__}",
        suggestions=["Pass a table name, in_schema(schema, table) or sql(query)"],
    )


class SimulatedConnection:
    """
    A backend that renders SQL for a dialect but cannot run it.

    Tables are registered with their column names (and optionally types)
    with ``register_table``; ``tbl()`` then works as on a real connection.
    """

    is_simulated = True

    def __init__(self, dialect: Dialect, dialect_name: str):
        self.dialect = dialect
        self.dialect_name = dialect_name
        self._tables: Dict[Tuple[Optional[str], str], List[sa.ColumnClause]] = {}
        self._names = itertools.count(1)

    def __repr__(self) -> str:
        return f"<SimulatedConnection {self.dialect_name}>"

    def register_table(
        self,
        name: str,
        columns: Union[Sequence[str], Mapping[str, Any]],
        schema: Optional[str] = None,
    ) -> None:
        """Declare a table; ``columns`` is a list of names or ``{name: type}``."""
        if isinstance(columns, Mapping):
            items = list(columns.items())
        else:
            items = [(c, None) for c in columns]
        if not items:
            raise ValidationError(f"Table '{name}' needs at least one column")
        self._tables[(schema, name)] = [sa.column(c, t) for c, t in items]

    def list_tables(self) -> List[str]:
        return sorted(name for _, name in self._tables)

    def table_source(self, name: str, schema: Optional[str] = None) -> TableClause:
        columns = self._tables.get((schema, name))
        if columns is None:
            raise DataError(
                f"Table '{name}' is not registered on the simulated "
                f"{self.dialect_name} connection",
                suggestions=SuggestionGenerator.suggest_fix_for_missing_table(
                    name, self.list_tables()
                ),
            )
        return sa.table(name, *[sa.column(c.name, c.type) for c in columns], schema=schema)

    def query_source(self, query: SqlQuery, alias: str) -> FromClause:
        if not query.columns:
            raise TranslationError(
                "A simulated connection cannot discover the columns of a SQL query",
                dialect=self.dialect_name,
                suggestions=['Pass them explicitly: sql("SELECT ...", columns=[...])'],
            )
        return (
            sa.text(query.text)
            .columns(*[sa.column(c) for c in query.columns])
            .subquery(alias)
        )

    def tbl(self, source: TableSource) -> LazyTable:
        return lazy_table(self, source)

    def unique_table_name(self) -> str:
        return f"{DEFAULT_TEMP_PREFIX}{next(self._names):03d}"

    def _cannot_execute(self, operation: str) -> TranslationError:
        return TranslationError(
            f"Cannot {operation} on a simulated {self.dialect_name} connection",
            dialect=self.dialect_name,
            suggestions=["Use show_query() or sql_render() to inspect the SQL"],
        )

    def run_select(self, stmt: Any) -> pd.DataFrame:
        raise self._cannot_execute("run a query")

    def create_table_as(self, stmt: Any, name: str, temporary: bool = True) -> None:
        raise self._cannot_execute("create a table")

    def upload(
        self, df: pd.DataFrame, name: Optional[str] = None, temporary: bool = True
    ) -> str:
        raise self._cannot_execute("upload data")


def simulate_dbi() -> SimulatedConnection:
    """Generic ANSI-style SQL."""
    return SimulatedConnection(DefaultDialect(), "dbi")


def simulate_sqlite() -> SimulatedConnection:
    return SimulatedConnection(SQLiteDialect(), "sqlite")


def simulate_postgres() -> SimulatedConnection:
    return SimulatedConnection(PGDialect(), "postgresql")


def simulate_mysql() -> SimulatedConnection:
    return SimulatedConnection(MySQLDialect(), "mysql")


def simulate_mssql() -> SimulatedConnection:
    return SimulatedConnection(MSDialect(), "mssql")


def simulate_oracle() -> SimulatedConnection:
    return SimulatedConnection(OracleDialect(), "oracle")


def simulate_duckdb() -> SimulatedConnection:
    """DuckDB SQL; needs the ``duckdb-engine`` package."""
    try:
        import duckdb_engine
    except ImportError as e:
        raise ConfigurationError(
            "simulate_duckdb() needs the duckdb-engine package",
            suggestions=["pip install 'dbframe[duckdb]'"],
            cause=e,
        ) from e
    return SimulatedConnection(duckdb_engine.Dialect(), "duckdb")


_SIMULATORS: Dict[str, Callable[[], SimulatedConnection]] = {
    "dbi": simulate_dbi,
    "sqlite": simulate_sqlite,
    "duckdb": simulate_duckdb,
    "postgres": simulate_postgres,
    "postgresql": simulate_postgres,
    "mysql": simulate_mysql,
    "mssql": simulate_mssql,
    "oracle": simulate_oracle,
}


def simulate_dialect(name: str) -> SimulatedConnection:
    """Simulated connection by dialect name, e.g. ``"postgres"``."""
    factory = _SIMULATORS.get(name.lower())
    if factory is None:
        raise ConfigurationError(
            f"Unknown dialect '{name}'",
            context={"dialect": name},
            suggestions=[f"Use one of: {', '.join(sorted(_SIMULATORS))}"],
        )
    return factory()


def lazy_frame(
    columns: Union[Sequence[str], Mapping[str, Any], pd.DataFrame],
    con: Optional[SimulatedConnection] = None,
    name: str = "df",
) -> LazyTable:
    """
    A LazyTable over a simulated table, for inspecting generated SQL.

    Args:
        columns: Column names, a ``{name: SQLAlchemy type}`` mapping, or a
            DataFrame whose columns and dtypes are used
        con: Simulated connection; generic SQL when omitted
        name: Table name used in the FROM clause

    Returns:
        LazyTable whose execution methods raise TranslationError
    """
    from dbframe.dbi.table_operations import sqlalchemy_type_for

    con = con or simulate_dbi()
    if isinstance(columns, pd.DataFrame):
        table_columns: Any = {
            str(c): sqlalchemy_type_for(columns[c]) for c in columns.columns
        }
    else:
        table_columns = columns
    con.register_table(name, table_columns)
    return con.tbl(name)
