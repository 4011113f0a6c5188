"""
Database connections.

A ``Connection`` owns one SQLAlchemy engine and one open DBAPI connection
for its whole lifetime. Everything runs on that single connection, so
temporary tables created through it stay visible until ``disconnect()``.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, Dict, List, Optional, Union

import pandas as pd
import sqlalchemy as sa
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import NoSuchModuleError, SQLAlchemyError
from sqlalchemy.sql.selectable import FromClause, Select, TableClause

from dbframe_base.config import ConnectionConfig, validate_identifier
from dbframe_base.context import SuggestionGenerator
from dbframe_base.errors import (
    ConfigurationError,
    DatabaseConnectionError,
    DataError,
    QueryError,
    ReadOnlyError,
    ValidationError,
)
from dbframe_base.logging import enable_console_logging, get_logger

from ..translate.backends import SqlQuery, TableSource, lazy_table
from ..translate.lazy import LazyTable
from .result import ResultSet
from .table_operations import (
    drop_table,
    fqn,
    frame_to_table,
    list_table_names,
    query_columns,
    quote_name,
    table_exists,
)

logger = get_logger("dbframe.connection")

Params = Optional[Dict[str, Any]]


def connect(
    url_or_config: Union[str, ConnectionConfig, None] = None, **overrides: Any
) -> "Connection":
    """
    Open a connection.

    Args:
        url_or_config: SQLAlchemy URL or a ConnectionConfig; in-memory
            SQLite when omitted
        **overrides: ConnectionConfig fields to override, e.g.
            ``read_only=True``

    Returns:
        An open Connection

    Example:
        >>> con = connect()
        >>> con = connect("duckdb:///flights.duckdb", read_only=True)
    """
    if url_or_config is None:
        config = ConnectionConfig()
    elif isinstance(url_or_config, ConnectionConfig):
        config = url_or_config
    elif isinstance(url_or_config, str):
        config = ConnectionConfig(url=url_or_config)
    else:
        raise ConfigurationError(
            "connect() expects a URL or ConnectionConfig, "
            f"got {type(url_or_config).__name__}"
        )
    if overrides:
        config = config.with_overrides(**overrides)
    return Connection(config)


class Connection:
    """
    A live database session.

    Attributes:
        config: The configuration this connection was opened with
        dialect: SQLAlchemy dialect of the database
        dialect_name: Dialect name, e.g. "sqlite" or "duckdb"

    Example:
        >>> with connect() as con:
        ...     con.write_table("flights", flights_df)
        ...     con.tbl("flights").count("carrier").collect()
    """

    is_simulated = False

    def __init__(self, config: ConnectionConfig):
        config.validate()
        self.config = config
        self.logger = logger
        if config.verbose:
            enable_console_logging()
        self._display_url = make_url(config.url).render_as_string(hide_password=True)
        self._engine: Optional[Engine] = None
        self._conn: Optional[sa.Connection] = None
        self._result: Optional[ResultSet] = None
        self._names = itertools.count(1)

        try:
            self._engine = create_engine(
                config.url, echo=config.echo, connect_args=dict(config.connect_args)
            )
            if self._engine.driver == "pysqlite":
                _use_transactional_ddl(self._engine)
            self._conn = self._engine.connect()
        except NoSuchModuleError as e:
            raise ConfigurationError(
                f"No SQLAlchemy dialect installed for '{config.backend}'",
                context={"url": self._display_url},
                suggestions=["pip install 'dbframe[duckdb]' for DuckDB support"],
                cause=e,
            ) from e
        except SQLAlchemyError as e:
            if self._engine is not None:
                self._engine.dispose()
            raise DatabaseConnectionError(
                f"Could not connect: {_reason(e)}", url=self._display_url, cause=e
            ) from e

        self.dialect = self._engine.dialect
        self.dialect_name = self._engine.dialect.name
        self.logger.info(
            f"Connected to {self._display_url}",
            dialect=self.dialect_name,
            read_only=config.read_only,
        )

    def __repr__(self) -> str:
        state = "open" if self.is_valid() else "closed"
        return f"<Connection {self._display_url} [{self.dialect_name}, {state}]>"

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.disconnect()

    @property
    def read_only(self) -> bool:
        return self.config.read_only

    # ------------------------------------------------------------------
    # Lifecycle

    def is_valid(self) -> bool:
        return self._conn is not None and not self._conn.closed

    def disconnect(self) -> None:
        """Close the connection and dispose of the engine. Safe to call twice."""
        if self._conn is None:
            return
        if self._result is not None:
            self._result.clear()
        self._conn.close()
        self._conn = None
        if self._engine is not None:
            self._engine.dispose()
        self.logger.info(f"Disconnected from {self._display_url}")

    close = disconnect

    def _connection(self) -> sa.Connection:
        if self._conn is None or self._conn.closed:
            raise DatabaseConnectionError(
                "Connection is closed",
                url=self._display_url,
                suggestions=["Open a new connection with connect()"],
            )
        return self._conn

    def _require_writable(self, operation: str) -> None:
        self._connection()
        if self.config.read_only:
            raise ReadOnlyError(operation)

    def _run(self, statement: Any, params: Params = None) -> Any:
        conn = self._connection()
        if self.logger.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug(f"Executing: {self._statement_sql(statement)}")
        try:
            with self.logger.time_operation("query"):
                return conn.execute(statement, params or {})
        except SQLAlchemyError as e:
            conn.rollback()
            raise QueryError(
                f"Query failed: {_reason(e)}", sql=self._statement_sql(statement), cause=e
            ) from e

    def _statement_sql(self, statement: Any) -> str:
        if isinstance(statement, sa.TextClause):
            return statement.text
        return str(statement.compile(dialect=self.dialect))

    # ------------------------------------------------------------------
    # Tables

    def list_tables(self) -> List[str]:
        """Names of tables, views and temporary tables, sorted."""
        return list_table_names(self._connection())

    def exists_table(self, name: str) -> bool:
        return name in self.list_tables()

    def list_fields(self, name: str) -> List[str]:
        """Column names of a table, in table order."""
        self._require_table(name)
        return query_columns(self._connection(), quote_name(self._connection(), name))

    def read_table(self, name: str) -> pd.DataFrame:
        self._require_table(name)
        return self.get_query(f"SELECT * FROM {quote_name(self._connection(), name)}")

    def write_table(
        self,
        name: str,
        df: pd.DataFrame,
        overwrite: bool = False,
        append: bool = False,
        temporary: bool = False,
    ) -> int:
        """
        Create a table from a DataFrame.

        Args:
            name: Table name
            df: Data to write
            overwrite: Replace the table if it exists
            append: Insert into the table if it exists
            temporary: Create a temporary table, dropped on disconnect

        Returns:
            Number of rows written

        Raises:
            ReadOnlyError: On a read-only connection
            ValidationError: If both overwrite and append are set
            DataError: If the table exists and neither flag is set
        """
        self._require_writable("write table")
        if overwrite and append:
            raise ValidationError(
                "write_table() accepts overwrite=True or append=True, not both"
            )
        mode = "overwrite" if overwrite else ("append" if append else "create")
        return frame_to_table(
            self._connection(), df, name, mode=mode, temporary=temporary
        )

    def remove_table(self, name: str, fail_if_missing: bool = True) -> None:
        self._require_writable("remove table")
        if not table_exists(self._connection(), name):
            if fail_if_missing:
                raise DataError(
                    f"Table '{name}' does not exist",
                    suggestions=SuggestionGenerator.suggest_fix_for_missing_table(
                        name, self.list_tables()
                    ),
                )
            return
        drop_table(self._connection(), name)

    def _require_table(self, name: str, schema: Optional[str] = None) -> None:
        if not table_exists(self._connection(), name, schema):
            raise DataError(
                f"Table '{fqn(schema, name)}' does not exist",
                suggestions=SuggestionGenerator.suggest_fix_for_missing_table(
                    name, list_table_names(self._connection(), schema)
                ),
            )

    # ------------------------------------------------------------------
    # Queries

    def get_query(self, sql: str, params: Params = None) -> pd.DataFrame:
        """Run a query and return every row."""
        result = self._run(text(sql), params)
        try:
            return _frame(result)
        finally:
            result.close()

    def send_query(self, sql: str, params: Params = None) -> ResultSet:
        """
        Run a query and return a ResultSet to fetch rows from in pages.

        Only one result set can be open: an unfinished previous one is
        cleared with a warning.
        """
        if self._result is not None:
            self.logger.warning("Clearing the previous result set before a new query")
            self._result.clear()
        cursor = self._run(text(sql), params)
        self._result = ResultSet(
            cursor, sql, page_size=self.config.page_size, on_clear=self._forget_result
        )
        return self._result

    def _forget_result(self, result: ResultSet) -> None:
        if self._result is result:
            self._result = None

    def execute(self, sql: str, params: Params = None) -> int:
        """Run a statement that returns no rows and commit it."""
        self._require_writable("execute statements")
        result = self._run(text(sql), params)
        self._connection().commit()
        rowcount = result.rowcount
        result.close()
        self.logger.debug("Executed statement", rows=rowcount)
        return rowcount

    # ------------------------------------------------------------------
    # Lazy tables

    def tbl(self, source: TableSource) -> LazyTable:
        """
        A LazyTable over a table name, ``in_schema(schema, table)`` or
        ``sql("SELECT ...")``.
        """
        return lazy_table(self, source)

    def copy_to(
        self,
        df: pd.DataFrame,
        name: Optional[str] = None,
        temporary: bool = True,
        overwrite: bool = False,
    ) -> LazyTable:
        """Upload a DataFrame and return a LazyTable over it."""
        self._require_writable("copy data")
        target = name or self.unique_table_name()
        frame_to_table(
            self._connection(),
            df,
            target,
            mode="overwrite" if overwrite else "create",
            temporary=temporary,
        )
        return self.tbl(target)

    def table_source(self, name: str, schema: Optional[str] = None) -> TableClause:
        self._require_table(name, schema)
        from_sql = quote_name(self._connection(), name, schema)
        columns = query_columns(self._connection(), from_sql)
        return sa.table(name, *[sa.column(c) for c in columns], schema=schema)

    def query_source(self, query: SqlQuery, alias: str) -> FromClause:
        columns = query.columns
        if not columns:
            quoted = self.dialect.identifier_preparer.quote(alias)
            try:
                columns = tuple(
                    query_columns(self._connection(), f"({query.text}) AS {quoted}")
                )
            except SQLAlchemyError as e:
                self._connection().rollback()
                raise QueryError(
                    f"Query failed: {_reason(e)}", sql=query.text, cause=e
                ) from e
        return (
            text(query.text)
            .columns(*[sa.column(c) for c in columns])
            .subquery(alias)
        )

    def run_select(self, stmt: Select) -> pd.DataFrame:
        result = self._run(stmt)
        try:
            return _frame(result)
        finally:
            result.close()

    def create_table_as(self, stmt: Select, name: str, temporary: bool = True) -> None:
        """``CREATE [TEMPORARY] TABLE name AS <stmt>``."""
        self._require_writable("create table")
        problems = validate_identifier(name)
        if problems:
            raise ValidationError(
                f"Invalid table name: {'; '.join(problems)}", field="name", value=name
            )
        if table_exists(self._connection(), name):
            raise DataError(
                f"Table {name} already exists",
                suggestions=["Choose another name or remove the table first"],
            )
        compiled = stmt.compile(
            dialect=self.dialect, compile_kwargs={"literal_binds": True}
        )
        prefix = "CREATE TEMPORARY TABLE" if temporary else "CREATE TABLE"
        quoted = quote_name(self._connection(), name)
        sql = f"{prefix} {quoted} AS {compiled}"
        conn = self._connection()
        try:
            conn.exec_driver_sql(sql)
        except SQLAlchemyError as e:
            conn.rollback()
            raise QueryError(f"Query failed: {_reason(e)}", sql=sql, cause=e) from e
        conn.commit()
        self.logger.info(
            f"Created {'temporary ' if temporary else ''}table '{name}' from query"
        )

    def upload(
        self, df: pd.DataFrame, name: Optional[str] = None, temporary: bool = True
    ) -> str:
        self._require_writable("copy data")
        target = name or self.unique_table_name()
        frame_to_table(self._connection(), df, target, temporary=temporary)
        return target

    def unique_table_name(self) -> str:
        """Next ``<temp_prefix>NNN`` name not already used on this connection."""
        existing = set(self.list_tables())
        while True:
            candidate = f"{self.config.temp_prefix}{next(self._names):03d}"
            if candidate not in existing:
                return candidate


def _use_transactional_ddl(engine: Engine) -> None:
    """
    Run pysqlite statements, DDL included, inside real transactions.

    The driver otherwise commits CREATE and DROP on its own, so a failed
    overwrite could not be rolled back.
    """

    @event.listens_for(engine, "connect")
    def _driver_autocommit(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")


def _frame(result: Any) -> pd.DataFrame:
    columns = list(result.keys())
    return pd.DataFrame([tuple(row) for row in result.fetchall()], columns=columns)


def _reason(error: SQLAlchemyError) -> str:
    orig = getattr(error, "orig", None)
    return str(orig) if orig is not None else str(error).split("\n")[0]
