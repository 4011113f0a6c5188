"""
dbframe - talk to SQL databases with dataframe verbs.

Two layers:

- ``dbframe.dbi``: connections, queries, result sets and table management
- ``dbframe.translate``: lazy tables whose verbs build SQL, run only on
  ``collect()``

Example:
    >>> from dbframe import connect, col, desc, fn, load_sample_tables
    >>> con = connect()
    >>> load_sample_tables(con)
    >>> (
    ...     con.tbl("flights")
    ...     .group_by("dest")
    ...     .summarise(delay=fn.mean("arr_delay", na_rm=True))
    ...     .arrange(desc("delay"))
    ...     .head(5)
    ...     .collect()
    ... )
"""

from dbframe_base import (
    ConfigurationError,
    ConnectionConfig,
    DatabaseConnectionError,
    DataError,
    DbFrameError,
    QueryError,
    ReadOnlyError,
    ResultSetError,
    TranslationError,
    ValidationError,
    __version__,
    config_from_env,
    create_duckdb_config,
    create_memory_config,
    create_sqlite_config,
    enable_console_logging,
    log_to_file,
)

from .datasets import load_sample_tables, sample_frames
from .dbi import Connection, ResultSet, connect
from .translate import (
    LazyTable,
    SimulatedConnection,
    asc,
    col,
    desc,
    fn,
    in_schema,
    lazy_frame,
    lit,
    simulate_dbi,
    simulate_dialect,
    simulate_duckdb,
    simulate_mssql,
    simulate_mysql,
    simulate_oracle,
    simulate_postgres,
    simulate_sqlite,
    sql,
)

__all__ = [
    "ConfigurationError",
    "Connection",
    "ConnectionConfig",
    "DataError",
    "DatabaseConnectionError",
    "DbFrameError",
    "LazyTable",
    "QueryError",
    "ReadOnlyError",
    "ResultSet",
    "ResultSetError",
    "SimulatedConnection",
    "TranslationError",
    "ValidationError",
    "__version__",
    "asc",
    "col",
    "config_from_env",
    "connect",
    "create_duckdb_config",
    "create_memory_config",
    "create_sqlite_config",
    "desc",
    "enable_console_logging",
    "fn",
    "in_schema",
    "lazy_frame",
    "lit",
    "load_sample_tables",
    "log_to_file",
    "sample_frames",
    "simulate_dbi",
    "simulate_dialect",
    "simulate_duckdb",
    "simulate_mssql",
    "simulate_mysql",
    "simulate_oracle",
    "simulate_postgres",
    "simulate_sqlite",
    "sql",
]
