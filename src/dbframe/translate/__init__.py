"""
Dataframe verbs translated to SQL.
"""

from .backends import (
    InSchema,
    SimulatedConnection,
    SqlQuery,
    in_schema,
    lazy_frame,
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
from .expressions import asc, col, desc, lit
from .functions import fn
from .lazy import LazyTable

__all__ = [
    "InSchema",
    "LazyTable",
    "SimulatedConnection",
    "SqlQuery",
    "asc",
    "col",
    "desc",
    "fn",
    "in_schema",
    "lazy_frame",
    "lit",
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
