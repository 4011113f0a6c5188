"""
Type definitions shared by the connection and translation layers.

This module defines the backend protocol a LazyTable talks to. Both a live
``Connection`` and a ``SimulatedConnection`` implement it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol

if TYPE_CHECKING:
    import pandas as pd
    from sqlalchemy.engine import Dialect
    from sqlalchemy.sql.selectable import FromClause, Select

    from dbframe.translate.backends import SqlQuery


class BackendProtocol(Protocol):
    """Protocol for objects a LazyTable can render against and execute on."""

    dialect: "Dialect"
    dialect_name: str
    is_simulated: bool

    def table_source(self, name: str, schema: Optional[str] = None) -> "FromClause":
        """Return a table clause with its columns for ``name``."""
        ...

    def query_source(self, query: "SqlQuery", alias: str) -> "FromClause":
        """Return an aliased subquery with its columns for a SQL query."""
        ...

    def run_select(self, stmt: "Select") -> "pd.DataFrame":
        """Execute a SELECT and return all rows."""
        ...

    def create_table_as(self, stmt: "Select", name: str, temporary: bool = True) -> None:
        """Materialise a SELECT as a new table."""
        ...

    def upload(
        self, df: "pd.DataFrame", name: Optional[str] = None, temporary: bool = True
    ) -> str:
        """Write a DataFrame as a table and return its name."""
        ...

    def unique_table_name(self) -> str:
        """Return a table name not used on this backend."""
        ...

