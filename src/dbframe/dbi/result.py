"""
Paged result sets.

A ResultSet wraps an open SQLAlchemy cursor so rows can be fetched in
chunks instead of all at once.
"""

from __future__ import annotations

from typing import Any, Callable, List, Optional

import pandas as pd

from dbframe_base.errors import ResultSetError
from dbframe_base.logging import get_logger

logger = get_logger("dbframe.result")


class ResultSet:
    """
    An open query whose rows are fetched on demand.

    Attributes:
        sql: The statement that produced this result set
        columns: Column names of the result
        row_count: Number of rows fetched so far

    Example:
        >>> rs = con.send_query("SELECT * FROM flights")
        >>> while not rs.has_completed():
        ...     chunk = rs.fetch(100)
        >>> rs.clear()
    """

    def __init__(
        self,
        cursor: Any,
        sql: str,
        page_size: int = 1000,
        on_clear: Optional[Callable[["ResultSet"], None]] = None,
    ):
        self._cursor = cursor
        self.sql = sql
        self.page_size = page_size
        self.columns: List[str] = list(cursor.keys()) if cursor.returns_rows else []
        self.row_count = 0
        self._completed = not cursor.returns_rows
        self._cleared = False
        self._on_clear = on_clear

    def fetch(self, n: int = -1) -> pd.DataFrame:
        """
        Fetch the next rows.

        Args:
            n: Maximum number of rows; negative (the default) fetches every
               remaining row

        Returns:
            DataFrame with at most ``n`` rows and the result's columns

        Raises:
            ResultSetError: If the result set was cleared
        """
        if self._cleared:
            raise ResultSetError("Result set has been cleared", sql=self.sql)
        if self._completed:
            return pd.DataFrame(columns=self.columns)

        if n < 0:
            rows = self._cursor.fetchall()
            self._completed = True
        else:
            rows = self._cursor.fetchmany(n) if n else []
            if n and len(rows) < n:
                self._completed = True

        self.row_count += len(rows)
        return pd.DataFrame([tuple(r) for r in rows], columns=self.columns)

    def has_completed(self) -> bool:
        """Return True once every row has been fetched."""
        return self._completed

    @property
    def is_cleared(self) -> bool:
        return self._cleared

    def clear(self) -> None:
        """Close the underlying cursor. Safe to call more than once."""
        if self._cleared:
            return
        if not self._completed:
            logger.warning(
                "Closing result set with pending rows", fetched=self.row_count
            )
        self._cursor.close()
        self._cleared = True
        if self._on_clear is not None:
            self._on_clear(self)

    def __iter__(self):
        while not self.has_completed():
            chunk = self.fetch(self.page_size)
            if len(chunk):
                yield chunk

    def __enter__(self) -> "ResultSet":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.clear()

    def __repr__(self) -> str:
        state = "cleared" if self._cleared else (
            "completed" if self._completed else "open"
        )
        return f"ResultSet({self.sql!r}, rows_fetched={self.row_count}, {state})"
