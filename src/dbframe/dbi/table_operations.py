"""
SQL table operations for the connection layer.

This module contains functions for creating, writing, probing and dropping
tables through a SQLAlchemy connection.
"""

from __future__ import annotations

import datetime
from typing import Any, Dict, List, Optional

import pandas as pd
from pandas.api import types as ptypes
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    Integer,
    MetaData,
    Table,
    Text,
    inspect,
    text,
)
from sqlalchemy.engine import Connection as SAConnection

from dbframe_base.config import validate_identifier
from dbframe_base.errors import DataError, ValidationError
from dbframe_base.logging import get_logger

logger = get_logger("dbframe.table_operations")


def fqn(schema: Optional[str], table: str) -> str:
    """
    Create a fully qualified table name.

    Args:
        schema: Database schema name (may be None)
        table: Table name

    Returns:
        ``schema.table``, or just ``table`` when no schema is given

    Raises:
        ValueError: If table is empty
    """
    if not table:
        raise ValueError("Table name cannot be empty")
    return f"{schema}.{table}" if schema else table


def quote_name(conn: SAConnection, name: str, schema: Optional[str] = None) -> str:
    """Quote a (possibly schema-qualified) table name for the connection's dialect."""
    preparer = conn.dialect.identifier_preparer
    quoted = preparer.quote(name)
    if schema:
        return f"{preparer.quote_schema(schema)}.{quoted}"
    return quoted


def create_schema_if_not_exists(conn: SAConnection, schema: Optional[str]) -> None:
    """
    Create a database schema if it does not exist.

    Args:
        conn: SQLAlchemy connection
        schema: Schema name to create

    Raises:
        DataError: If schema creation fails
    """
    if not schema:
        return

    if conn.dialect.name == "sqlite":
        logger.debug("SQLite dialect detected, skipping schema creation")
        return

    try:
        if schema in inspect(conn).get_schema_names():
            return
        conn.execute(text(f"CREATE SCHEMA IF NOT EXISTS {quote_name(conn, schema)}"))
        conn.commit()
        logger.info(f"Created schema: {schema}")
    except Exception as e:
        raise DataError(f"Failed to create schema '{schema}': {e}", cause=e) from e


def list_table_names(conn: SAConnection, schema: Optional[str] = None) -> List[str]:
    """Return permanent tables, views and temporary tables visible on ``conn``."""
    inspector = inspect(conn)
    names = set(inspector.get_table_names(schema=schema))
    names.update(inspector.get_view_names(schema=schema))
    if schema is None:
        try:
            names.update(inspector.get_temp_table_names())
        except NotImplementedError:
            # Dialects without a temp catalog list temp tables with the rest
            pass
    return sorted(names)


def table_exists(conn: SAConnection, table: str, schema: Optional[str] = None) -> bool:
    """
    Check if a table exists.

    Args:
        conn: SQLAlchemy connection
        table: Table name
        schema: Schema name

    Returns:
        True if table exists, False otherwise
    """
    return table in list_table_names(conn, schema)


def drop_table(
    conn: SAConnection, table: str, schema: Optional[str] = None, commit: bool = True
) -> None:
    """
    Drop a table if it exists.

    ``commit=False`` leaves the drop inside the caller's open transaction.
    """
    conn.execute(text(f"DROP TABLE IF EXISTS {quote_name(conn, table, schema)}"))
    if commit:
        conn.commit()
    logger.info(f"Dropped table '{fqn(schema, table)}'")


def query_columns(conn: SAConnection, from_sql: str) -> List[str]:
    """
    Return the column names produced by a FROM item without fetching rows.

    Args:
        conn: SQLAlchemy connection
        from_sql: A quoted table name or a parenthesised, aliased subquery

    Returns:
        Column names in order
    """
    result = conn.exec_driver_sql(f"SELECT * FROM {from_sql} WHERE 1 = 0")
    try:
        return list(result.keys())
    finally:
        result.close()


def sqlalchemy_type_for(series: pd.Series) -> Any:
    """Map a pandas dtype to the SQLAlchemy column type used to store it."""
    if ptypes.is_bool_dtype(series):
        return Boolean()
    if ptypes.is_integer_dtype(series):
        return Integer()
    if ptypes.is_float_dtype(series):
        return Float()
    if ptypes.is_datetime64_any_dtype(series):
        return DateTime()
    if ptypes.is_object_dtype(series):
        sample = series.dropna()
        if len(sample) and all(isinstance(v, bool) for v in sample):
            return Boolean()
        if len(sample) and all(
            isinstance(v, int) and not isinstance(v, bool) for v in sample
        ):
            return Integer()
        if len(sample) and all(isinstance(v, datetime.datetime) for v in sample):
            return DateTime()
        if len(sample) and all(isinstance(v, datetime.date) for v in sample):
            return Date()
    return Text()


def frame_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Convert a DataFrame into insertable rows, turning NaN/NaT into None."""
    cleaned = df.astype(object).where(df.notna(), None)
    return cleaned.to_dict(orient="records")


def frame_to_table(
    conn: SAConnection,
    df: pd.DataFrame,
    table: str,
    *,
    schema: Optional[str] = None,
    mode: str = "create",
    temporary: bool = False,
) -> int:
    """
    Write a DataFrame to a SQL table.

    Args:
        conn: SQLAlchemy connection
        df: Data to write
        table: Table name
        schema: Schema name
        mode: "create" (fail if the table exists), "overwrite" (drop and
            recreate in the same transaction as the insert, so a failed
            write keeps the old table) or "append" (insert into the existing
            table)
        temporary: Create the table as a connection-scoped temporary table

    Returns:
        Number of rows written

    Raises:
        ValidationError: If the mode, table name or columns are invalid
        DataError: If the table exists in "create" mode or the write fails
    """
    if mode not in ("create", "overwrite", "append"):
        raise ValidationError(
            f"Unknown write mode {mode!r}", field="mode", value=mode
        )
    problems = validate_identifier(table)
    if problems:
        raise ValidationError(
            f"Invalid table name: {'; '.join(problems)}", field="table", value=table
        )
    columns = [str(c) for c in df.columns]
    if len(set(columns)) != len(columns):
        raise ValidationError("DataFrame has duplicate column names", field="columns")

    identifier = fqn(schema, table)
    exists = table_exists(conn, table, schema)
    if exists and mode == "create":
        raise DataError(
            f"Table {identifier} already exists",
            suggestions=["Pass overwrite=True or append=True"],
        )

    records = frame_records(df)
    types = {name: sqlalchemy_type_for(df[name]) for name in df.columns}
    if not exists:
        create_schema_if_not_exists(conn, schema)

    try:
        if exists and mode == "overwrite":
            drop_table(conn, table, schema, commit=False)
            exists = False

        metadata = MetaData()
        if exists:
            target = Table(table, metadata, schema=schema, autoload_with=conn)
        else:
            target = Table(
                table,
                metadata,
                *[Column(name, types[name]) for name in df.columns],
                schema=schema,
                prefixes=["TEMPORARY"] if temporary else [],
            )
            target.create(bind=conn)
            logger.info(
                f"Created {'temporary ' if temporary else ''}table '{identifier}'",
                columns=len(columns),
            )

        if records:
            conn.execute(target.insert(), records)
        conn.commit()
    except Exception as e:
        conn.rollback()
        raise DataError(f"Failed to write table {identifier}: {e}", cause=e) from e

    logger.info(f"Wrote {len(records)} rows to {identifier} in {mode} mode")
    return len(records)
