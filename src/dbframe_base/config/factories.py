"""
Configuration factory functions for creating preset configurations.

This module provides factory functions for creating ConnectionConfig
instances for the common backends.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from ..errors import ConfigurationError
from .models import MEMORY_URL, ConnectionConfig

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def create_memory_config(**overrides: Any) -> ConnectionConfig:
    """
    Create a ConnectionConfig for a throwaway in-memory SQLite database.

    Args:
        **overrides: Additional configuration parameters to override defaults

    Returns:
        ConnectionConfig instance

    Example:
        >>> config = create_memory_config(verbose=True)
    """
    return ConnectionConfig(url=MEMORY_URL, **overrides)


def create_sqlite_config(
    path: Union[str, Path], read_only: bool = False, **overrides: Any
) -> ConnectionConfig:
    """
    Create a ConnectionConfig for a SQLite database file.

    Read-only access opens the file through SQLite's URI syntax so the
    driver itself refuses writes.

    Args:
        path: Database file path
        read_only: Open the database in read-only mode
        **overrides: Additional configuration parameters to override defaults

    Returns:
        ConnectionConfig instance
    """
    path = Path(path)
    if read_only:
        url = f"sqlite:///file:{path.as_posix()}?mode=ro&uri=true"
    else:
        url = f"sqlite:///{path.as_posix()}"
    return ConnectionConfig(url=url, read_only=read_only, **overrides)


def create_duckdb_config(
    path: Union[str, Path] = ":memory:", read_only: bool = False, **overrides: Any
) -> ConnectionConfig:
    """
    Create a ConnectionConfig for DuckDB (requires ``duckdb-engine``).

    Args:
        path: Database file path, or ":memory:"
        read_only: Open the database in read-only mode
        **overrides: Additional configuration parameters to override defaults

    Returns:
        ConnectionConfig instance

    Example:
        >>> config = create_duckdb_config("flights.duckdb", read_only=True)
    """
    connect_args = dict(overrides.pop("connect_args", {}))
    if read_only:
        if str(path) == ":memory:":
            raise ConfigurationError(
                "An in-memory DuckDB database cannot be opened read-only"
            )
        connect_args["read_only"] = True
    target = str(path) if str(path) == ":memory:" else Path(path).as_posix()
    return ConnectionConfig(
        url=f"duckdb:///{target}",
        read_only=read_only,
        connect_args=connect_args,
        **overrides,
    )


def config_from_env(
    prefix: str = "DBFRAME_", environ: Optional[Mapping[str, str]] = None
) -> ConnectionConfig:
    """
    Build a ConnectionConfig from environment variables.

    Recognised variables (with the default prefix): ``DBFRAME_URL``,
    ``DBFRAME_READ_ONLY``, ``DBFRAME_ECHO``, ``DBFRAME_VERBOSE``,
    ``DBFRAME_PAGE_SIZE`` and ``DBFRAME_TEMP_PREFIX``.

    Args:
        prefix: Variable name prefix
        environ: Mapping to read from (defaults to ``os.environ``)

    Returns:
        ConnectionConfig instance

    Raises:
        ConfigurationError: If a variable cannot be parsed
    """
    env = os.environ if environ is None else environ
    values: dict = {}

    url = env.get(f"{prefix}URL")
    if url:
        values["url"] = url

    for key in ("read_only", "echo", "verbose"):
        raw = env.get(f"{prefix}{key.upper()}")
        if raw is not None:
            values[key] = _parse_bool(f"{prefix}{key.upper()}", raw)

    page_size = env.get(f"{prefix}PAGE_SIZE")
    if page_size is not None:
        try:
            values["page_size"] = int(page_size)
        except ValueError as e:
            raise ConfigurationError(
                f"{prefix}PAGE_SIZE must be an integer, got {page_size!r}"
            ) from e

    temp_prefix = env.get(f"{prefix}TEMP_PREFIX")
    if temp_prefix:
        values["temp_prefix"] = temp_prefix

    config = ConnectionConfig(**values)
    config.validate()
    return config


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean flag, got {raw!r}")
