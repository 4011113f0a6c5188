"""
Configuration models, factory functions and validators.
"""

from .factories import (
    config_from_env,
    create_duckdb_config,
    create_memory_config,
    create_sqlite_config,
)
from .models import DEFAULT_PAGE_SIZE, DEFAULT_TEMP_PREFIX, ConnectionConfig
from .validators import validate_connection_config, validate_identifier

__all__ = [
    "ConnectionConfig",
    "DEFAULT_PAGE_SIZE",
    "DEFAULT_TEMP_PREFIX",
    "config_from_env",
    "create_duckdb_config",
    "create_memory_config",
    "create_sqlite_config",
    "validate_connection_config",
    "validate_identifier",
]
