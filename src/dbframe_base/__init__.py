"""
dbframe base - shared configuration, errors and logging.

This package contains the ambient pieces used by both the connection
layer and the translation layer of dbframe.
"""

__version__ = "0.3.0"

from .config import (
    ConnectionConfig,
    config_from_env,
    create_duckdb_config,
    create_memory_config,
    create_sqlite_config,
    validate_connection_config,
    validate_identifier,
)
from .context import SuggestionGenerator
from .errors import (
    ConfigurationError,
    DatabaseConnectionError,
    DataError,
    DbFrameError,
    ErrorCategory,
    ErrorSeverity,
    QueryError,
    ReadOnlyError,
    ResultSetError,
    TranslationError,
    ValidationError,
)
from .logging import (
    FrameLogger,
    disable_console_logging,
    enable_console_logging,
    get_logger,
    log_to_file,
)

__all__ = [
    "ConfigurationError",
    "ConnectionConfig",
    "DataError",
    "DatabaseConnectionError",
    "DbFrameError",
    "ErrorCategory",
    "ErrorSeverity",
    "FrameLogger",
    "QueryError",
    "ReadOnlyError",
    "ResultSetError",
    "SuggestionGenerator",
    "TranslationError",
    "ValidationError",
    "config_from_env",
    "create_duckdb_config",
    "create_memory_config",
    "create_sqlite_config",
    "disable_console_logging",
    "enable_console_logging",
    "get_logger",
    "log_to_file",
    "validate_connection_config",
    "validate_identifier",
]
