"""
Connection configuration model.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict

from ..errors import ConfigurationError

DEFAULT_PAGE_SIZE = 1000
DEFAULT_TEMP_PREFIX = "dbframe_"
MEMORY_URL = "sqlite://"


@dataclass(frozen=True)
class ConnectionConfig:
    """Settings used to open a database connection.

    Attributes:
        url: SQLAlchemy database URL, e.g. ``"sqlite://"`` or
            ``"duckdb:///flights.duckdb"``.
        read_only: Reject every statement that could modify the database.
        echo: Forward SQLAlchemy statement echo to the engine.
        verbose: Print dbframe logs to the console.
        temp_prefix: Prefix for generated temporary table names.
        page_size: Rows per chunk when iterating over a ``ResultSet``.
        connect_args: Extra DBAPI arguments passed to ``create_engine``.

    Raises:
        ConfigurationError: From ``validate()`` when any field is invalid.

    Example:
        >>> config = ConnectionConfig(url="sqlite://", read_only=True)
        >>> config.validate()
    """

    url: str = MEMORY_URL
    read_only: bool = False
    echo: bool = False
    verbose: bool = False
    temp_prefix: str = DEFAULT_TEMP_PREFIX
    page_size: int = DEFAULT_PAGE_SIZE
    connect_args: Dict[str, Any] = field(default_factory=dict)

    @property
    def backend(self) -> str:
        """Backend name taken from the URL scheme (``sqlite``, ``duckdb``, ...)."""
        scheme = self.url.split(":", 1)[0]
        return scheme.split("+", 1)[0].lower()

    def validate(self) -> None:
        """Raise ConfigurationError listing every problem with this config."""
        from .validators import validate_connection_config

        errors = validate_connection_config(self)
        if errors:
            raise ConfigurationError(
                f"Invalid connection configuration: {'; '.join(errors)}",
                context={"url": self.url},
            )

    def with_overrides(self, **overrides: Any) -> "ConnectionConfig":
        """Return a copy with the given fields replaced."""
        unknown = set(overrides) - set(self.__dataclass_fields__)
        if unknown:
            raise ConfigurationError(
                f"Unknown connection options: {', '.join(sorted(unknown))}"
            )
        return replace(self, **overrides)
