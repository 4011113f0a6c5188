"""
Error handling system for dbframe.

This module provides a single rooted hierarchy of errors raised by the
connection layer and the translation layer, each carrying structured
context and suggestions.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Union


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Categories of errors."""

    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    CONNECTION = "connection"
    QUERY = "query"
    TRANSLATION = "translation"
    DATA = "data"


# Type definitions for error context
ErrorContextValue = Union[str, int, float, bool, List[str], Dict[str, str], None]
ErrorContext = Dict[str, ErrorContextValue]
ErrorSuggestions = List[str]


class DbFrameError(Exception):
    """
    Base exception for all dbframe errors.

    Every error raised deliberately by dbframe inherits from this class, so
    callers can catch one type and still get the category, context and
    suggestions of the specific failure.
    """

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        category: ErrorCategory | None = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: ErrorContext | None = None,
        suggestions: ErrorSuggestions | None = None,
        timestamp: datetime | None = None,
        cause: Exception | None = None,
    ):
        """
        Initialize a dbframe error.

        Args:
            message: Human-readable error message
            error_code: Optional error code for programmatic handling
            category: Error category for classification
            severity: Error severity level
            context: Additional context information
            suggestions: Suggested actions to resolve the error
            timestamp: When the error occurred (defaults to now)
            cause: The underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.category = category
        self.severity = severity
        self.context = context or {}
        self.suggestions = suggestions or []
        self.timestamp = timestamp or datetime.now(timezone.utc)
        self.cause = cause

    def __str__(self) -> str:
        """Return string representation of the error."""
        parts = [self.message]

        if self.error_code:
            parts.append(f"[{self.error_code}]")

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"Context: {context_str}")

        if self.suggestions:
            parts.append(f"Suggestions: {'; '.join(self.suggestions)}")

        return " | ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization."""
        return {
            "message": self.message,
            "error_code": self.error_code,
            "category": self.category.value if self.category else None,
            "severity": self.severity.value if self.severity else None,
            "context": self.context,
            "suggestions": self.suggestions,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "cause": str(self.cause) if self.cause else None,
        }


class ConfigurationError(DbFrameError):
    """Raised when configuration is invalid."""

    def __init__(self, message: str, **kwargs: Any):
        if "severity" not in kwargs:
            kwargs["severity"] = ErrorSeverity.MEDIUM
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            **kwargs,
        )


class ValidationError(DbFrameError):
    """Raised when arguments passed to an operation are invalid."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(
            message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.MEDIUM,
            **kwargs,
        )
        self.field = field
        self.value = value
        if field:
            self.context["field"] = field
        if value is not None:
            self.context["value"] = str(value)


class DatabaseConnectionError(DbFrameError):
    """Raised when a connection cannot be opened or is already closed."""

    def __init__(self, message: str, *, url: str | None = None, **kwargs: Any):
        super().__init__(
            message,
            category=ErrorCategory.CONNECTION,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )
        self.url = url
        if url:
            self.context["url"] = url


class ReadOnlyError(DatabaseConnectionError):
    """Raised when a write is attempted on a read-only connection."""

    def __init__(self, operation: str, **kwargs: Any):
        super().__init__(
            f"Cannot {operation}: connection is read-only",
            suggestions=["Reconnect with read_only=False to modify the database"],
            **kwargs,
        )
        self.operation = operation
        self.context["operation"] = operation


class QueryError(DbFrameError):
    """Raised when the database rejects a statement."""

    def __init__(self, message: str, *, sql: str | None = None, **kwargs: Any):
        super().__init__(
            message,
            category=ErrorCategory.QUERY,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )
        self.sql = sql
        if sql:
            self.context["sql"] = sql


class TranslationError(DbFrameError):
    """Raised when a pipeline cannot be translated into SQL."""

    def __init__(
        self,
        message: str,
        *,
        verb: str | None = None,
        dialect: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(
            message,
            category=ErrorCategory.TRANSLATION,
            severity=ErrorSeverity.MEDIUM,
            **kwargs,
        )
        self.verb = verb
        self.dialect = dialect
        if verb:
            self.context["verb"] = verb
        if dialect:
            self.context["dialect"] = dialect


class ResultSetError(QueryError):
    """Raised when a cleared result set is used."""


class DataError(DbFrameError):
    """Raised when table read or write operations fail."""

    def __init__(self, message: str, **kwargs: Any):
        super().__init__(
            message,
            category=ErrorCategory.DATA,
            severity=ErrorSeverity.MEDIUM,
            **kwargs,
        )
