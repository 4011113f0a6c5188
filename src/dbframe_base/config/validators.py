"""
Configuration validation functions.

This module provides validation functions for connection configurations
and identifiers.
"""

from __future__ import annotations

import re
from typing import List

from .models import ConnectionConfig

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_connection_config(config: ConnectionConfig) -> List[str]:
    """
    Validate connection configuration.

    Args:
        config: Connection configuration to validate

    Returns:
        List of validation errors (empty if valid)
    """
    errors: List[str] = []

    if not config.url or not isinstance(config.url, str):
        errors.append("Connection url must be a non-empty string")
    elif "://" not in config.url:
        errors.append(
            f"Connection url must look like 'dialect://...', got {config.url!r}"
        )

    if not isinstance(config.page_size, int) or config.page_size < 1:
        errors.append(f"page_size must be a positive integer, got {config.page_size}")

    errors.extend(
        f"temp_prefix: {e}" for e in validate_identifier(config.temp_prefix)
    )

    if not isinstance(config.connect_args, dict):
        errors.append("connect_args must be a dictionary")

    return errors


def validate_identifier(name: str) -> List[str]:
    """
    Validate a table or column name used to generate DDL.

    Args:
        name: Identifier to validate

    Returns:
        List of validation errors (empty if valid)
    """
    errors: List[str] = []
    if not name or not isinstance(name, str):
        errors.append("Identifier must be a non-empty string")
    elif len(name) > 128:
        errors.append("Identifier is too long (max 128 characters)")
    elif not _IDENTIFIER_RE.match(name):
        errors.append(
            f"Identifier {name!r} may only contain letters, digits and underscores"
        )
    return errors
