"""
Suggestion generators for error messages.
"""

from __future__ import annotations

import difflib
from typing import Iterable, List


class SuggestionGenerator:
    """
    Generator for helpful error suggestions.
    """

    @staticmethod
    def suggest_fix_for_unknown_column(name: str, available: Iterable[str]) -> List[str]:
        """
        Generate suggestions for a column that is not visible.

        Args:
            name: The column that was referenced
            available: Columns visible at that point of the pipeline

        Returns:
            List of suggestion strings
        """
        available = list(available)
        suggestions = []
        close = difflib.get_close_matches(name, available, n=3)
        if close:
            suggestions.append(f"Did you mean {', '.join(repr(c) for c in close)}?")
        suggestions.append(f"Available columns: {', '.join(available)}")
        return suggestions

    @staticmethod
    def suggest_fix_for_missing_table(name: str, available: Iterable[str]) -> List[str]:
        """
        Generate suggestions for a table that does not exist.

        Args:
            name: Table name that was requested
            available: Tables that exist on the connection

        Returns:
            List of suggestion strings
        """
        available = list(available)
        suggestions = [f"Check spelling of '{name}'"]
        close = difflib.get_close_matches(name, available, n=3)
        if close:
            suggestions.append(f"Similar tables: {', '.join(close)}")
        suggestions.append("Temporary tables are only visible on the connection that created them")
        return suggestions

    @staticmethod
    def suggest_fix_for_duplicate_columns(names: Iterable[str]) -> List[str]:
        """
        Generate suggestions for duplicate output column names.
        """
        names = list(names)
        return [
            f"Rename one of {', '.join(repr(n) for n in names)} before combining",
            "Pass suffix=(...) to the join to disambiguate clashing columns",
        ]
