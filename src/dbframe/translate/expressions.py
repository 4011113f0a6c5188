"""
Column references and name resolution.

Pipelines refer to columns by name: ``col("dep_delay") > 10``. A name is an
unbound SQLAlchemy column. Before a clause is added to a query, every
unbound column is replaced with the expression it stands for at that
point of the pipeline.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Mapping, Set

import sqlalchemy as sa
from sqlalchemy.sql import visitors
from sqlalchemy.sql.elements import ClauseElement, ColumnClause, Over, UnaryExpression
from sqlalchemy.sql.selectable import FromClause

from dbframe_base.context import SuggestionGenerator
from dbframe_base.errors import TranslationError


def col(name: str) -> ColumnClause:
    """Reference a column by name."""
    if not name or not isinstance(name, str):
        raise TranslationError(f"Column name must be a non-empty string, got {name!r}")
    return sa.column(name)


def lit(value: Any) -> ClauseElement:
    """A literal value, e.g. ``lit("JFK")`` where a string would mean a column."""
    return sa.literal(value)


def desc(key: Any) -> UnaryExpression:
    """Descending sort key for ``arrange``."""
    return sa.desc(as_expr(key))


def asc(key: Any) -> UnaryExpression:
    """Ascending sort key for ``arrange``."""
    return sa.asc(as_expr(key))


def as_expr(value: Any) -> ClauseElement:
    """Coerce a verb argument: strings are column names, other scalars literals."""
    if isinstance(value, ClauseElement):
        return value
    if isinstance(value, str):
        return col(value)
    if hasattr(value, "__clause_element__"):
        return value.__clause_element__()
    return sa.literal(value)


def is_name_reference(element: Any) -> bool:
    return (
        isinstance(element, ColumnClause)
        and element.table is None
        and not element.is_literal
    )


def referenced_names(expr: ClauseElement) -> Set[str]:
    """Names of the unbound columns used anywhere in ``expr``."""
    return {e.name for e in visitors.iterate(expr) if is_name_reference(e)}


def walk(expr: ClauseElement, stop_at_windows: bool = True) -> Iterator[ClauseElement]:
    """Depth-first walk; window expressions and FROM items are not entered."""
    yield expr
    if isinstance(expr, FromClause) or (stop_at_windows and isinstance(expr, Over)):
        return
    for child in expr.get_children():
        yield from walk(child, stop_at_windows)


def resolve(
    expr: ClauseElement, scope: Mapping[str, ClauseElement], verb: str
) -> ClauseElement:
    """
    Replace every column name in ``expr`` with its expression in ``scope``.

    Args:
        expr: Expression built from ``col()`` references
        scope: Visible column names mapped to their current expressions
        verb: Name of the verb, used in error messages

    Returns:
        A copy of ``expr`` bound to the query's FROM items

    Raises:
        TranslationError: If a name is not visible
    """

    def replace(element: Any) -> Any:
        if is_name_reference(element):
            if element.name not in scope:
                raise TranslationError(
                    f"Column '{element.name}' not found in {verb}()",
                    verb=verb,
                    suggestions=SuggestionGenerator.suggest_fix_for_unknown_column(
                        element.name, scope
                    ),
                )
            return scope[element.name]
        return None

    return visitors.replacement_traverse(expr, {}, replace)


def require_names(names: Iterable[str], available: Iterable[str], verb: str) -> None:
    """Raise TranslationError for the first name not in ``available``."""
    available = list(available)
    for name in names:
        if name not in available:
            raise TranslationError(
                f"Column '{name}' not found in {verb}()",
                verb=verb,
                suggestions=SuggestionGenerator.suggest_fix_for_unknown_column(
                    name, available
                ),
            )


def flatten_names(args: Iterable[Any]) -> List[str]:
    """Accept names given individually or as lists/tuples."""
    names: List[str] = []
    for arg in args:
        if isinstance(arg, (list, tuple)):
            names.extend(flatten_names(arg))
        elif isinstance(arg, ColumnClause) and arg.table is None:
            names.append(arg.name)
        elif isinstance(arg, str):
            names.append(arg)
        else:
            raise TranslationError(f"Expected a column name, got {arg!r}")
    return names


def named_arguments(mapping: Mapping[str, Any] | None, kwargs: Dict[str, Any]) -> Dict[str, Any]:
    """Merge a positional mapping with keyword arguments, keeping order."""
    merged: Dict[str, Any] = dict(mapping or {})
    merged.update(kwargs)
    return merged
