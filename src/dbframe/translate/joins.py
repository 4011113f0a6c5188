"""
Two-table verbs.

Both inputs of a join become FROM items named ``LHS`` and ``RHS``. A table
read without any verb is joined directly under its own name, except in a
self-join where both sides need an alias.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple

import pandas as pd
import sqlalchemy as sa
from sqlalchemy.sql.elements import ClauseElement
from sqlalchemy.sql.selectable import FromClause, TableClause

from dbframe_base.errors import ValidationError
from dbframe_base.logging import get_logger

from .expressions import require_names
from .query import SelectLevel, is_plain_column

if TYPE_CHECKING:
    from .lazy import LazyTable

logger = get_logger("dbframe.joins")

JOIN_TYPES = ("inner", "left", "right", "full", "semi", "anti", "cross")

Scope = Dict[str, ClauseElement]


def join_tables(
    x: "LazyTable",
    y: Any,
    how: str,
    by: Any = None,
    suffix: Tuple[str, str] = ("_x", "_y"),
    copy: bool = False,
) -> "LazyTable":
    """
    Join ``y`` to ``x``.

    Args:
        x: Left table
        y: Right table; a DataFrame or a table on another connection needs
            ``copy=True``
        how: One of inner, left, right, full, semi, anti, cross
        by: None (common columns), a column name, a list of names, or a
            ``{x_name: y_name}`` mapping
        suffix: Appended to non-key columns present in both tables
        copy: Upload ``y`` to the connection of ``x`` when needed

    Returns:
        LazyTable over the joined query
    """
    if how not in JOIN_TYPES:
        raise ValidationError(
            f"Unknown join type '{how}'",
            field="how",
            value=how,
            suggestions=[f"Use one of: {', '.join(JOIN_TYPES)}"],
        )
    if len(suffix) != 2 or suffix[0] == suffix[1]:
        raise ValidationError(
            "suffix must be two different strings", field="suffix", value=suffix
        )

    y = _as_lazy(x, y, copy, how)
    keys = [] if how == "cross" else _join_keys(x, y, by)

    left, lscope, right, rscope = _from_items(x, y)
    if keys:
        on = sa.and_(*[lscope[xk] == rscope[yk] for xk, yk in keys])
    else:
        on = sa.true()

    if how in ("semi", "anti"):
        exists = (
            sa.select(sa.literal_column("1")).select_from(right).where(on).exists()
        )
        level = SelectLevel(
            source=left,
            columns=tuple((name, lscope[name]) for name in x.columns),
            where=(exists if how == "semi" else ~exists,),
        )
        return x._evolve(level=level, subquery_count=_count(x, y))

    columns = _output_columns(x, y, keys, how, lscope, rscope, suffix)
    renamed = {name: name + suffix[0] for name in _clashing(x, y, keys)}
    if how == "right":
        source = sa.join(right, left, on, isouter=True)
    else:
        source = sa.join(
            left, right, on, isouter=how == "left", full=how == "full"
        )
    level = SelectLevel(
        source=source,
        columns=tuple(columns),
        computed=frozenset(n for n, e in columns if not is_plain_column(e)),
    )
    return x._evolve(
        level=level,
        groups=[renamed.get(g, g) for g in x._groups],
        subquery_count=_count(x, y),
    )


def _count(x: "LazyTable", y: "LazyTable") -> int:
    return max(x._subquery_count, y._subquery_count)


def _as_lazy(x: "LazyTable", y: Any, copy: bool, how: str) -> "LazyTable":
    """Return ``y`` as a LazyTable on the connection of ``x``."""
    from .lazy import LazyTable

    if isinstance(y, LazyTable):
        if y.backend is x.backend:
            return y
        if not copy:
            raise ValidationError(
                f"{how}_join() needs both tables on the same connection",
                suggestions=["Pass copy=True to upload the right table first"],
            )
        y = y.collect()

    if isinstance(y, pd.DataFrame):
        if not copy:
            raise ValidationError(
                f"{how}_join() got a local DataFrame",
                suggestions=["Pass copy=True to upload it as a temporary table"],
            )
        name = x.backend.upload(y, temporary=True)
        logger.info(f"Copied {len(y)} rows to temporary table {name}")
        return LazyTable.from_source(
            x.backend, x.backend.table_source(name), label=f"table<{name}>"
        )

    raise ValidationError(
        f"Cannot join a {type(y).__name__}",
        suggestions=["Join a LazyTable, or a DataFrame with copy=True"],
    )


def _join_keys(x: "LazyTable", y: "LazyTable", by: Any) -> List[Tuple[str, str]]:
    if by is None:
        common = [name for name in x.columns if name in y.columns]
        if not common:
            raise ValidationError(
                "No common columns to join by",
                field="by",
                suggestions=["Pass by= explicitly, or use cross_join()"],
            )
        logger.info(f"Joining with by={common}")
        pairs = [(name, name) for name in common]
    elif isinstance(by, str):
        pairs = [(by, by)]
    elif isinstance(by, Mapping):
        pairs = list(by.items())
    elif isinstance(by, (list, tuple)):
        pairs = [(name, name) for name in by]
    else:
        raise ValidationError(
            "by must be a column name, a list of names or a mapping",
            field="by",
            value=by,
        )
    if not pairs:
        raise ValidationError("by must name at least one column", field="by")
    require_names([xk for xk, _ in pairs], x.columns, "join")
    require_names([yk for _, yk in pairs], y.columns, "join")
    return pairs


def _table_key(level: SelectLevel) -> Optional[Tuple[Optional[str], str]]:
    source = level.source
    if isinstance(source, TableClause):
        return (source.schema, source.name)
    return None


def _from_items(
    x: "LazyTable", y: "LazyTable"
) -> Tuple[FromClause, Scope, FromClause, Scope]:
    x_bare = x.level.is_bare
    y_bare = y.level.is_bare
    self_join = x_bare and y_bare and _table_key(x.level) == _table_key(y.level)

    def item(level: SelectLevel, bare: bool, alias: str) -> Tuple[FromClause, Scope]:
        if bare and not self_join:
            return level.source, level.scope()
        if bare:
            aliased = level.source.alias(alias)
            return aliased, {name: aliased.c[name] for name in level.names}
        return level.as_from(alias)

    left, lscope = item(x.level, x_bare, "LHS")
    right, rscope = item(y.level, y_bare, "RHS")
    return left, lscope, right, rscope


def _clashing(
    x: "LazyTable", y: "LazyTable", keys: List[Tuple[str, str]]
) -> List[str]:
    """Non-key columns of ``x`` that also appear among the non-key columns of ``y``."""
    x_keys = {xk for xk, _ in keys}
    y_keys = {yk for _, yk in keys}
    y_rest = {name for name in y.columns if name not in y_keys}
    return [name for name in x.columns if name not in x_keys and name in y_rest]


def _output_columns(
    x: "LazyTable",
    y: "LazyTable",
    keys: List[Tuple[str, str]],
    how: str,
    lscope: Scope,
    rscope: Scope,
    suffix: Tuple[str, str],
) -> List[Tuple[str, ClauseElement]]:
    x_keys = {xk: yk for xk, yk in keys}
    y_keys = {yk for _, yk in keys}
    y_rest = [name for name in y.columns if name not in y_keys]
    clashing = set(_clashing(x, y, keys))

    columns: List[Tuple[str, ClauseElement]] = []
    for name in x.columns:
        if name in x_keys:
            yk = x_keys[name]
            if how == "right":
                expr = rscope[yk]
            elif how == "full":
                expr = sa.func.coalesce(lscope[name], rscope[yk])
            else:
                expr = lscope[name]
            columns.append((name, expr))
        elif name in clashing:
            columns.append((name + suffix[0], lscope[name]))
        else:
            columns.append((name, lscope[name]))

    for name in y_rest:
        out = name + suffix[1] if name in x.columns else name
        columns.append((out, rscope[name]))
    return columns
