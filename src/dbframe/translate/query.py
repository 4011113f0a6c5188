"""
Single-level SELECT representation.

A ``SelectLevel`` is one SELECT statement under construction: a FROM item,
the ordered output columns and the clauses attached so far. Output column
expressions are stored already bound to the FROM item, so a level can be
rendered on its own or wrapped as a subquery to become the FROM item of
the next level.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, List, Optional, Tuple

import sqlalchemy as sa
from sqlalchemy.sql import operators
from sqlalchemy.sql.elements import ClauseElement, ColumnClause, Over, UnaryExpression
from sqlalchemy.sql.selectable import FromClause, Select, TableClause

from dbframe_base.context import SuggestionGenerator
from dbframe_base.errors import ValidationError
from dbframe_base.logging import get_logger

from .expressions import walk

logger = get_logger("dbframe.query")

Columns = Tuple[Tuple[str, ClauseElement], ...]


@dataclass(frozen=True, eq=False)
class SelectLevel:
    """
    One SELECT statement.

    Attributes:
        source: FROM item (table, subquery or join)
        columns: Ordered ``(name, expression)`` pairs of the output
        computed: Output names whose expression is not a plain source column
        where: Conditions combined with AND
        group_by: GROUP BY expressions; non-empty only on aggregated levels
        having: Conditions on aggregated levels
        order_by: ORDER BY keys
        distinct: SELECT DISTINCT
        limit: LIMIT, or None
        aggregated: True once ``summarise`` has been applied
    """

    source: FromClause
    columns: Columns
    computed: FrozenSet[str] = frozenset()
    where: Tuple[ClauseElement, ...] = ()
    group_by: Tuple[ClauseElement, ...] = ()
    having: Tuple[ClauseElement, ...] = ()
    order_by: Tuple[ClauseElement, ...] = ()
    distinct: bool = False
    limit: Optional[int] = None
    aggregated: bool = False
    _names: Tuple[str, ...] = field(default=(), init=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        names = tuple(name for name, _ in self.columns)
        if len(set(names)) != len(names):
            duplicates = sorted({n for n in names if names.count(n) > 1})
            raise ValidationError(
                f"Duplicate column names: {', '.join(duplicates)}",
                field="columns",
                suggestions=SuggestionGenerator.suggest_fix_for_duplicate_columns(
                    duplicates
                ),
            )
        object.__setattr__(self, "_names", names)

    @classmethod
    def from_source(cls, source: FromClause) -> "SelectLevel":
        """A level selecting every column of ``source`` unchanged."""
        return cls(source=source, columns=tuple((c.name, c) for c in source.c))

    @property
    def names(self) -> Tuple[str, ...]:
        return self._names

    def scope(self) -> Dict[str, ClauseElement]:
        return dict(self.columns)

    @property
    def has_clauses(self) -> bool:
        return bool(
            self.where
            or self.group_by
            or self.having
            or self.order_by
            or self.distinct
            or self.limit is not None
            or self.aggregated
        )

    @property
    def windowed(self) -> bool:
        """True when an output column holds a window function."""
        return any(
            isinstance(e, Over) for _, expr in self.columns for e in walk(expr)
        )

    @property
    def is_bare(self) -> bool:
        """True when this level is exactly ``SELECT * FROM <table>``."""
        if not isinstance(self.source, TableClause) or self.has_clauses:
            return False
        if self.computed:
            return False
        source_columns = [c.name for c in self.source.c]
        if list(self.names) != source_columns:
            return False
        return all(expr is self.source.c[name] for name, expr in self.columns)

    def with_changes(self, **changes) -> "SelectLevel":
        return replace(self, **changes)

    def to_select(self) -> Select:
        """Build the SQLAlchemy SELECT for this level."""
        items = []
        for name, expr in self.columns:
            if isinstance(expr, ColumnClause) and expr.name == name and not expr.is_literal:
                items.append(expr)
            else:
                items.append(expr.label(name))

        stmt = sa.select(*items).select_from(self.source)
        if self.where:
            stmt = stmt.where(*self.where)
        if self.group_by:
            stmt = stmt.group_by(*self.group_by)
        if self.having:
            stmt = stmt.having(sa.and_(*self.having))
        if self.distinct:
            stmt = stmt.distinct()
        if self.order_by:
            stmt = stmt.order_by(*self.order_by)
        if self.limit is not None:
            stmt = stmt.limit(self.limit)
        return stmt

    def as_from(self, alias: str) -> Tuple[FromClause, Dict[str, ClauseElement]]:
        """
        Return this level as an aliased subquery plus the scope it exposes.

        ORDER BY without LIMIT is dropped because databases do not keep the
        order of a subquery.
        """
        level = self
        if level.order_by and level.limit is None:
            logger.warning(
                "ORDER BY is ignored in subqueries without LIMIT; "
                "do you need to move arrange() later in the pipeline?"
            )
            level = level.with_changes(order_by=())
        subquery = level.to_select().subquery(alias)
        return subquery, {name: subquery.c[name] for name in level.names}

    def wrap(self, alias: str) -> "SelectLevel":
        """
        Start a new level that selects every column of this one from a subquery.

        An ordering on output columns moves to the new level; any other
        ordering cannot survive the subquery and is dropped.
        """
        carried: Tuple[Tuple[str, object], ...] = ()
        level = self
        if self.order_by and self.limit is None:
            carried = self._order_by_names()
            if carried:
                level = self.with_changes(order_by=())
        subquery, scope = level.as_from(alias)
        return SelectLevel(
            source=subquery,
            columns=tuple((name, scope[name]) for name in self.names),
            order_by=tuple(_sort_key(scope[name], modifier) for name, modifier in carried),
        )

    def _order_by_names(self) -> Tuple[Tuple[str, object], ...]:
        """Map ORDER BY keys to output names, or return () if any key is not an output."""
        by_identity = {id(expr): name for name, expr in self.columns}
        keys = []
        for key in self.order_by:
            modifier = None
            inner = key
            if isinstance(key, UnaryExpression) and key.modifier in (
                operators.desc_op,
                operators.asc_op,
            ):
                modifier = key.modifier
                inner = key.element
            name = by_identity.get(id(inner))
            if name is None:
                return ()
            keys.append((name, modifier))
        return tuple(keys)


def _sort_key(expr: ClauseElement, modifier: object) -> ClauseElement:
    if modifier is operators.desc_op:
        return sa.desc(expr)
    if modifier is operators.asc_op:
        return sa.asc(expr)
    return expr


def reorder(columns: Columns, names: List[str]) -> Columns:
    """Columns in the order given by ``names``."""
    lookup = dict(columns)
    return tuple((name, lookup[name]) for name in names)


def is_plain_column(expr: ClauseElement) -> bool:
    """True for a column bound to a FROM item, as opposed to a computed value."""
    return isinstance(expr, ColumnClause) and expr.table is not None and not expr.is_literal
