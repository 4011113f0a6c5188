"""
Lazy tables: dataframe verbs that build SQL.

A ``LazyTable`` describes a query against a database table. Verbs such as
``filter`` or ``mutate`` return a new LazyTable; nothing is sent to the
database until ``collect()`` (or ``pull``, ``count_rows``, ``compute``).

Each verb adds to the current SELECT level when it can. When a clause
would have to reference a column that the level itself computes, or when
SQL clause order would change the meaning (filtering after LIMIT,
mutating after GROUP BY), the current level is wrapped as a subquery
first.

Example:
    >>> flights = con.tbl("flights")
    >>> delays = (
    ...     flights.filter(col("dep_delay") > 0)
    ...     .group_by("dest")
    ...     .summarise(delay=fn.mean("dep_delay", na_rm=True))
    ...     .arrange(desc("delay"))
    ... )
    >>> delays.show_query()
    >>> delays.collect()
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd
import sqlalchemy as sa
from sqlalchemy.sql import visitors
from sqlalchemy.sql.elements import ClauseElement, Over
from sqlalchemy.sql.selectable import FromClause, Select

from dbframe_base.errors import TranslationError, ValidationError
from dbframe_base.logging import get_logger

from .expressions import (
    as_expr,
    col,
    desc,
    flatten_names,
    named_arguments,
    referenced_names,
    require_names,
    resolve,
)
from .functions import contains_aggregate, fn, is_aggregate_function, windowed
from .query import SelectLevel, is_plain_column, reorder

if TYPE_CHECKING:
    from dbframe.types import BackendProtocol

logger = get_logger("dbframe.lazy")

_SUMMARISE_GROUPS = ("drop_last", "drop", "keep")

Suffix = Tuple[str, str]


class LazyTable:
    """
    A query description bound to a backend.

    Attributes:
        backend: Connection or simulated connection the query targets
        level: The SELECT level under construction
        groups: Active grouping columns
        label: Short description of the original source, used in ``repr``
    """

    def __init__(
        self,
        backend: "BackendProtocol",
        level: SelectLevel,
        groups: Sequence[str] = (),
        label: str = "",
        subquery_count: int = 0,
    ):
        self._backend = backend
        self._level = level
        self._groups: Tuple[str, ...] = tuple(groups)
        self._label = label
        self._subquery_count = subquery_count

    @classmethod
    def from_source(
        cls,
        backend: "BackendProtocol",
        source: FromClause,
        label: str,
        subquery_count: int = 0,
    ) -> "LazyTable":
        return cls(
            backend,
            SelectLevel.from_source(source),
            label=label,
            subquery_count=subquery_count,
        )

    # ------------------------------------------------------------------
    # Introspection

    @property
    def backend(self) -> "BackendProtocol":
        return self._backend

    @property
    def level(self) -> SelectLevel:
        return self._level

    @property
    def columns(self) -> List[str]:
        return list(self._level.names)

    @property
    def groups(self) -> List[str]:
        return list(self._groups)

    def __repr__(self) -> str:
        lines = [
            f"# Source:   {self._label or 'lazy query'} [?? x {len(self.columns)}]",
            f"# Database: {self._backend.dialect_name}",
        ]
        if self._groups:
            lines.append(f"# Groups:   {', '.join(self._groups)}")
        lines.append(f"# Columns:  {', '.join(self.columns)}")
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Internal helpers

    def _evolve(
        self,
        level: Optional[SelectLevel] = None,
        groups: Optional[Sequence[str]] = None,
        subquery_count: Optional[int] = None,
    ) -> "LazyTable":
        return LazyTable(
            self._backend,
            self._level if level is None else level,
            self._groups if groups is None else groups,
            self._label,
            self._subquery_count if subquery_count is None else subquery_count,
        )

    def _next_alias(self) -> Tuple[str, int]:
        count = self._subquery_count + 1
        return f"q{count:02d}", count

    def _wrapped(self) -> "LazyTable":
        alias, count = self._next_alias()
        return self._evolve(level=self._level.wrap(alias), subquery_count=count)

    def _check_same_backend(self, other: "LazyTable", verb: str) -> None:
        if other._backend is not self._backend:
            raise ValidationError(
                f"{verb}() needs both tables on the same connection",
                suggestions=["Pass copy=True to upload the other table first"],
            )

    # ------------------------------------------------------------------
    # Column verbs

    def select(self, *names: Any) -> "LazyTable":
        """Keep only the named columns, in the given order."""
        selected = list(dict.fromkeys(flatten_names(names)))
        if not selected:
            raise ValidationError("select() needs at least one column")
        require_names(selected, self.columns, "select")

        missing = [g for g in self._groups if g not in selected]
        if missing:
            logger.info(f"Adding missing grouping variables: {', '.join(missing)}")
            selected = missing + selected

        table = self._wrapped() if self._level.distinct else self
        level = table._level
        return table._evolve(
            level=level.with_changes(
                columns=reorder(level.columns, selected),
                computed=level.computed & frozenset(selected),
            )
        )

    def rename(self, mapping: Optional[Mapping[str, str]] = None, **kwargs: str) -> "LazyTable":
        """Rename columns with ``new_name="old_name"`` pairs."""
        renames = named_arguments(mapping, kwargs)
        require_names(renames.values(), self.columns, "rename")
        old_to_new = {old: new for new, old in renames.items()}

        level = self._level
        columns = tuple((old_to_new.get(n, n), e) for n, e in level.columns)
        return self._evolve(
            level=level.with_changes(
                columns=columns,
                computed=frozenset(old_to_new.get(n, n) for n in level.computed),
            ),
            groups=tuple(old_to_new.get(g, g) for g in self._groups),
        )

    def relocate(
        self, *names: Any, before: Optional[str] = None, after: Optional[str] = None
    ) -> "LazyTable":
        """Move columns to the front, or next to ``before``/``after``."""
        moving = list(dict.fromkeys(flatten_names(names)))
        require_names(moving, self.columns, "relocate")
        if before is not None and after is not None:
            raise ValidationError("relocate() accepts before= or after=, not both")

        anchor = before if before is not None else after
        rest = [n for n in self.columns if n not in moving]
        if anchor is None:
            order = moving + rest
        else:
            require_names([anchor], self.columns, "relocate")
            if anchor in moving:
                raise ValidationError(
                    f"relocate() cannot place columns relative to '{anchor}', "
                    "which is being moved",
                    field="before" if before is not None else "after",
                )
            index = rest.index(anchor) + (0 if before is not None else 1)
            order = rest[:index] + moving + rest[index:]

        level = self._level
        return self._evolve(level=level.with_changes(columns=reorder(level.columns, order)))

    def mutate(self, mapping: Optional[Mapping[str, Any]] = None, **exprs: Any) -> "LazyTable":
        """
        Add or replace columns.

        Expressions are applied in order, so a later one may use an earlier
        one; doing so puts the earlier column in a subquery. Aggregates are
        computed as window functions over the current groups.
        """
        exprs = named_arguments(mapping, exprs)
        if not exprs:
            return self

        table = self
        level = table._level
        if level.aggregated or level.distinct or level.limit is not None:
            table = table._wrapped()

        for name, value in exprs.items():
            expr = as_expr(value)
            needs_window = contains_aggregate(expr)
            refs = referenced_names(expr)
            if needs_window:
                refs |= set(table._groups)
            if refs & table._level.computed:
                table = table._wrapped()

            level = table._level
            scope = level.scope()
            resolved = resolve(expr, scope, "mutate")
            if needs_window:
                resolved = windowed(resolved, [scope[g] for g in table._groups])

            columns = list(level.columns)
            if name in level.names:
                columns[level.names.index(name)] = (name, resolved)
            else:
                columns.append((name, resolved))
            computed = set(level.computed) - {name}
            if not is_plain_column(resolved):
                computed.add(name)
            table = table._evolve(
                level=level.with_changes(
                    columns=tuple(columns), computed=frozenset(computed)
                )
            )
        return table

    def transmute(self, mapping: Optional[Mapping[str, Any]] = None, **exprs: Any) -> "LazyTable":
        """``mutate`` keeping only the new columns (and the groups)."""
        exprs = named_arguments(mapping, exprs)
        return self.mutate(exprs).select(*exprs)

    # ------------------------------------------------------------------
    # Row verbs

    def filter(self, *conditions: Any) -> "LazyTable":
        """
        Keep rows where every condition is true.

        Conditions on an aggregated table become HAVING. Conditions using
        aggregates are evaluated as window functions over the current
        groups before any row is removed.
        """
        if not conditions:
            return self
        exprs = [as_expr(c) for c in conditions]
        if any(contains_aggregate(e) for e in exprs):
            return self._filter_windowed(exprs)
        return self._filter_plain(exprs)

    def _filter_plain(self, exprs: List[ClauseElement]) -> "LazyTable":
        table = self
        level = table._level
        refs = set().union(*[referenced_names(e) for e in exprs])

        if level.aggregated and level.limit is None and not level.distinct:
            scope = level.scope()
            having = tuple(resolve(e, scope, "filter") for e in exprs)
            return table._evolve(level=level.with_changes(having=level.having + having))

        # WHERE runs before window functions, so it cannot share their level
        if (
            level.limit is not None
            or level.distinct
            or level.windowed
            or refs & level.computed
        ):
            table = table._wrapped()
            level = table._level

        scope = level.scope()
        where = tuple(resolve(e, scope, "filter") for e in exprs)
        return table._evolve(level=level.with_changes(where=level.where + where))

    def _filter_windowed(self, exprs: List[ClauseElement]) -> "LazyTable":
        hidden: Dict[str, ClauseElement] = {}
        taken = set(self.columns)

        def extract(element: Any) -> Any:
            if isinstance(element, Over):
                return element
            if is_aggregate_function(element):
                index = len(hidden) + 1
                name = f"w{index:02d}"
                while name in taken:
                    index += 1
                    name = f"w{index:02d}"
                taken.add(name)
                hidden[name] = element
                return col(name)
            return None

        rewritten = [visitors.replacement_traverse(e, {}, extract) for e in exprs]
        original = self.columns
        table = self.mutate(hidden)._filter_plain(rewritten)
        level = table._level
        return table._evolve(
            level=level.with_changes(
                columns=reorder(level.columns, original),
                computed=level.computed - frozenset(hidden),
            )
        )

    def arrange(self, *keys: Any) -> "LazyTable":
        """Order rows; use ``desc("x")`` for descending. Replaces earlier orderings."""
        if not keys:
            return self
        table = self._wrapped() if self._level.limit is not None else self
        level = table._level
        scope = level.scope()
        order_by = tuple(resolve(as_expr(k), scope, "arrange") for k in keys)
        return table._evolve(level=level.with_changes(order_by=order_by))

    def distinct(self, *names: Any) -> "LazyTable":
        """Remove duplicate rows, optionally over a subset of columns."""
        table = self.select(*names) if names else self
        if table._level.limit is not None:
            table = table._wrapped()
        return table._evolve(level=table._level.with_changes(distinct=True))

    def head(self, n: int = 6) -> "LazyTable":
        """First ``n`` rows: ``LIMIT n``."""
        if not isinstance(n, int) or isinstance(n, bool) or n < 0:
            raise ValidationError("head() needs a non-negative integer", field="n", value=n)
        level = self._level
        limit = n if level.limit is None else min(level.limit, n)
        return self._evolve(level=level.with_changes(limit=limit))

    # ------------------------------------------------------------------
    # Grouping and aggregation

    def group_by(self, *names: Any, add: bool = False, **exprs: Any) -> "LazyTable":
        """Set grouping columns; keyword expressions are computed first."""
        table = self.mutate(exprs) if exprs else self
        group_names = flatten_names(names) + list(exprs)
        require_names(group_names, table.columns, "group_by")
        groups = list(table._groups) if add else []
        for name in group_names:
            if name not in groups:
                groups.append(name)
        return table._evolve(groups=tuple(groups))

    def ungroup(self) -> "LazyTable":
        return self._evolve(groups=())

    def summarise(
        self,
        mapping: Optional[Mapping[str, Any]] = None,
        _groups: str = "drop_last",
        **aggs: Any,
    ) -> "LazyTable":
        """
        One row per group: ``GROUP BY`` the current groups.

        Args:
            mapping: Optional ``{name: expression}`` mapping
            _groups: Grouping of the result: "drop_last" (default), "drop"
                or "keep"
            **aggs: Named aggregate expressions

        Returns:
            LazyTable with the group columns followed by the aggregates
        """
        aggs = named_arguments(mapping, aggs)
        if _groups not in _SUMMARISE_GROUPS:
            raise ValidationError(
                f"_groups must be one of {', '.join(_SUMMARISE_GROUPS)}",
                field="_groups",
                value=_groups,
            )
        groups = list(self._groups)
        if not aggs and not groups:
            raise ValidationError("summarise() needs at least one expression")
        for name in aggs:
            if name in groups:
                raise ValidationError(
                    f"Column '{name}' is a grouping column and cannot be summarised",
                    field=name,
                )

        exprs = {name: as_expr(value) for name, value in aggs.items()}
        refs = set(groups).union(*[referenced_names(e) for e in exprs.values()])
        refs -= set(exprs)

        table = self
        level = table._level
        if level.aggregated or level.distinct or level.limit is not None or (
            refs & level.computed
        ):
            table = table._wrapped()
            level = table._level

        scope = level.scope()
        outputs: List[Tuple[str, ClauseElement]] = [(g, scope[g]) for g in groups]
        agg_scope = dict(scope)
        for name, expr in exprs.items():
            free = referenced_names(expr) - set(groups) - {n for n, _ in outputs}
            if free and not contains_aggregate(expr):
                raise TranslationError(
                    f"summarise() expression '{name}' must aggregate "
                    f"{', '.join(sorted(free))}",
                    verb="summarise",
                    suggestions=["Wrap the column in fn.mean(), fn.sum(), fn.n_distinct(), ..."],
                )
            resolved = resolve(expr, agg_scope, "summarise")
            outputs.append((name, resolved))
            agg_scope[name] = resolved

        summarised = SelectLevel(
            source=level.source,
            columns=tuple(outputs),
            computed=frozenset(exprs),
            where=level.where,
            group_by=tuple(scope[g] for g in groups),
            aggregated=True,
        )

        if _groups == "drop_last":
            result_groups = groups[:-1]
            if result_groups:
                logger.info(
                    f"summarise() has grouped output by {', '.join(result_groups)}"
                )
        elif _groups == "drop":
            result_groups = []
        else:
            result_groups = groups
        return table._evolve(level=summarised, groups=tuple(result_groups))

    summarize = summarise

    def count(self, *names: Any, sort: bool = False, name: str = "n") -> "LazyTable":
        """Number of rows per combination of ``names`` (and the current groups)."""
        by = flatten_names(names)
        original_groups = self._groups
        if name in set(by) | set(original_groups):
            raise ValidationError(
                f"count() output name '{name}' clashes with a grouping column",
                field="name",
                value=name,
            )
        table = self.group_by(*by, add=True) if by else self
        table = table.summarise({name: fn.n()}, _groups="drop")
        if sort:
            table = table.arrange(desc(name))
        return table._evolve(groups=original_groups)

    # ------------------------------------------------------------------
    # Two-table verbs

    def inner_join(
        self, y: Any, by: Any = None, suffix: Suffix = ("_x", "_y"), copy: bool = False
    ) -> "LazyTable":
        from .joins import join_tables

        return join_tables(self, y, "inner", by=by, suffix=suffix, copy=copy)

    def left_join(
        self, y: Any, by: Any = None, suffix: Suffix = ("_x", "_y"), copy: bool = False
    ) -> "LazyTable":
        from .joins import join_tables

        return join_tables(self, y, "left", by=by, suffix=suffix, copy=copy)

    def right_join(
        self, y: Any, by: Any = None, suffix: Suffix = ("_x", "_y"), copy: bool = False
    ) -> "LazyTable":
        from .joins import join_tables

        return join_tables(self, y, "right", by=by, suffix=suffix, copy=copy)

    def full_join(
        self, y: Any, by: Any = None, suffix: Suffix = ("_x", "_y"), copy: bool = False
    ) -> "LazyTable":
        from .joins import join_tables

        return join_tables(self, y, "full", by=by, suffix=suffix, copy=copy)

    def semi_join(self, y: Any, by: Any = None, copy: bool = False) -> "LazyTable":
        """Rows of this table with a match in ``y``; only this table's columns are kept."""
        from .joins import join_tables

        return join_tables(self, y, "semi", by=by, copy=copy)

    def anti_join(self, y: Any, by: Any = None, copy: bool = False) -> "LazyTable":
        """Rows of this table without a match in ``y``."""
        from .joins import join_tables

        return join_tables(self, y, "anti", by=by, copy=copy)

    def cross_join(
        self, y: Any, suffix: Suffix = ("_x", "_y"), copy: bool = False
    ) -> "LazyTable":
        from .joins import join_tables

        return join_tables(self, y, "cross", suffix=suffix, copy=copy)

    def union_all(self, other: "LazyTable") -> "LazyTable":
        """Rows of both tables, keeping duplicates."""
        return self._set_operation(other, sa.union_all, "union_all")

    def union(self, other: "LazyTable") -> "LazyTable":
        """Rows of both tables without duplicates."""
        return self._set_operation(other, sa.union, "union")

    def _set_operation(self, other: "LazyTable", operation: Any, verb: str) -> "LazyTable":
        self._check_same_backend(other, verb)
        if set(self.columns) != set(other.columns):
            raise ValidationError(
                f"{verb}() needs both tables to have the same columns",
                context={
                    "x_columns": self.columns,
                    "y_columns": other.columns,
                },
            )
        right = other._level.with_changes(
            columns=reorder(other._level.columns, self.columns)
        )

        def member(level: SelectLevel) -> Select:
            if level.limit is not None:
                subquery = level.to_select().subquery()
                return sa.select(*[subquery.c[n] for n in level.names])
            return level.with_changes(order_by=()).to_select()

        count = max(self._subquery_count, other._subquery_count) + 1
        compound = operation(member(self._level), member(right)).subquery(f"q{count:02d}")
        level = SelectLevel(
            source=compound,
            columns=tuple((n, compound.c[n]) for n in self.columns),
        )
        return self._evolve(level=level, subquery_count=count)

    # ------------------------------------------------------------------
    # Rendering and execution

    def to_select(self) -> Select:
        """The SQLAlchemy SELECT for this pipeline."""
        return self._level.to_select()

    def sql_render(self) -> str:
        """SQL for the backend's dialect with literal values inlined."""
        compiled = self.to_select().compile(
            dialect=self._backend.dialect,
            compile_kwargs={"literal_binds": True},
        )
        return str(compiled)

    def show_query(self) -> str:
        """Print the generated SQL and return it."""
        sql = self.sql_render()
        print(f"<SQL>\n{sql}")
        return sql

    def collect(self) -> pd.DataFrame:
        """Run the query and return every row as a DataFrame."""
        return self._backend.run_select(self.to_select())

    def pull(self, name: Optional[str] = None) -> List[Any]:
        """Values of one column (the last one by default) as a list."""
        target = name if name is not None else self.columns[-1]
        require_names([target], self.columns, "pull")
        frame = self.ungroup().select(target).collect()
        return frame[target].tolist()

    def count_rows(self) -> int:
        """Number of rows the query returns."""
        alias, _ = self._next_alias()
        subquery = self._level.with_changes(order_by=()).to_select().subquery(alias)
        stmt = sa.select(sa.func.count().label("n")).select_from(subquery)
        frame = self._backend.run_select(stmt)
        return int(frame.iloc[0, 0])

    def compute(self, name: Optional[str] = None, temporary: bool = True) -> "LazyTable":
        """
        Store the result in a table and return a LazyTable reading from it.

        Args:
            name: Table name; a unique temporary name is generated if omitted
            temporary: Create a connection-scoped temporary table

        Returns:
            LazyTable over the new table, keeping the current groups
        """
        target = name or self._backend.unique_table_name()
        self._backend.create_table_as(self.to_select(), target, temporary=temporary)
        source = self._backend.table_source(target)
        return LazyTable.from_source(self._backend, source, label=f"table<{target}>")._evolve(
            groups=self._groups
        )
