"""
Function translations for pipeline expressions.

``fn`` collects the functions available inside verbs. Most map directly to
a SQLAlchemy construct; the few whose spelling differs between databases
are custom elements compiled per dialect with ``sqlalchemy.ext.compiler``.

String arguments are column names, as everywhere else in a pipeline; use
``lit("text")`` for a string literal.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional, Sequence, Tuple

import sqlalchemy as sa
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql import visitors
from sqlalchemy.sql.elements import ClauseElement, Over
from sqlalchemy.sql.functions import FunctionElement

from dbframe_base.errors import TranslationError
from dbframe_base.logging import get_logger

from .expressions import as_expr, walk

logger = get_logger("dbframe.functions")

AGGREGATE_NAMES = frozenset(
    {
        "avg",
        "count",
        "max",
        "min",
        "sum",
        "stddev_samp",
        "var_samp",
        "group_concat",
        "string_agg",
        "bool_and",
        "bool_or",
    }
)

_na_warning_issued = False


class _SampleStdDev(FunctionElement):
    name = "sd"
    type = sa.Float()
    inherit_cache = True
    is_aggregate = True


class _SampleVariance(FunctionElement):
    name = "var"
    type = sa.Float()
    inherit_cache = True
    is_aggregate = True


class _CharLength(FunctionElement):
    name = "nchar"
    type = sa.Integer()
    inherit_cache = True


class _Substring(FunctionElement):
    name = "substr"
    type = sa.String()
    inherit_cache = True


@compiles(_SampleStdDev)
def _compile_sd(element: Any, compiler: Any, **kw: Any) -> str:
    return "stddev_samp(%s)" % compiler.process(element.clauses, **kw)


@compiles(_SampleStdDev, "mssql")
def _compile_sd_mssql(element: Any, compiler: Any, **kw: Any) -> str:
    return "stdev(%s)" % compiler.process(element.clauses, **kw)


@compiles(_SampleStdDev, "sqlite")
def _compile_sd_sqlite(element: Any, compiler: Any, **kw: Any) -> str:
    raise TranslationError(
        "sd() is not available on SQLite", dialect="sqlite", verb="sd"
    )


@compiles(_SampleVariance)
def _compile_var(element: Any, compiler: Any, **kw: Any) -> str:
    return "var_samp(%s)" % compiler.process(element.clauses, **kw)


@compiles(_SampleVariance, "mssql")
def _compile_var_mssql(element: Any, compiler: Any, **kw: Any) -> str:
    return "var(%s)" % compiler.process(element.clauses, **kw)


@compiles(_SampleVariance, "sqlite")
def _compile_var_sqlite(element: Any, compiler: Any, **kw: Any) -> str:
    raise TranslationError(
        "var() is not available on SQLite", dialect="sqlite", verb="var"
    )


@compiles(_CharLength)
def _compile_nchar(element: Any, compiler: Any, **kw: Any) -> str:
    return "length(%s)" % compiler.process(element.clauses, **kw)


@compiles(_CharLength, "mssql")
def _compile_nchar_mssql(element: Any, compiler: Any, **kw: Any) -> str:
    return "len(%s)" % compiler.process(element.clauses, **kw)


@compiles(_CharLength, "mysql")
def _compile_nchar_mysql(element: Any, compiler: Any, **kw: Any) -> str:
    return "char_length(%s)" % compiler.process(element.clauses, **kw)


@compiles(_Substring)
def _compile_substr(element: Any, compiler: Any, **kw: Any) -> str:
    return "substr(%s)" % compiler.process(element.clauses, **kw)


@compiles(_Substring, "mssql")
def _compile_substr_mssql(element: Any, compiler: Any, **kw: Any) -> str:
    return "substring(%s)" % compiler.process(element.clauses, **kw)


def is_aggregate_function(element: Any) -> bool:
    """True for aggregate calls (COUNT, AVG, ...) that are not already windowed."""
    if not isinstance(element, FunctionElement):
        return False
    if getattr(element, "is_aggregate", False):
        return True
    return str(getattr(element, "name", "")).lower() in AGGREGATE_NAMES


def contains_aggregate(expr: ClauseElement) -> bool:
    return any(is_aggregate_function(e) for e in walk(expr))


def windowed(expr: ClauseElement, partition_by: Sequence[ClauseElement]) -> ClauseElement:
    """Turn every bare aggregate in ``expr`` into a window over ``partition_by``."""
    partition = list(partition_by) or None

    def replace(element: Any) -> Any:
        if isinstance(element, Over):
            return element
        if is_aggregate_function(element):
            return element.over(partition_by=partition)
        return None

    return visitors.replacement_traverse(expr, {}, replace)


def _warn_missing_values(na_rm: bool) -> None:
    global _na_warning_issued
    if na_rm or _na_warning_issued:
        return
    _na_warning_issued = True
    logger.warning(
        "Missing values are always removed in SQL aggregation functions. "
        "Use na_rm=True to silence this warning"
    )


class _Functions:
    """Namespace of translated functions, exposed as ``fn``."""

    # Aggregates

    def n(self) -> ClauseElement:
        """Number of rows: ``COUNT(*)``."""
        return sa.func.count()

    def n_distinct(self, x: Any) -> ClauseElement:
        """Number of distinct non-null values: ``COUNT(DISTINCT x)``."""
        return sa.func.count(sa.distinct(as_expr(x)))

    def mean(self, x: Any, na_rm: bool = False) -> ClauseElement:
        _warn_missing_values(na_rm)
        return sa.func.avg(as_expr(x))

    def sum(self, x: Any, na_rm: bool = False) -> ClauseElement:
        _warn_missing_values(na_rm)
        return sa.func.sum(as_expr(x))

    def min(self, x: Any, na_rm: bool = False) -> ClauseElement:
        _warn_missing_values(na_rm)
        return sa.func.min(as_expr(x))

    def max(self, x: Any, na_rm: bool = False) -> ClauseElement:
        _warn_missing_values(na_rm)
        return sa.func.max(as_expr(x))

    def sd(self, x: Any, na_rm: bool = False) -> ClauseElement:
        """Sample standard deviation (not available on SQLite)."""
        _warn_missing_values(na_rm)
        return _SampleStdDev(as_expr(x))

    def var(self, x: Any, na_rm: bool = False) -> ClauseElement:
        """Sample variance (not available on SQLite)."""
        _warn_missing_values(na_rm)
        return _SampleVariance(as_expr(x))

    # Conditionals and missing values

    def if_else(self, condition: Any, true: Any, false: Any) -> ClauseElement:
        return sa.case((as_expr(condition), _value(true)), else_=_value(false))

    def case_when(
        self, *cases: Tuple[Any, Any], default: Optional[Any] = None
    ) -> ClauseElement:
        """``fn.case_when((cond1, value1), (cond2, value2), default=...)``."""
        if not cases:
            raise TranslationError("case_when() needs at least one (condition, value) pair")
        whens = [(as_expr(cond), _value(value)) for cond, value in cases]
        if default is None:
            return sa.case(*whens)
        return sa.case(*whens, else_=_value(default))

    def coalesce(self, *args: Any) -> ClauseElement:
        return sa.func.coalesce(*[as_expr(a) for a in args])

    def is_na(self, x: Any) -> ClauseElement:
        return as_expr(x).is_(None)

    def not_na(self, x: Any) -> ClauseElement:
        return as_expr(x).is_not(None)

    def between(self, x: Any, lower: Any, upper: Any) -> ClauseElement:
        return as_expr(x).between(_value(lower), _value(upper))

    def is_in(self, x: Any, values: Iterable[Any]) -> ClauseElement:
        return as_expr(x).in_(list(values))

    # Strings

    def paste(self, *args: Any, sep: str = " ") -> ClauseElement:
        """Concatenate with ``sep``; renders ``||``, ``concat()`` or ``+`` by dialect."""
        if not args:
            raise TranslationError("paste() needs at least one argument")
        parts = [as_expr(a) for a in args]
        result = parts[0]
        for part in parts[1:]:
            if sep:
                result = result.concat(sa.literal(sep))
            result = result.concat(part)
        return result

    def paste0(self, *args: Any) -> ClauseElement:
        return self.paste(*args, sep="")

    def nchar(self, x: Any) -> ClauseElement:
        return _CharLength(as_expr(x))

    def substr(self, x: Any, start: int, stop: int) -> ClauseElement:
        """Characters ``start`` to ``stop`` inclusive, 1-based."""
        if stop < start:
            raise TranslationError("substr() stop must not be before start")
        return _Substring(as_expr(x), sa.literal(start), sa.literal(stop - start + 1))

    def tolower(self, x: Any) -> ClauseElement:
        return sa.func.lower(as_expr(x))

    def toupper(self, x: Any) -> ClauseElement:
        return sa.func.upper(as_expr(x))

    # Maths and casts

    def round(self, x: Any, digits: int = 0) -> ClauseElement:
        return sa.func.round(as_expr(x), digits)

    def abs(self, x: Any) -> ClauseElement:
        return sa.func.abs(as_expr(x))

    def as_integer(self, x: Any) -> ClauseElement:
        return sa.cast(as_expr(x), sa.Integer)

    def as_numeric(self, x: Any) -> ClauseElement:
        return sa.cast(as_expr(x), sa.Float)

    def as_character(self, x: Any) -> ClauseElement:
        return sa.cast(as_expr(x), sa.String)


def _value(value: Any) -> ClauseElement:
    """Branch values: clause elements pass through, anything else is literal."""
    if isinstance(value, ClauseElement):
        return value
    return sa.literal(value)


fn = _Functions()
