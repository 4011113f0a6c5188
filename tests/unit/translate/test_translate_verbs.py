"""
SQL generated by single-table verbs, checked on a simulated SQLite backend.
"""

from unittest.mock import patch

import pytest

from dbframe import col, desc, fn, lit
from dbframe.translate import query as query_module
from dbframe.translate import lazy as lazy_module
from dbframe_base.errors import TranslationError, ValidationError


class TestSelectAndRename:
    def test_select_orders_columns(self, lf, render):
        table = lf.select("x", "g")
        assert table.columns == ["x", "g"]
        assert render(table) == "SELECT df.x, df.g FROM df"

    def test_select_accepts_lists_and_col(self, lf):
        assert lf.select(["y", col("x")]).columns == ["y", "x"]

    def test_select_unknown_column(self, lf):
        with pytest.raises(TranslationError, match="Column 'z' not found in select"):
            lf.select("z")

    def test_select_nothing(self, lf):
        with pytest.raises(ValidationError, match="at least one column"):
            lf.select()

    def test_select_adds_missing_groups(self, lf):
        with patch.object(lazy_module.logger, "info") as mock_info:
            table = lf.group_by("g").select("x")
        assert table.columns == ["g", "x"]
        mock_info.assert_called_once_with("Adding missing grouping variables: g")

    def test_rename_keeps_position(self, lf, render):
        table = lf.rename(a="x")
        assert table.columns == ["g", "a", "y", "s"]
        assert render(table) == "SELECT df.g, df.x AS a, df.y, df.s FROM df"

    def test_rename_updates_groups(self, lf):
        assert lf.group_by("g").rename(grp="g").groups == ["grp"]

    def test_rename_onto_existing_name(self, lf):
        with pytest.raises(ValidationError, match="Duplicate column names: y"):
            lf.rename(y="x")

    def test_relocate_to_front(self, lf):
        assert lf.relocate("s").columns == ["s", "g", "x", "y"]

    def test_relocate_after(self, lf):
        assert lf.relocate("g", after="y").columns == ["x", "y", "g", "s"]

    def test_relocate_before(self, lf):
        assert lf.relocate("s", before="x").columns == ["g", "s", "x", "y"]

    def test_relocate_relative_to_moved_column(self, lf):
        with pytest.raises(ValidationError):
            lf.relocate("x", "y", after="y")


class TestMutate:
    def test_adds_column(self, lf, render):
        table = lf.mutate(z=col("x") + 1)
        assert table.columns == ["g", "x", "y", "s", "z"]
        assert render(table) == "SELECT df.g, df.x, df.y, df.s, df.x + 1 AS z FROM df"

    def test_replaces_column_in_place(self, lf):
        assert lf.mutate(x=col("x") * 10).columns == ["g", "x", "y", "s"]

    def test_later_expression_uses_earlier_one(self, lf, render):
        sql = render(lf.mutate(z=col("x") + 1, w=col("z") * 2))
        assert "df.x + 1 AS z FROM df) AS q01" in sql
        assert "q01.z * 2 AS w" in sql

    def test_independent_expressions_share_a_level(self, lf, render):
        sql = render(lf.mutate(a=col("x") + 1, b=col("y") + 1))
        assert "q01" not in sql

    def test_mutate_after_head_wraps(self, lf, render):
        sql = render(lf.head(5).mutate(z=col("x") + 1))
        assert "LIMIT 5) AS q01" in sql

    def test_grouped_aggregate_becomes_window(self, lf, render):
        sql = render(lf.group_by("g").mutate(m=fn.mean("x", na_rm=True)))
        assert "avg(df.x) OVER (PARTITION BY df.g) AS m" in sql

    def test_ungrouped_aggregate_window_is_empty(self, lf, render):
        sql = render(lf.mutate(n=fn.n()))
        assert "count(*) OVER () AS n" in sql

    def test_literal_column(self, lf, render):
        sql = render(lf.mutate(origin=lit("JFK")))
        assert "'JFK' AS origin" in sql

    def test_transmute(self, lf):
        assert lf.transmute(z=col("x") + 1).columns == ["z"]


class TestFilter:
    def test_where(self, lf, render):
        sql = render(lf.filter(col("x") > 1, col("s") == "a"))
        assert sql.endswith("FROM df WHERE df.x > 1 AND df.s = 'a'")

    def test_filter_on_computed_column_wraps(self, lf, render):
        sql = render(lf.mutate(z=col("x") + 1).filter(col("z") > 2))
        assert sql.startswith("SELECT q01.g, q01.x, q01.y, q01.s, q01.z FROM (SELECT")
        assert sql.endswith("AS q01 WHERE q01.z > 2")

    def test_filter_after_head_wraps(self, lf, render):
        sql = render(lf.head(10).filter(col("x") > 1))
        assert "LIMIT 10) AS q01 WHERE q01.x > 1" in sql

    def test_filter_after_summarise_is_having(self, lf, render):
        table = (
            lf.group_by("g")
            .summarise(m=fn.mean("x", na_rm=True))
            .filter(col("m") > 1)
        )
        sql = render(table)
        assert "GROUP BY df.g HAVING avg(df.x) > 1" in sql
        assert "q01" not in sql

    def test_grouped_aggregate_condition_uses_window(self, lf, render):
        table = lf.group_by("g").filter(col("x") > fn.mean("x", na_rm=True))
        sql = render(table)
        assert "avg(df.x) OVER (PARTITION BY df.g) AS w01" in sql
        assert sql.endswith("WHERE q01.x > q01.w01")
        assert table.columns == ["g", "x", "y", "s"]

    def test_filter_after_window_wraps(self, lf, render):
        table = lf.group_by("g").mutate(m=fn.mean("x", na_rm=True)).filter(col("y") > 0)
        sql = render(table)
        assert "avg(df.x) OVER (PARTITION BY df.g) AS m FROM df) AS q01" in sql
        assert sql.endswith("WHERE q01.y > 0")

    def test_filter_on_distinct_wraps(self, lf, render):
        sql = render(lf.distinct("g").filter(col("g") == "a"))
        assert "SELECT DISTINCT df.g FROM df) AS q01" in sql

    def test_unknown_column(self, lf):
        with pytest.raises(TranslationError, match="not found in filter"):
            lf.filter(col("nope") > 1)


class TestGroupAndSummarise:
    def test_summarise(self, lf, render):
        table = lf.group_by("g").summarise(m=fn.mean("x", na_rm=True), n=fn.n())
        assert table.columns == ["g", "m", "n"]
        assert render(table) == (
            "SELECT df.g, avg(df.x) AS m, count(*) AS n FROM df GROUP BY df.g"
        )

    def test_summarise_ungrouped(self, lf, render):
        assert render(lf.summarise(n=fn.n())) == "SELECT count(*) AS n FROM df"

    def test_summarise_keeps_where(self, lf, render):
        table = lf.filter(col("x") > 0).group_by("g").summarise(n=fn.n())
        assert render(table).endswith("WHERE df.x > 0 GROUP BY df.g")

    def test_summarise_on_computed_group_wraps(self, lf, render):
        table = lf.group_by(big=col("x") > 10).summarise(n=fn.n())
        sql = render(table)
        assert "GROUP BY q01.big" in sql

    def test_drop_last_group_by_default(self, lf):
        with patch.object(lazy_module.logger, "info") as mock_info:
            table = lf.group_by("g", "s").summarise(n=fn.n())
        assert table.groups == ["g"]
        mock_info.assert_called_once_with("summarise() has grouped output by g")

    @pytest.mark.parametrize("mode, groups", [("drop", []), ("keep", ["g", "s"])])
    def test_groups_option(self, lf, mode, groups):
        assert lf.group_by("g", "s").summarise(n=fn.n(), _groups=mode).groups == groups

    def test_bad_groups_option(self, lf):
        with pytest.raises(ValidationError, match="_groups must be one of"):
            lf.summarise(n=fn.n(), _groups="sometimes")

    def test_non_aggregate_expression_is_rejected(self, lf):
        with pytest.raises(TranslationError, match="must aggregate x"):
            lf.group_by("g").summarise(bad=col("x"))

    def test_later_summary_uses_earlier_one(self, lf, render):
        sql = render(lf.summarise(n=fn.n(), twice=col("n") * 2))
        assert "count(*) * 2 AS twice" in sql

    def test_mutate_after_summarise_wraps(self, lf, render):
        sql = render(lf.group_by("g").summarise(n=fn.n()).mutate(m=col("n") + 1))
        assert "GROUP BY df.g) AS q01" in sql

    def test_group_by_add(self, lf):
        assert lf.group_by("g").group_by("s", add=True).groups == ["g", "s"]
        assert lf.group_by("g").group_by("s").groups == ["s"]

    def test_ungroup(self, lf):
        assert lf.group_by("g").ungroup().groups == []

    def test_count(self, lf, render):
        table = lf.count("g", sort=True)
        sql = render(table)
        assert table.columns == ["g", "n"]
        assert "count(*) AS n" in sql
        assert "GROUP BY df.g" in sql
        assert sql.endswith("DESC")

    def test_count_keeps_groups(self, lf):
        assert lf.group_by("s").count("g").groups == ["s"]

    def test_count_name_clash(self, lf):
        with pytest.raises(ValidationError):
            lf.count("g", name="g")


class TestOrderingAndLimits:
    def test_arrange(self, lf, render):
        assert render(lf.arrange("g", desc("x"))).endswith("ORDER BY df.g, df.x DESC")

    def test_arrange_replaces_previous_order(self, lf, render):
        assert render(lf.arrange("x").arrange("y")).endswith("ORDER BY df.y")

    def test_arrange_after_head_wraps(self, lf, render):
        sql = render(lf.head(3).arrange("x"))
        assert sql.endswith("LIMIT 3) AS q01 ORDER BY q01.x")

    def test_ordering_on_outputs_survives_subquery(self, lf, render):
        with patch.object(query_module.logger, "warning") as mock_warning:
            table = lf.mutate(z=col("x") + 1).arrange("z").filter(col("z") > 1)
        sql = render(table)
        mock_warning.assert_not_called()
        assert sql.endswith("ORDER BY q01.z")

    def test_other_ordering_is_dropped_with_warning(self, lf, render):
        with patch.object(query_module.logger, "warning") as mock_warning:
            table = (
                lf.mutate(z=col("x") + 1)
                .arrange(col("y") * 2)
                .filter(col("z") > 1)
            )
        mock_warning.assert_called_once()
        assert "ORDER BY" not in render(table)

    def test_head(self, lf, render):
        assert render(lf.head()).endswith("FROM df LIMIT 6")

    def test_consecutive_heads_keep_minimum(self, lf, render):
        assert render(lf.head(5).head(3)).endswith("LIMIT 3")
        assert render(lf.head(3).head(5)).endswith("LIMIT 3")

    def test_head_rejects_negative(self, lf):
        with pytest.raises(ValidationError):
            lf.head(-1)

    def test_distinct(self, lf, render):
        assert render(lf.distinct()) == "SELECT DISTINCT df.g, df.x, df.y, df.s FROM df"


class TestSetOperations:
    def test_union_all(self, lf, render):
        sql = render(lf.filter(col("x") > 1).union_all(lf.filter(col("x") < 0)))
        assert "UNION ALL" in sql
        assert "AS q01" in sql

    def test_union_reorders_columns(self, lf):
        other = lf.select("s", "y", "x", "g")
        assert lf.union(other).columns == ["g", "x", "y", "s"]

    def test_union_needs_same_columns(self, lf):
        with pytest.raises(ValidationError, match="same columns"):
            lf.union(lf.select("x"))


class TestImmutabilityAndRendering:
    def test_verbs_do_not_modify_receiver(self, lf, render):
        before = render(lf)
        lf.filter(col("x") > 1).mutate(z=col("x")).group_by("g").head(2)
        assert render(lf) == before
        assert lf.groups == []

    def test_show_query_prints_and_returns(self, lf, capsys):
        sql = lf.select("x").show_query()
        out = capsys.readouterr().out
        assert out.startswith("<SQL>\n")
        assert sql in out

    def test_repr(self, lf):
        text = repr(lf.group_by("g"))
        assert "# Source:   table<df>" in text
        assert "# Database: sqlite" in text
        assert "# Groups:   g" in text

    def test_simulated_backend_cannot_execute(self, lf):
        with pytest.raises(TranslationError, match="simulated sqlite"):
            lf.collect()
        with pytest.raises(TranslationError):
            lf.count_rows()
        with pytest.raises(TranslationError):
            lf.compute()
