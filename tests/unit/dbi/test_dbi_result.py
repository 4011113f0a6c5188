"""
Tests for paged result sets.
"""

from unittest.mock import patch

import pytest

from dbframe.dbi import result as result_module
from dbframe_base.errors import ResultSetError


@pytest.fixture
def result(con):
    rs = con.send_query("SELECT carrier, flight FROM flights ORDER BY flight")
    yield rs
    rs.clear()


class TestResultSet:
    def test_columns(self, result):
        assert result.columns == ["carrier", "flight"]

    def test_fetch_in_pages(self, result):
        first = result.fetch(5)
        assert len(first) == 5
        assert list(first.columns) == ["carrier", "flight"]
        assert result.row_count == 5
        assert not result.has_completed()

        rest = result.fetch(-1)
        assert len(rest) == 13
        assert result.row_count == 18
        assert result.has_completed()

    def test_short_page_completes(self, result):
        result.fetch(10)
        page = result.fetch(10)
        assert len(page) == 8
        assert result.has_completed()

    def test_fetch_after_completion_is_empty_with_columns(self, result):
        result.fetch(-1)
        empty = result.fetch(5)
        assert len(empty) == 0
        assert list(empty.columns) == ["carrier", "flight"]

    def test_fetch_defaults_to_every_row(self, result):
        result.page_size = 4
        assert len(result.fetch()) == 18
        assert result.has_completed()

    def test_iterates_in_chunks(self, result):
        result.page_size = 7
        sizes = [len(chunk) for chunk in result]
        assert sizes == [7, 7, 4]

    def test_clear_is_idempotent(self, result):
        result.fetch(-1)
        result.clear()
        result.clear()
        assert result.is_cleared

    def test_fetch_after_clear_raises(self, result):
        result.clear()
        with pytest.raises(ResultSetError, match="cleared"):
            result.fetch()

    def test_clear_with_pending_rows_warns(self, result):
        with patch.object(result_module.logger, "warning") as mock_warning:
            result.fetch(2)
            result.clear()
        mock_warning.assert_called_once_with(
            "Closing result set with pending rows", fetched=2
        )

    def test_context_manager_clears(self, con):
        with con.send_query("SELECT * FROM airlines") as rs:
            assert len(rs.fetch(-1)) == 7
        assert rs.is_cleared

    def test_repr(self, result):
        assert "open" in repr(result)
        result.fetch(-1)
        assert "completed" in repr(result)
