"""
Shared pytest fixtures for dbframe tests.

Integration fixtures open an in-memory SQLite connection loaded with the
sample flight tables; translation fixtures use simulated backends so SQL
can be checked without a database.
"""

import pytest

from dbframe import connect, lazy_frame, load_sample_tables, simulate_dialect
from dbframe.translate import functions as translate_functions


@pytest.fixture
def con():
    """In-memory SQLite connection with the sample tables."""
    connection = connect()
    load_sample_tables(connection)
    yield connection
    connection.disconnect()


@pytest.fixture
def empty_con():
    """In-memory SQLite connection without tables."""
    connection = connect()
    yield connection
    connection.disconnect()


@pytest.fixture
def flights(con):
    return con.tbl("flights")


@pytest.fixture
def sqlite_sim():
    return simulate_dialect("sqlite")


@pytest.fixture
def lf(sqlite_sim):
    """Simulated SQLite table ``df(g, x, y, s)``."""
    return lazy_frame(["g", "x", "y", "s"], con=sqlite_sim)


@pytest.fixture(autouse=True)
def reset_missing_value_warning():
    """Let every test see the one-time na_rm warning afresh."""
    translate_functions._na_warning_issued = False
    yield
    translate_functions._na_warning_issued = False


@pytest.fixture
def render():
    """SQL of a LazyTable with whitespace collapsed, for substring checks."""

    def _render(table) -> str:
        return " ".join(table.sql_render().split())

    return _render
