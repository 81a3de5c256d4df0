"""Unit tests for core.query.QueryService."""

from unittest.mock import patch

import psycopg
import pytest
from psycopg_pool import PoolTimeout

from dbmonitor.core.query import BadRequestError, QueryFailedError, QueryService
from tests.utils.pool import Column, make_connection, make_cursor, make_pool


@pytest.mark.parametrize("text", [None, ""])
def test_missing_text_never_reaches_pool(text: str | None) -> None:
    pool, backend = make_pool()
    with pytest.raises(BadRequestError, match="Query text is required"):
        QueryService(pool).handle(text)
    backend.getconn.assert_not_called()
    assert pool.in_use == 0


def test_whitespace_text_is_sent_to_the_server() -> None:
    cur = make_cursor(columns=None, rowcount=-1)
    pool, backend = make_pool(connection=make_connection(cur))
    out = QueryService(pool).handle("   \n")
    cur.execute.assert_called_once_with("   \n")
    assert out.rows == []
    assert out.rowCount == 0
    backend.putconn.assert_called_once()


def test_select_returns_rows_count_fields() -> None:
    cur = make_cursor(rows=[(1,)], columns=[Column("?column?")])
    conn = make_connection(cur)
    pool, backend = make_pool(connection=conn)

    out = QueryService(pool).handle("SELECT 1")

    assert out.rows == [{"?column?": 1}]
    assert out.rowCount == 1
    assert [f.name for f in out.fields] == ["?column?"]
    assert out.fields[0].dataTypeID == 23
    cur.execute.assert_called_once_with("SELECT 1")
    cur.close.assert_called_once()
    backend.putconn.assert_called_once_with(conn)
    assert pool.in_use == 0


def test_params_passed_through_in_order() -> None:
    cur = make_cursor(rows=[("x", 2)], columns=[Column("a", 25), Column("b")])
    pool, _ = make_pool(connection=make_connection(cur))
    QueryService(pool).handle("SELECT $1::text AS a, $2::int AS b", ["x", 2])
    cur.execute.assert_called_once_with("SELECT $1::text AS a, $2::int AS b", ["x", 2])


def test_dml_rowcount_without_rows() -> None:
    cur = make_cursor(columns=None, rowcount=4)
    pool, _ = make_pool(connection=make_connection(cur))
    out = QueryService(pool).handle("UPDATE t SET x = 1")
    assert out.rows == []
    assert out.rowCount == 4
    assert out.fields == []


def test_execution_error_releases_connection() -> None:
    cur = make_cursor()
    cur.execute.side_effect = psycopg.errors.UndefinedTable(
        'relation "missing" does not exist'
    )
    conn = make_connection(cur)
    pool, backend = make_pool(connection=conn)
    before = pool.in_use

    with pytest.raises(QueryFailedError, match='relation "missing" does not exist') as exc_info:
        QueryService(pool).handle("SELECT * FROM missing")

    assert exc_info.value.status_code == 500
    assert pool.in_use == before
    backend.putconn.assert_called_once_with(conn)


def test_fetch_error_closes_cursor_and_releases() -> None:
    cur = make_cursor(columns=[Column("n")])
    cur.fetchall.side_effect = psycopg.OperationalError("server closed the connection")
    pool, backend = make_pool(connection=make_connection(cur))
    with pytest.raises(QueryFailedError):
        QueryService(pool).handle("SELECT 1 AS n")
    cur.close.assert_called_once()
    assert pool.in_use == 0
    backend.putconn.assert_called_once()


def test_pool_timeout_is_query_failed() -> None:
    pool, backend = make_pool()
    backend.getconn.side_effect = PoolTimeout("couldn't get a connection")
    with pytest.raises(QueryFailedError, match="Timed out"):
        QueryService(pool).handle("SELECT 1")
    assert pool.in_use == 0


def test_service_never_retries() -> None:
    pool, backend = make_pool()
    with patch("dbmonitor.core.query.execute", side_effect=RuntimeError("nope")) as mock_execute:
        with pytest.raises(QueryFailedError):
            QueryService(pool).handle("SELECT 1")
    mock_execute.assert_called_once()
    backend.getconn.assert_called_once()
