"""
Generic query execution over the shared pool.

No parsing, validation or authorization of the SQL text: the caller is
trusted and is expected to send parameterized statements. Retries are the
client's job; a failure here is reported once.
"""

import logging
from collections.abc import Sequence
from typing import Any

from dbmonitor.core.pool import (
    ConnectionPool,
    PoolError,
    cursor_to_dicts,
    describe_fields,
    execute,
    row_count,
)
from dbmonitor.schemas import FieldDescriptor, QueryOut

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BadRequestError(ServiceError):
    status_code = 400


class QueryFailedError(ServiceError):
    status_code = 500


class QueryService:
    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def handle(self, text: str | None, params: Sequence[Any] | None = None) -> QueryOut:
        """
        Run *text* with positional *params* on one pooled connection.

        Raises BadRequestError when text is missing or empty (the pool is not
        touched) and QueryFailedError for any pool or execution failure.
        Whitespace-only text is sent to the server as-is.
        """
        if not text:
            raise BadRequestError("Query text is required")

        try:
            with self._pool.connection() as conn:
                cur = execute(conn, text, params)
                try:
                    fields = describe_fields(cur)
                    rows = cursor_to_dicts(cur)
                    count = row_count(cur)
                finally:
                    cur.close()
            return QueryOut(
                rows=rows,
                rowCount=count,
                fields=[FieldDescriptor(**f) for f in fields],
            )
        except PoolError as e:
            logger.warning("Query could not get a connection: %s", e)
            raise QueryFailedError(str(e)) from e
        except Exception as e:
            logger.error("Query error: %s", e)
            raise QueryFailedError(str(e)) from e
