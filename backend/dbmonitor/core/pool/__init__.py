"""
Connection pool for the monitored PostgreSQL database.

Built once at startup from ``core.db_config.resolve()`` and shared by every
request handler; handlers lease a connection per request.
"""

from .connect import cursor_to_dicts, describe_fields, execute, json_value, row_count
from .health import ping
from .manager import (
    ConnectionPool,
    PoolClosedError,
    PoolConnectionError,
    PoolError,
    PoolTimeoutError,
)

__all__ = [
    "execute",
    "cursor_to_dicts",
    "json_value",
    "describe_fields",
    "row_count",
    "ping",
    "ConnectionPool",
    "PoolError",
    "PoolTimeoutError",
    "PoolConnectionError",
    "PoolClosedError",
]
