"""
Liveness probe for pooled connections.
"""

from typing import Any

from .connect import execute

PROBE_SQL = "SELECT 1"


def ping(conn: Any) -> None:
    """Run SELECT 1 on *conn*. Raises whatever the driver raises."""
    cur = execute(conn, PROBE_SQL)
    try:
        cur.fetchone()
    finally:
        cur.close()
