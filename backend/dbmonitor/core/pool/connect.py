"""
Cursor helpers for pooled PostgreSQL connections.

Queries are sent with psycopg's RawCursor so positional ``$1..$n``
placeholders reach the server untouched (server-side binding).
"""

import math
import uuid
from collections.abc import Sequence
from datetime import date, time, timedelta
from decimal import Decimal
from typing import Any

from psycopg.types.multirange import Multirange
from psycopg.types.range import Range

# libpq result format codes
_FORMATS = {0: "text", 1: "binary"}


def execute(
    conn: Any,
    sql: str,
    params: Sequence[Any] | None = None,
) -> Any:
    """
    Execute *sql* with positional *params* and return the cursor.

    Caller uses cursor_to_dicts(cursor), describe_fields(cursor) or
    cursor.rowcount, then closes the cursor.
    """
    cur = conn.cursor()
    if params:
        cur.execute(sql, list(params))
    else:
        cur.execute(sql)
    return cur


def cursor_to_dicts(cursor: Any) -> list[dict[str, Any]]:
    """Convert cursor result to list of dicts keyed by column name."""
    desc = cursor.description
    if not desc:
        return []
    names = [d[0] for d in desc]
    return [
        {name: json_value(value) for name, value in zip(names, row, strict=True)}
        for row in cursor.fetchall()
    ]


def describe_fields(cursor: Any) -> list[dict[str, Any]]:
    """
    Field descriptors for the current result.

    name / dataTypeID / dataTypeSize come from ``cursor.description``; table
    and column ids, type modifier and format come from the raw PGresult when
    the driver exposes one.
    """
    desc = cursor.description
    if not desc:
        return []
    res = getattr(cursor, "pgresult", None)
    fields: list[dict[str, Any]] = []
    for i, col in enumerate(desc):
        field: dict[str, Any] = {
            "name": col.name,
            "tableID": 0,
            "columnID": 0,
            "dataTypeID": col.type_code,
            "dataTypeSize": col.internal_size if col.internal_size is not None else -1,
            "dataTypeModifier": -1,
            "format": "text",
        }
        if res is not None:
            field["tableID"] = res.ftable(i)
            field["columnID"] = res.ftablecol(i)
            field["dataTypeModifier"] = res.fmod(i)
            field["format"] = _FORMATS.get(res.fformat(i), "text")
        fields.append(field)
    return fields


def row_count(cursor: Any) -> int:
    """Rows returned or affected; 0 when the driver reports none."""
    rc = cursor.rowcount
    return rc if rc is not None and rc >= 0 else 0



# Encoded as-is by the JSON response layer.
_PLAIN = (str, bool, int, Decimal, date, time, timedelta, uuid.UUID)


def json_value(value: Any) -> Any:
    """
    Make one column value JSON-encodable.

    bytea becomes PostgreSQL hex text (``\\x..``), ranges become
    ``{lower, upper, bounds}`` (or ``"empty"``), NaN/Infinity floats become
    None and any other driver type falls back to ``str()``.
    """
    if value is None or isinstance(value, _PLAIN):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, bytes | bytearray | memoryview):
        return "\\x" + bytes(value).hex()
    if isinstance(value, Range):
        if value.isempty:
            return "empty"
        return {
            "lower": json_value(value.lower),
            "upper": json_value(value.upper),
            "bounds": value.bounds,
        }
    if isinstance(value, dict):
        return {str(k): json_value(v) for k, v in value.items()}
    if isinstance(value, list | tuple | Multirange):
        return [json_value(v) for v in value]
    return str(value)
