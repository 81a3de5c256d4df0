"""
Database connection config resolution.

One place that turns the deployment's environment into a ``PoolConfig``:

- ``AZURE_POSTGRESQL_CONNECTIONSTRING`` (when set) supplies host, user,
  database and port. URL form (``postgres://user@host:5432/db``), bare form
  (``user@host:5432/db``) and libpq keyword form (``host=... dbname=...``)
  are accepted.
- Otherwise each field is read from its own list of variables, first
  non-empty wins, then a default.
- The password is never taken from the connection string; it always comes
  from the password variables below.
"""

import logging
import os
import re
from collections.abc import Mapping
from urllib.parse import unquote, urlsplit

from psycopg import ProgrammingError
from psycopg.conninfo import conninfo_to_dict
from pydantic import BaseModel, ConfigDict, Field

from dbmonitor.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

CONNECTION_STRING_VAR = "AZURE_POSTGRESQL_CONNECTIONSTRING"

# (field, variables in priority order, default)
FIELD_SOURCES: tuple[tuple[str, tuple[str, ...], str | None], ...] = (
    ("host", ("WEBSITE_PRIVATE_IP", "PGHOST"), "localhost"),
    ("database", ("WEBSITE_DBNAME", "PGDATABASE"), "postgres"),
    ("user", ("WEBSITE_DBUSER", "PGUSER"), "postgres"),
    ("port", ("WEBSITE_DBPORT", "PGPORT"), "5432"),
)

PASSWORD_VARS: tuple[str, ...] = (
    "WEBSITE_DBPASSWORD",
    "PGPASSWORD",
    "AZURE_POSTGRESQL_PASSWORD",
)

_URL_SCHEMES = ("postgres://", "postgresql://")
_KEYWORD_FORM = re.compile(r"^\w+\s*=")
DEFAULT_PORT = 5432


class ConfigError(ValueError):
    """Database configuration is unusable; the server must not start."""

    pass


class MissingPasswordError(ConfigError):
    def __init__(self) -> None:
        super().__init__(
            "Database password is not configured. Set one of: "
            + ", ".join(PASSWORD_VARS)
        )


class MissingFieldError(ConfigError):
    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"Invalid database configuration: missing {field}")


class ConnectionStringError(ConfigError):
    """The connection string (or a port value) could not be parsed."""

    pass


class PoolConfig(BaseModel):
    """Immutable pool configuration computed once at startup."""

    model_config = ConfigDict(frozen=True)

    host: str
    database: str
    user: str
    password: str = Field(repr=False)
    port: int = DEFAULT_PORT
    max_size: int = 20
    idle_timeout: float = 30.0
    connect_timeout: float = 30.0
    keepalive: bool = True
    keepalive_idle: int = 10
    sslmode: str = "require"

    def connect_kwargs(self) -> dict[str, object]:
        """Keyword arguments for ``psycopg.connect`` (libpq parameter names)."""
        kwargs: dict[str, object] = {
            "host": self.host,
            "port": self.port,
            "dbname": self.database,
            "user": self.user,
            "password": self.password,
            "sslmode": self.sslmode,
            "connect_timeout": max(1, int(self.connect_timeout)),
        }
        if self.keepalive:
            kwargs["keepalives"] = 1
            kwargs["keepalives_idle"] = self.keepalive_idle
        else:
            kwargs["keepalives"] = 0
        return kwargs

    def describe(self) -> dict[str, object]:
        """Loggable view of the target (no password)."""
        return {
            "host": self.host,
            "database": self.database,
            "user": self.user,
            "port": self.port,
        }


def _first(environ: Mapping[str, str], names: tuple[str, ...]) -> str | None:
    for name in names:
        value = environ.get(name)
        if value:
            return value
    return None


def _parse_port(raw: str | int | None) -> int:
    if raw is None or raw == "":
        return DEFAULT_PORT
    try:
        port = int(raw)
    except (TypeError, ValueError):
        raise ConnectionStringError(f"Invalid database port: {raw!r}") from None
    if not 0 < port < 65536:
        raise ConnectionStringError(f"Invalid database port: {raw!r}")
    return port


def parse_connection_string(value: str) -> dict[str, object]:
    """
    Extract host, user, database and port from a connection string.

    Any password present in *value* is dropped. Raises ConnectionStringError
    when the string cannot be parsed.
    """
    text = value.strip()
    if not text:
        raise ConnectionStringError("Connection string is empty")

    if _KEYWORD_FORM.match(text):
        try:
            params = conninfo_to_dict(text)
        except ProgrammingError as e:
            raise ConnectionStringError(f"Failed to parse connection string: {e}") from e
        return {
            "host": str(params.get("host") or ""),
            "user": str(params.get("user") or ""),
            "database": str(params.get("dbname") or ""),
            "port": _parse_port(params.get("port")),
        }

    if not text.startswith(_URL_SCHEMES):
        if "://" in text:
            scheme = text.split("://", 1)[0]
            raise ConnectionStringError(f"Unsupported connection string scheme: {scheme}")
        text = f"postgres://{text}"

    try:
        url = urlsplit(text)
        port = url.port
    except ValueError as e:
        raise ConnectionStringError(f"Failed to parse connection string: {e}") from e
    if not url.hostname:
        raise ConnectionStringError("Failed to parse connection string: no host")
    return {
        "host": url.hostname,
        "user": unquote(url.username or ""),
        "database": unquote(url.path[1:] if url.path.startswith("/") else url.path),
        "port": port or DEFAULT_PORT,
    }


def resolve(
    environ: Mapping[str, str] | None = None,
    *,
    settings: Settings | None = None,
) -> PoolConfig:
    """
    Build the PoolConfig from *environ* (default ``os.environ``).

    Raises MissingPasswordError, MissingFieldError or ConnectionStringError.
    """
    env = os.environ if environ is None else environ
    s = settings or default_settings

    conn_str = env.get(CONNECTION_STRING_VAR)
    if conn_str:
        fields = parse_connection_string(conn_str)
    else:
        logger.warning(
            "%s not set, falling back to individual variables", CONNECTION_STRING_VAR
        )
        fields = {}
        for name, sources, default in FIELD_SOURCES:
            fields[name] = _first(env, sources) or default
        fields["port"] = _parse_port(fields["port"])

    password = _first(env, PASSWORD_VARS)
    if not password:
        raise MissingPasswordError()

    for name in ("host", "database", "user"):
        if not fields.get(name):
            raise MissingFieldError(name)

    return PoolConfig(
        host=str(fields["host"]),
        database=str(fields["database"]),
        user=str(fields["user"]),
        password=password,
        port=int(fields["port"]),  # type: ignore[call-overload]
        max_size=s.DB_POOL_MAX_SIZE,
        idle_timeout=s.DB_POOL_IDLE_TIMEOUT,
        connect_timeout=s.DB_CONNECT_TIMEOUT,
        keepalive=s.DB_KEEPALIVE,
        keepalive_idle=s.DB_KEEPALIVE_IDLE,
        sslmode=s.DB_SSLMODE,
    )
