"""
Process-wide connection pool for the monitored database.

Wraps ``psycopg_pool.ConnectionPool`` with lease accounting so every
acquire is matched by exactly one release, a startup liveness check and a
shutdown that runs once.
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import psycopg
from psycopg import RawCursor
from psycopg_pool import ConnectionPool as PsycopgPool
from psycopg_pool import PoolClosed, PoolTimeout

from dbmonitor.core.db_config import PoolConfig

from .health import ping

_log = logging.getLogger(__name__)

_MIN_SIZE = 1


class PoolError(RuntimeError):
    """Base class for pool failures surfaced to callers."""

    pass


class PoolTimeoutError(PoolError):
    """No connection became available within the connect timeout."""

    pass


class PoolConnectionError(PoolError):
    """The database could not be reached (or the connection broke)."""

    pass


class PoolClosedError(PoolConnectionError):
    """The pool has been shut down."""

    pass


class ConnectionPool:
    """Bounded pool of autocommit connections built from a PoolConfig."""

    def __init__(self, config: PoolConfig) -> None:
        self._config = config
        kwargs: dict[str, Any] = {
            **config.connect_kwargs(),
            "autocommit": True,
            "cursor_factory": RawCursor,
        }
        self._pool = PsycopgPool(
            conninfo="",
            kwargs=kwargs,
            min_size=min(_MIN_SIZE, config.max_size),
            max_size=config.max_size,
            max_idle=config.idle_timeout,
            timeout=config.connect_timeout,
            open=False,
            name="dbmonitor",
        )
        self._lock = threading.Lock()
        self._leased: set[int] = set()
        self._closed = False
        self._shutdown_started = False

    @property
    def config(self) -> PoolConfig:
        return self._config

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def in_use(self) -> int:
        """Number of connections currently leased."""
        with self._lock:
            return len(self._leased)

    def open(self) -> None:
        """Start the pool workers; connections are opened in the background."""
        self._pool.open(wait=False)

    def acquire(self) -> Any:
        """Lease a connection, waiting up to the connect timeout for a free slot."""
        if self._closed:
            raise PoolClosedError("Connection pool is closed")
        try:
            conn = self._pool.getconn(timeout=self._config.connect_timeout)
        except PoolTimeout as e:
            raise PoolTimeoutError(
                f"Timed out after {self._config.connect_timeout:g}s waiting for a database connection"
            ) from e
        except PoolClosed as e:
            raise PoolClosedError(str(e)) from e
        except psycopg.OperationalError as e:
            raise PoolConnectionError(str(e)) from e
        with self._lock:
            self._leased.add(id(conn))
        return conn

    def release(self, conn: Any) -> None:
        """Return a leased connection. Releasing twice raises ValueError."""
        with self._lock:
            if id(conn) not in self._leased:
                raise ValueError("Connection is not leased from this pool")
            self._leased.discard(id(conn))
        self._pool.putconn(conn)

    @contextmanager
    def connection(self) -> Iterator[Any]:
        """Scoped acquisition: the connection is released on every exit path."""
        conn = self.acquire()
        try:
            yield conn
        finally:
            self.release(conn)

    def check(self) -> None:
        """Startup liveness check: one acquire, SELECT 1, release."""
        try:
            with self.connection() as conn:
                ping(conn)
        except PoolError:
            raise
        except Exception as e:
            raise PoolConnectionError(str(e)) from e

    def shutdown(self) -> None:
        """
        Drain and close every connection. Runs once; later calls are no-ops.

        Raises PoolError if closing fails.
        """
        with self._lock:
            if self._shutdown_started:
                return
            self._shutdown_started = True
            self._closed = True
        _log.info("Closing database connection pool")
        try:
            self._pool.close(timeout=self._config.connect_timeout)
        except Exception as e:
            raise PoolError(f"Error closing database connection pool: {e}") from e
        _log.info("Database connection pool closed")

    def stats(self) -> dict[str, Any]:
        """Return pool statistics for monitoring."""
        with self._lock:
            in_use = len(self._leased)
        return {
            "max_size": self._config.max_size,
            "in_use": in_use,
            "closed": self._closed,
        }
