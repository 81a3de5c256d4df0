"""
Database health check for GET /api/health.

Never raises: any failure while leasing a connection or running the probe
becomes an "unhealthy" document carrying the error message.
"""

import logging
from datetime import datetime, timezone

from dbmonitor.core.config import Settings, settings as default_settings
from dbmonitor.core.pool import ConnectionPool, PoolConnectionError, ping
from dbmonitor.schemas import EnvironmentInfo, HealthOut

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class HealthService:
    def __init__(
        self, pool: ConnectionPool | None, settings: Settings | None = None
    ) -> None:
        self._pool = pool
        self._settings = settings or default_settings

    def check(self) -> HealthOut:
        try:
            if self._pool is None:
                raise PoolConnectionError("Database pool is not initialised")
            with self._pool.connection() as conn:
                ping(conn)
        except Exception as e:
            logger.warning("Database health check failed: %s", e)
            return HealthOut(
                status="unhealthy",
                database="disconnected",
                error=str(e) or e.__class__.__name__,
                timestamp=_timestamp(),
            )
        return HealthOut(
            status="healthy",
            database="connected",
            timestamp=_timestamp(),
            environment=EnvironmentInfo(
                mode=self._settings.ENVIRONMENT,
                port=self._settings.PORT,
            ),
        )
