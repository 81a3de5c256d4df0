from typing import Annotated

from fastapi import Depends, HTTPException, Request

from dbmonitor.core.health import HealthService
from dbmonitor.core.pool import ConnectionPool
from dbmonitor.core.query import QueryService


def get_optional_pool(request: Request) -> ConnectionPool | None:
    return getattr(request.app.state, "pool", None)


def get_pool(
    pool: Annotated[ConnectionPool | None, Depends(get_optional_pool)],
) -> ConnectionPool:
    """The process-wide pool created in the app lifespan."""
    if pool is None:
        raise HTTPException(status_code=500, detail="Database pool is not initialised")
    return pool


PoolDep = Annotated[ConnectionPool, Depends(get_pool)]
OptionalPoolDep = Annotated[ConnectionPool | None, Depends(get_optional_pool)]


def get_query_service(pool: PoolDep) -> QueryService:
    return QueryService(pool)


def get_health_service(pool: OptionalPoolDep) -> HealthService:
    # Health always answers with a health document, even before the lifespan ran.
    return HealthService(pool)


QueryServiceDep = Annotated[QueryService, Depends(get_query_service)]
HealthServiceDep = Annotated[HealthService, Depends(get_health_service)]
