from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from dbmonitor.api.deps import HealthServiceDep

router = APIRouter(tags=["utils"])


@router.get("/health", response_model=None)
async def health(service: HealthServiceDep) -> JSONResponse:
    """
    Database health: lease a connection, run SELECT 1, release.

    200 {status: "healthy", database: "connected", timestamp, environment};
    500 {status: "unhealthy", database: "disconnected", error, timestamp}.
    """
    result = await run_in_threadpool(service.check)
    return JSONResponse(
        status_code=200 if result.healthy else 500,
        content=result.model_dump(exclude_none=True),
    )
