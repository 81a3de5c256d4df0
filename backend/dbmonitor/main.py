import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware
from starlette.responses import Response
from starlette.types import Scope

from dbmonitor.api.main import api_router
from dbmonitor.core.config import settings
from dbmonitor.core.db_config import resolve
from dbmonitor.core.pool import ConnectionPool, PoolError

_logger = logging.getLogger(__name__)


def custom_generate_unique_id(route: APIRoute) -> str:
    return f"{route.tags[0]}-{route.name}"


def _shutdown_pool(pool: ConnectionPool) -> None:
    try:
        pool.shutdown()
    except PoolError:
        _logger.exception("Error closing database connection")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Resolve config, open the pool and verify connectivity before serving.

    Any failure here aborts startup. On exit (SIGINT/SIGTERM via uvicorn) the
    pool is drained exactly once.
    """
    config = resolve()
    _logger.info("Connecting to database %s", config.describe())
    pool = ConnectionPool(config)
    pool.open()
    try:
        await run_in_threadpool(pool.check)
    except PoolError:
        _logger.exception("Error connecting to the database")
        await run_in_threadpool(_shutdown_pool, pool)
        raise
    _logger.info("Successfully connected to database")
    app.state.pool = pool
    try:
        yield
    finally:
        _logger.info("Shutting down gracefully...")
        await run_in_threadpool(_shutdown_pool, pool)
        app.state.pool = None


class SPAStaticFiles(StaticFiles):
    """Static assets with single-page-app fallback to index.html."""

    async def get_response(self, path: str, scope: Scope) -> Response:
        try:
            return await super().get_response(path, scope)
        except StarletteHTTPException as e:
            if e.status_code != 404:
                raise
            return await super().get_response("index.html", scope)


def mount_spa(app: FastAPI, directory: str | Path) -> bool:
    """Mount *directory* at / if it exists. Returns True when mounted."""
    if not Path(directory).is_dir():
        _logger.info("Static directory %s not found; SPA not served", directory)
        return False
    app.mount("/", SPAStaticFiles(directory=directory, html=True), name="spa")
    return True


if settings.SENTRY_DSN and settings.ENVIRONMENT != "local":
    sentry_sdk.init(dsn=str(settings.SENTRY_DSN), enable_tracing=True)

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_STR}/openapi.json",
    docs_url=f"{settings.API_STR}/docs",
    redoc_url=f"{settings.API_STR}/redoc",
    generate_unique_id_function=custom_generate_unique_id,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return 422 with a human-readable detail string instead of raw Pydantic errors."""
    messages = []
    for err in exc.errors():
        loc = " -> ".join(str(part) for part in err.get("loc", []) if part != "body")
        msg = err.get("msg", "Invalid value")
        messages.append(f"{loc}: {msg}" if loc else msg)
    return JSONResponse(
        status_code=422,
        content={"detail": "; ".join(messages)},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """Catch-all: log and return 500."""
    _logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    detail = "Internal server error"
    if settings.ENVIRONMENT == "local":
        detail = f"Internal server error: {exc}"
    return JSONResponse(
        status_code=500,
        content={"detail": detail},
    )


app.add_middleware(GZipMiddleware, minimum_size=1000)

if settings.all_cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.all_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# /api routes first; the SPA mount at / is the catch-all.
app.include_router(api_router, prefix=settings.API_STR)
mount_spa(app, settings.STATIC_DIR)
