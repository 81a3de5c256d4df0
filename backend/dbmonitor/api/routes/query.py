"""
POST /api/query: run one SQL statement on a pooled connection.

Responses: 200 {rows, rowCount, fields}; 400/500 {error: true, message}.
"""

import logging
from typing import Any

from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic_core import PydanticSerializationError

from dbmonitor.api.deps import QueryServiceDep
from dbmonitor.core.query import QueryFailedError, ServiceError
from dbmonitor.schemas import QueryErrorOut, QueryIn, QueryOut

logger = logging.getLogger(__name__)

router = APIRouter(tags=["query"])


def _error(e: ServiceError) -> JSONResponse:
    return JSONResponse(
        status_code=e.status_code,
        content=QueryErrorOut(message=e.message).model_dump(),
    )


@router.post(
    "/query",
    response_model=QueryOut,
    responses={400: {"model": QueryErrorOut}, 500: {"model": QueryErrorOut}},
)
async def run_query(service: QueryServiceDep, body: QueryIn | None = None) -> Any:
    """Execute ``text`` with optional positional ``params``."""
    text = body.text if body else None
    params = body.params if body else None
    try:
        # Blocking driver call; keep it off the event loop.
        result = await run_in_threadpool(service.handle, text, params)
    except ServiceError as e:
        return _error(e)
    try:
        return JSONResponse(content=result.model_dump(mode="json"))
    except (PydanticSerializationError, ValueError) as e:
        logger.error("Query result could not be encoded: %s", e)
        return _error(QueryFailedError(f"Query result could not be encoded: {e}"))
