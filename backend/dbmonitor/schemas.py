"""
Request/response schemas for the /api surface.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field


class QueryIn(BaseModel):
    """Body for POST /api/query."""

    text: str | None = Field(default=None, description="SQL text, sent as-is.")
    params: list[Any] | None = Field(
        default=None, description="Positional values for $1..$n."
    )


class FieldDescriptor(BaseModel):
    name: str
    tableID: int = 0
    columnID: int = 0
    dataTypeID: int = 0
    dataTypeSize: int = -1
    dataTypeModifier: int = -1
    format: str = "text"


class QueryOut(BaseModel):
    rows: list[dict[str, Any]]
    rowCount: int
    fields: list[FieldDescriptor]


class QueryErrorOut(BaseModel):
    error: bool = True
    message: str


class EnvironmentInfo(BaseModel):
    mode: str
    port: int


class HealthOut(BaseModel):
    status: Literal["healthy", "unhealthy"]
    database: Literal["connected", "disconnected"]
    timestamp: str
    environment: EnvironmentInfo | None = None
    error: str | None = None

    @property
    def healthy(self) -> bool:
        return self.status == "healthy"
