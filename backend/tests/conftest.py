from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from dbmonitor.api.deps import get_optional_pool
from dbmonitor.core.pool import ConnectionPool
from dbmonitor.main import app
from tests.utils.pool import make_pool


@pytest.fixture
def pool() -> ConnectionPool:
    p, _ = make_pool()
    return p


@pytest.fixture
def client(pool: ConnectionPool) -> Generator[TestClient, None, None]:
    """TestClient without the lifespan (no real database); the pool is injected."""
    app.dependency_overrides[get_optional_pool] = lambda: pool
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_optional_pool, None)
