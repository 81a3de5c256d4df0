"""Tests for dbmonitor.main: lifespan wiring, error handlers and SPA static serving."""

import asyncio
import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from dbmonitor.core.config import settings
from dbmonitor.core.db_config import MissingPasswordError
from dbmonitor.core.pool import PoolConnectionError, PoolError
from dbmonitor.main import app, lifespan, mount_spa, unhandled_exception_handler
from tests.utils.pool import make_config


def test_lifespan_opens_checks_and_shuts_down_pool() -> None:
    pool = MagicMock()
    with (
        patch("dbmonitor.main.resolve", return_value=make_config()),
        patch("dbmonitor.main.ConnectionPool", return_value=pool),
    ):
        with TestClient(app):
            pool.open.assert_called_once()
            pool.check.assert_called_once()
            assert app.state.pool is pool
            pool.shutdown.assert_not_called()
    pool.shutdown.assert_called_once()
    assert app.state.pool is None


def test_lifespan_config_error_aborts_startup() -> None:
    with (
        patch("dbmonitor.main.resolve", side_effect=MissingPasswordError()),
        patch("dbmonitor.main.ConnectionPool") as pool_cls,
    ):
        with pytest.raises(MissingPasswordError):
            with TestClient(app):
                pass
    pool_cls.assert_not_called()


def test_lifespan_unreachable_database_aborts_startup() -> None:
    pool = MagicMock()
    pool.check.side_effect = PoolConnectionError("connection refused")
    with (
        patch("dbmonitor.main.resolve", return_value=make_config()),
        patch("dbmonitor.main.ConnectionPool", return_value=pool),
    ):
        with pytest.raises(PoolConnectionError):
            with TestClient(app):
                pass
    pool.shutdown.assert_called_once()


def test_shutdown_failure_is_logged_not_raised() -> None:
    pool = MagicMock()
    pool.shutdown.side_effect = PoolError("Error closing database connection pool: boom")
    fake_app = FastAPI(lifespan=lifespan)
    with (
        patch("dbmonitor.main.resolve", return_value=make_config()),
        patch("dbmonitor.main.ConnectionPool", return_value=pool),
        patch("dbmonitor.main._logger") as logger,
    ):
        with TestClient(fake_app):
            pass
    pool.shutdown.assert_called_once()
    logger.exception.assert_called_once()


def _spa_app(tmp_path: Path) -> FastAPI:
    (tmp_path / "index.html").write_text("<html>spa</html>")
    (tmp_path / "assets").mkdir()
    (tmp_path / "assets" / "app.js").write_text("console.log('x')")
    fake_app = FastAPI()

    @fake_app.get("/api/ping")
    def ping() -> dict[str, bool]:
        return {"ok": True}

    assert mount_spa(fake_app, tmp_path) is True
    return fake_app


def test_spa_serves_assets_and_falls_back(tmp_path: Path) -> None:
    client = TestClient(_spa_app(tmp_path))
    assert client.get("/assets/app.js").text == "console.log('x')"
    assert client.get("/").text == "<html>spa</html>"
    r = client.get("/tenders/42/edit")
    assert r.status_code == 200
    assert r.text == "<html>spa</html>"
    assert client.get("/api/ping").json() == {"ok": True}


def test_spa_not_mounted_without_directory(tmp_path: Path) -> None:
    assert mount_spa(FastAPI(), tmp_path / "missing") is False


@pytest.mark.parametrize(
    ("environment", "detail"),
    [
        ("production", "Internal server error"),
        ("local", "Internal server error: secret table name"),
    ],
)
def test_unhandled_exception_detail_depends_on_environment(
    monkeypatch: pytest.MonkeyPatch, environment: str, detail: str
) -> None:
    monkeypatch.setattr(settings, "ENVIRONMENT", environment)
    request = MagicMock()
    request.method = "GET"
    response = asyncio.run(
        unhandled_exception_handler(request, RuntimeError("secret table name"))
    )
    assert response.status_code == 500
    assert json.loads(response.body) == {"detail": detail}
