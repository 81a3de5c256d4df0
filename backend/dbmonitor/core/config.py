"""
Process settings, read from the environment (and ``.env`` when present).

Database credentials are resolved separately by ``core.db_config`` because
they follow their own alias/priority rules.
"""

from typing import Annotated, Any

from pydantic import AnyUrl, BeforeValidator, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_cors(v: Any) -> list[str] | str:
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )
    PROJECT_NAME: str = "dbmonitor"
    API_STR: str = "/api"
    # Runtime mode, reported by /api/health; set "local" for verbose 500 details.
    ENVIRONMENT: str = "production"

    HOST: str = "0.0.0.0"
    PORT: int = 8080

    SENTRY_DSN: AnyUrl | None = None

    BACKEND_CORS_ORIGINS: Annotated[
        list[AnyUrl] | str, BeforeValidator(parse_cors)
    ] = []

    # Built front-end assets; SPA fallback serves index.html from here.
    STATIC_DIR: str = "dist"

    # Pool tuning
    DB_POOL_MAX_SIZE: int = 20
    DB_POOL_IDLE_TIMEOUT: float = 30.0  # seconds
    DB_CONNECT_TIMEOUT: float = 30.0  # seconds; also the acquire wait limit
    DB_KEEPALIVE: bool = True
    DB_KEEPALIVE_IDLE: int = 10  # seconds before the first TCP keepalive probe
    DB_SSLMODE: str = "require"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS]


settings = Settings()  # type: ignore
