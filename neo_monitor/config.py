from __future__ import annotations

from importlib import metadata

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _get_project_version() -> str:
    try:
        return metadata.version("neo-monitor")
    except metadata.PackageNotFoundError:
        return "0.1.0"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=False)

    app_name: str = "NEO Monitoring API"
    version: str = Field(default_factory=_get_project_version)
    environment: str = Field(default="dev", validation_alias="APP_ENV")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    cors_origins: list[str] = Field(default=["*"], validation_alias="CORS_ORIGINS")

    database_url: str = Field(default="sqlite:///./neo_monitor.db", validation_alias="DATABASE_URL")

    # Upstream NeoWs API
    nasa_api_key: str = Field(default="DEMO_KEY", validation_alias="NASA_API_KEY")
    nasa_base_url: str = Field(
        default="https://api.nasa.gov/neo/rest/v1", validation_alias="NASA_BASE_URL"
    )
    nasa_timeout_seconds: float = Field(default=30.0, validation_alias="NASA_TIMEOUT_SECONDS")
    nasa_max_retries: int = Field(default=2, validation_alias="NASA_MAX_RETRIES")

    # Cache
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")
    cache_enabled: bool = Field(default=True, validation_alias="CACHE_ENABLED")
    cache_ttl_seconds: int = Field(default=15 * 60, validation_alias="CACHE_TTL_SECONDS")
    redis_socket_timeout: float = Field(default=1.0, validation_alias="REDIS_SOCKET_TIMEOUT")

    # Supabase auth (token verification only)
    supabase_url: str | None = Field(default=None, validation_alias="SUPABASE_URL")
    supabase_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("SUPABASE_ANON_KEY", "SUPABASE_SERVICE_ROLE_KEY"),
    )

    @property
    def auth_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


settings = Settings()
