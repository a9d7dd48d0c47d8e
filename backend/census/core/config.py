from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Family Census API"
    app_env: str = "dev"
    database_url: str = "sqlite+aiosqlite:///./family_census.db"
    cors_allow_origins: str = "http://localhost:5173"
    # Shared value that gates the bulk export. A speed-bump, not access control.
    export_password: str = "3575"
    child_resize_policy: str = "preserve"
    form_session_ttl_minutes: int = 120
    log_level: str = "INFO"

    @property
    def cors_origins(self) -> list[str]:
        return [x.strip() for x in self.cors_allow_origins.split(",") if x.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
