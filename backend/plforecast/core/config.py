from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


STORAGE_DIR = Path(__file__).resolve().parents[2] / "storage"


class Settings(BaseSettings):
    app_name: str = "P&L Forecast API"
    api_prefix: str = "/api/v1"
    debug: bool = False
    auto_create_schema: bool = True

    database_url: str = "sqlite+pysqlite:///" + str(STORAGE_DIR / "forecasts.db")
    cors_origins: str = "http://localhost:5173,http://localhost:3000"

    default_tax_rate: float = 25.0
    horizon_start_year: int = 2024
    horizon_end_year: int = 2030
    rate_limit_requests: int = 120
    rate_limit_window_seconds: int = 60

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
