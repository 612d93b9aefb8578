# app/core/config.py
from __future__ import annotations

from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# .env sits next to pyproject.toml (project root)
ENV_FILE = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(ENV_FILE, override=False)


class Settings(BaseSettings):
    # ---- App / Infra ----
    APP_VERSION: str = "1.0.0"
    PORT: int = 3002
    ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # ---- RSS feed ----
    SPIEGEL_RSS_URL: str = "https://www.spiegel.de/schlagzeilen/index.rss"
    RSS_CACHE_TTL_SECONDS: float = 300.0
    RSS_FETCH_TIMEOUT_SECONDS: float = 2.0
    RSS_USER_AGENT: str = "Mozilla/5.0 (compatible; spiegel-rss-api/1.0)"

    # ---- Frontend ----
    STATIC_DIR: str = "static"
    CORS_ALLOWED_ORIGINS: str = Field(default="*")

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.ENV.strip().lower() == "production"


settings = Settings()


def get_cors_origins() -> List[str]:
    """
    Comma separated CORS_ALLOWED_ORIGINS as a list, without empty values.
    """
    return [
        origin.strip()
        for origin in settings.CORS_ALLOWED_ORIGINS.split(",")
        if origin.strip()
    ]
