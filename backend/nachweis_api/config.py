from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")
    """Application runtime configuration."""

    app_name: str = "Nachweis-Portal"
    host: str = os.getenv("NW_HOST", "127.0.0.1")
    port: int = int(os.getenv("NW_PORT", "8080"))
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            origin.strip()
            for origin in os.getenv("NW_CORS_ORIGINS", "http://127.0.0.1:3000,http://localhost:3000").split(",")
            if origin.strip()
        ]
    )

    sqlite_path: Path = Path(os.getenv("NW_SQLITE_PATH", "./data/nachweise.db"))

    log_level: str = os.getenv("NW_LOG_LEVEL", "INFO")
    log_file: Optional[Path] = Path(os.environ["NW_LOG_FILE"]) if os.getenv("NW_LOG_FILE") else None

    default_page_size: int = int(os.getenv("NW_DEFAULT_PAGE_SIZE", "10"))
    max_page_size: int = int(os.getenv("NW_MAX_PAGE_SIZE", "100"))

    bootstrap_admin: Optional[str] = os.getenv("NW_BOOTSTRAP_ADMIN")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: str | List[str]) -> List[str]:
        if isinstance(value, list):
            return value
        if not value:
            return []
        return [origin.strip() for origin in value.split(",") if origin.strip()]


settings = Settings()

# Ensure essential directories exist
settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
