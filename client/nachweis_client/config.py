"""Konfigurations-Utilities für den Nachweis-Client."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_API_BASE_URL = "http://127.0.0.1:8080"
DEFAULT_TIMEOUT = 15.0


@dataclass(slots=True)
class AppConfig:
    """Konfigurationswerte für den Client."""

    api_base_url: str = DEFAULT_API_BASE_URL
    user_id: Optional[int] = None
    timeout: float = DEFAULT_TIMEOUT


def load_config(env_path: Optional[Path] = None) -> AppConfig:
    """Lädt die Konfiguration aus einer optionalen `.env` Datei."""

    env_path = env_path or Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    user_id = os.getenv("NACHWEIS_USER_ID")
    return AppConfig(
        api_base_url=os.getenv("NACHWEIS_API_BASE_URL", DEFAULT_API_BASE_URL),
        user_id=int(user_id) if user_id else None,
        timeout=float(os.getenv("NACHWEIS_TIMEOUT", DEFAULT_TIMEOUT)),
    )


__all__ = ["AppConfig", "load_config"]
