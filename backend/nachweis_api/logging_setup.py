"""Shared logging helpers for the ASGI app and the CLI entrypoint."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Final, Optional

from .config import settings

CONSOLE_HANDLER_NAME: Final = "nachweis-console"
FILE_HANDLER_NAME: Final = "nachweis-file"
LOG_FORMAT: Final = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def resolve_log_level(value: Optional[str], default: int = logging.INFO) -> int:
    """Accept a level name (``"debug"``) or a number (``"10"``)."""

    if not value:
        return default
    value = value.strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        resolved = getattr(logging, value.upper(), None)
        if isinstance(resolved, int):
            return resolved
        return default


def _has_handler(logger: logging.Logger, name: str) -> bool:
    return any(getattr(handler, "name", "") == name for handler in logger.handlers)


def configure_logging(
    level: Optional[str] = None,
    log_file: Optional[Path] = None,
) -> dict[str, Any]:
    """Install the console handler (and optional file handler) exactly once."""

    log_level = resolve_log_level(level if level is not None else settings.log_level)
    target_file = log_file if log_file is not None else settings.log_file

    root_logger = logging.getLogger()
    if not _has_handler(root_logger, CONSOLE_HANDLER_NAME):
        console = logging.StreamHandler()
        console.set_name(CONSOLE_HANDLER_NAME)
        console.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(console)

    if target_file is not None and not _has_handler(root_logger, FILE_HANDLER_NAME):
        try:
            target_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(target_file, encoding="utf-8")
        except OSError as exc:  # pragma: no cover - depends on IO
            logging.getLogger(__name__).warning("Logdatei konnte nicht angelegt werden: %s", exc)
            target_file = None
        else:
            file_handler.set_name(FILE_HANDLER_NAME)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            root_logger.addHandler(file_handler)

    root_logger.setLevel(log_level)
    return {"path": target_file, "level": log_level}
