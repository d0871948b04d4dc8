from __future__ import annotations

import argparse
import logging
from typing import Optional, Sequence

import uvicorn

from .config import settings
from .logging_setup import configure_logging

logger = logging.getLogger(__name__)


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="nachweis-api", description="Startet den Nachweis-API-Server.")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    args = parser.parse_args(argv)

    configure_logging()
    logger.info("Starte %s auf %s:%s", settings.app_name, args.host, args.port)
    # log_config=None leaves the handlers from configure_logging in place.
    uvicorn.run("nachweis_api.main:app", host=args.host, port=args.port, reload=False, log_config=None)


if __name__ == "__main__":
    main()
