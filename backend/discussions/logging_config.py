"""JSON structured logging for the API and the Celery worker."""
from __future__ import annotations

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

from discussions.config import settings

SERVICE_NAME = "discussion-merge"


def setup_logging(level: str | None = None) -> None:
    """Route every log record to stdout as one JSON object per line."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={
                "asctime": "timestamp",
                "levelname": "level",
                "name": "logger",
            },
            static_fields={"service": SERVICE_NAME, "env": settings.APP_ENV},
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level or settings.APP_LOG_LEVEL)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.APP_ENV == "development" else logging.WARNING
    )
