from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from lobohub.core.config import settings

SERVICE_NAME = "lobohub-api"

# Structured fields accepted through ``extra=`` on any lobohub logger.
CONTEXT_FIELDS: tuple[str, ...] = (
    "request_id",
    "route",
    "method",
    "status_code",
    "execution_time_ms",
    "family_id",
    "user_id",
    "action",
    "badge_id",
    "badge_ids",
    "points",
    "points_earned",
    "total_points",
    "level",
)


class JsonFormatter(logging.Formatter):
    """One JSON object per line, with only the context fields that were set."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": SERVICE_NAME,
            "environment": settings.app_env,
        }
        payload.update(
            (name, value) for name in CONTEXT_FIELDS if (value := getattr(record, name, None)) is not None
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def setup_json_logging(level: str | None = None) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel((level or settings.log_level).upper())
    # Request logging middleware already records every request.
    logging.getLogger("uvicorn.access").propagate = False
