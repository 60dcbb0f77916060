# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from __future__ import annotations
import json
import logging
import logging.config
from typing import Any, Optional
from app.core.config import settings

"""
Configuração de logging do DocuFlow.


- `setup_logging()` aplica dictConfig (formatos simple/detailed/json) com nível do settings.
- Reduz ruído de libs (sqlalchemy, httpx, uvicorn.access).
- `log_event()` grava eventos estruturados: `evento {json}`.
- Helpers de time-tracking (`log_time_event`, `log_stale_session`, `log_screenshot_event`).
"""

SIMPLE_FORMAT = "%(levelname)s - %(name)s - %(message)s"
DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
JSON_FORMAT = (
    '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", '
    '"line": %(lineno)d, "message": "%(message)s"}'
)

_FORMATS = {"simple": SIMPLE_FORMAT, "detailed": DETAILED_FORMAT, "json": JSON_FORMAT}

MODULE_LOG_LEVELS = {
    "app": None,  # segue LOG_LEVEL
    "sqlalchemy": "WARNING",
    "sqlalchemy.engine": "WARNING",
    "httpx": "WARNING",
    "asyncio": "WARNING",
    "uvicorn": "INFO",
    "uvicorn.access": "WARNING",
}


def setup_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    level = (log_level or settings.LOG_LEVEL).upper()
    fmt = _FORMATS.get((log_format or settings.LOG_FORMAT).lower(), DETAILED_FORMAT)

    loggers: dict[str, dict[str, Any]] = {}
    for name, mod_level in MODULE_LOG_LEVELS.items():
        loggers[name] = {"level": mod_level or level, "handlers": ["console"], "propagate": False}

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": {"format": fmt}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": loggers,
        "root": {"level": level, "handlers": ["console"]},
    })


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_event(logger: logging.Logger, event: str, level: int = logging.INFO, **data: Any) -> None:
    payload = f" {json.dumps(data, default=str, sort_keys=True)}" if data else ""
    logger.log(level, "%s%s", event, payload)


_time_logger = logging.getLogger("app.time_tracking")


def log_time_event(action: str, entry_id: str, user_id: str, **extra: Any) -> None:
    log_event(_time_logger, f"time-tracking.{action}", entry_id=entry_id, user_id=user_id, **extra)


def log_stale_session(entry_id: str, user_id: str, last_activity: Any) -> None:
    log_event(
        _time_logger,
        "time-tracking.stale-session",
        level=logging.WARNING,
        entry_id=entry_id,
        user_id=user_id,
        last_activity=last_activity,
    )


def log_screenshot_event(action: str, entry_id: str, **extra: Any) -> None:
    log_event(_time_logger, f"screenshot.{action}", entry_id=entry_id, **extra)
