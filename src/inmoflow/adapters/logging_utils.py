# src/inmoflow/adapters/logging_utils.py
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .config import config


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line; `context` passed via `extra` lands under its own key."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "env": config.ENV,
            "message": record.getMessage(),
        }
        ctx = getattr(record, "context", None)
        if isinstance(ctx, dict) and ctx:
            payload["context"] = ctx
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonLogFormatter())
        logger.addHandler(handler)
        logger.setLevel(config.LOG_LEVEL.upper())
        logger.propagate = False
    return logger


def log_event(logger: logging.Logger, event: str, level: int = logging.INFO, **context: Any) -> None:
    """Emit `event` as the message with keyword context attached."""
    logger.log(level, event, extra={"context": context})
