from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

_CONTEXT_FIELDS = ("guard_id", "wrapped_type", "during", "origin")


class StructuredFormatter(logging.Formatter):
    """JSON formatter for guard lifecycle logs with stable keys."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, object] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Guard context passed through `extra=`
        for key in _CONTEXT_FIELDS:
            value = record.__dict__.get(key)
            if value is not None:
                data[key] = value

        return json.dumps(data, ensure_ascii=False)


def setup_logging(level: str = "INFO") -> None:
    """Configure the package logger with structured output; idempotent."""
    logger = logging.getLogger("must_destroy")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    # Avoid duplicate handlers if setup is called multiple times
    if not any(isinstance(h.formatter, StructuredFormatter) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Return module logger."""
    return logging.getLogger(name)
