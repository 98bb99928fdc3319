# shared/logging/logger.py
# Structured JSON logger used by every module of the billing engine.
# Every log line is valid JSON so per-command outcomes stay queryable.

import logging
import json
import os
from datetime import datetime, timezone

_EXTRA_FIELDS = (
    "session_id", "event_type", "stage", "spoken_name", "product_id",
    "outcome", "quantity", "unit", "latency_ms", "severity",
)


class StructuredFormatter(logging.Formatter):
    """
    Formats every log line as a JSON object.
    Attach extra fields via: logger.info("msg", extra={"session_id": "..."})
    """
    def format(self, record: logging.LogRecord) -> str:
        log = {
            "ts":      datetime.now(timezone.utc).isoformat(),
            "level":   record.levelname,
            "service": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            if hasattr(record, key):
                log[key] = getattr(record, key)

        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)

        return json.dumps(log, ensure_ascii=False, default=str)


def get_logger(name: str) -> logging.Logger:
    """
    Returns a structured logger for the given module name.
    Call this once per module:  logger = get_logger("product_resolver")
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)

        level = os.getenv("LOG_LEVEL", "INFO").upper()
        logger.setLevel(getattr(logging, level, logging.INFO))

    return logger
