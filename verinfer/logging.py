"""
Structured Logging — Inference Event Logs

Every verinfer logger writes one line per event, JSON in production
and key=value text in development. Context such as the query or
inference being processed travels in `extra` and is whitelisted, so
free text (rationales, inference bodies) never reaches the logs.

Usage:
    from verinfer.logging import get_logger, bind
    logger = get_logger("verification")
    log = bind(logger, inference_id=iid, user_id=uid)
    log.info("Inference verified", extra={"coherence": 0.72})
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Optional


LOG_LEVEL = os.getenv("VERINFER_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("VERINFER_LOG_FORMAT", "json")  # "json" or "text"

CONTEXT_FIELDS = (
    "inference_id", "query_id", "user_id", "angle", "provider",
    "method", "path", "status_code", "duration_ms",
)

SCORE_FIELDS = (
    "coherence", "combined", "recursion_score", "pattern_count",
    "risk_level", "confidence", "correct",
)

ERROR_FIELDS = ("error", "error_type")

_EXTRA_FIELDS = CONTEXT_FIELDS + SCORE_FIELDS + ERROR_FIELDS


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: getattr(record, key)
        for key in _EXTRA_FIELDS
        if getattr(record, key, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_extras(record),
        }
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Readable lines for development, context appended as key=value."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = _extras(record)
        if extras:
            line += "  " + " ".join(f"{k}={v}" for k, v in extras.items())
        return line


class ContextAdapter(logging.LoggerAdapter):
    """Logger with bound context fields; per-call extras take precedence."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def bind(logger: logging.Logger, **context: Any) -> ContextAdapter:
    """Attach context fields (e.g. inference_id) to every record of a logger."""
    return ContextAdapter(logger, {k: v for k, v in context.items() if v is not None})


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> logging.Logger:
    """Configure the verinfer logger tree. Call once at app startup."""
    root = logging.getLogger("verinfer")
    root.setLevel(getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if (fmt or LOG_FORMAT) == "json" else TextFormatter())
    root.handlers[:] = [handler]

    for noisy in ("uvicorn.access", "httpcore", "httpx", "anthropic", "google_genai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return root


def get_logger(name: str) -> logging.Logger:
    """Named logger under the verinfer namespace."""
    return logging.getLogger(f"verinfer.{name}")
