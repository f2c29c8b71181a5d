# ==============================
# Logging Bootstrap
# ==============================
"""
Logging bootstrap.

Goals:
- Centralize logger configuration using Settings.logging.
- Provide structured context fields (request_id, operation, backend).
- Keep it simple: stdlib logging + JSON-line formatter.

Stdout belongs to the calling protocol (CLI output), so logs go to stderr.
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from typing import Any, Dict, Optional

from broker.config.schema import Settings


LOGGER_NAME = "toolbroker"

CONTEXT_FIELDS = ("request_id", "operation", "backend")


@dataclass(frozen=True)
class LogContext:
    request_id: Optional[str] = None
    operation: Optional[str] = None
    backend: Optional[str] = None


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        # Optional structured extras
        for k in CONTEXT_FIELDS + ("outcome", "latency_ms", "arguments", "error_code", "error"):
            if hasattr(record, k):
                payload[k] = getattr(record, k)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def bootstrap_logger(settings: Settings) -> logging.Logger:
    """
    Configure root logger based on settings.
    Returns a named logger ("toolbroker").
    """
    level = getattr(logging, settings.logging.level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)

    # clear existing handlers to avoid duplicates in reload
    root.handlers = []

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if settings.logging.json_lines:
        handler.setFormatter(JsonLineFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(handler)

    return logging.getLogger(LOGGER_NAME)


def get_logger(suffix: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_NAME}.{suffix}" if suffix else LOGGER_NAME)


class ContextAdapter(logging.LoggerAdapter):
    """LoggerAdapter that keeps per-call extras alongside the bound context."""

    def process(self, msg: Any, kwargs: Any) -> Any:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs


def with_context(logger: logging.Logger, ctx: LogContext) -> logging.LoggerAdapter:
    return ContextAdapter(
        logger,
        {
            "request_id": ctx.request_id,
            "operation": ctx.operation,
            "backend": ctx.backend,
        },
    )
