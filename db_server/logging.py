from __future__ import annotations

import json
import logging
import os


class JsonFormatter(logging.Formatter):
    """Very small JSON formatter for structured logs."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - short
        payload = {
            "level": record.levelname.lower(),
            "message": record.getMessage(),
            "event_type": getattr(record, "event_type", record.getMessage()),
            "peer": getattr(record, "peer", None),
            "command": getattr(record, "command", None),
            "key": getattr(record, "key", None),
            "status": getattr(record, "status", None),
            "keys_total": getattr(record, "keys_total", None),
            "path": getattr(record, "path", None),
            "reason": getattr(record, "reason", None),
            "latency_ms": getattr(record, "latency_ms", None),
            "error_category": getattr(record, "error_category", None),
        }
        return json.dumps(payload, default=str)


def configure_logging(level: str | int | None = None, fmt: str | None = None) -> None:
    """Configure logging.

    Default format is human friendly, but when ``LOG_FORMAT=json`` is set (or
    ``fmt="json"`` is passed) the output becomes structured JSON containing
    the request fields the server attaches to its records.
    """

    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = level.upper()

    if fmt is None:
        fmt = os.getenv("LOG_FORMAT", "plain")
    if fmt.lower() == "json":
        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
        logging.basicConfig(level=level, handlers=[handler], force=True)
    else:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%H:%M:%S",
            force=True,
        )
