"""Application logging configuration utilities."""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any

AUDIT_LOGGER_NAME = "intipal.session.audit"


class MinimalJSONFormatter(logging.Formatter):
    """Serialize log records to one JSON object per line.

    Dict messages (the telemetry events) are merged into the top level; any
    other message is rendered under ``message``.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - inherited
        timestamp = (
            datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat()
            .replace("+00:00", "Z")
        )

        log_record: dict[str, Any] = {
            "timestamp": timestamp,
            "level": record.levelname,
            "module": record.name,
        }

        if isinstance(record.msg, dict):
            log_record.update(record.msg)
        else:
            log_record["message"] = record.getMessage()

        if record.exc_info and "exc" not in log_record:
            log_record["exc"] = self.formatException(record.exc_info)

        return json.dumps(log_record, ensure_ascii=False, default=str)


def configure_logging(level: str = "INFO", audit_path: str | None = None) -> None:
    """Configure application logging with JSON formatting.

    Audit records go to ``audit_path`` when given, otherwise they share the
    default stream handler.
    """

    handlers: dict[str, dict[str, Any]] = {
        "default": {
            "class": "logging.StreamHandler",
            "formatter": "json",
        },
    }
    audit_handlers = ["default"]
    if audit_path:
        handlers["session_audit"] = {
            "class": "logging.FileHandler",
            "filename": audit_path,
            "mode": "a",
            "encoding": "utf-8",
            "formatter": "json",
        }
        audit_handlers = ["session_audit"]

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": MinimalJSONFormatter}},
            "handlers": handlers,
            "root": {
                "level": level,
                "handlers": ["default"],
            },
            "loggers": {
                AUDIT_LOGGER_NAME: {
                    "level": "INFO",
                    "handlers": audit_handlers,
                    "propagate": False,
                }
            },
        }
    )
