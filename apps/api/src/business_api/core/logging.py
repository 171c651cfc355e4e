from __future__ import annotations

import json
import logging
import sys
from logging import LogRecord
from typing import Any, Dict

from loguru import logger
from opentelemetry import trace


# Attributes every LogRecord carries; anything else was passed through ``extra=``.
_STANDARD_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime", "taskName"}

_NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}


class InterceptHandler(logging.Handler):
    """Forward stdlib records (uvicorn, sqlalchemy, httpx) into Loguru."""

    def emit(self, record: LogRecord) -> None:  # pragma: no cover - bridging glue
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        try:
            message = record.getMessage()
        except Exception:  # pragma: no cover - malformed format strings
            message = str(record.msg)

        context = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_RECORD_ATTRS
        }
        context["stdlib_logger"] = record.name

        logger.bind(**context).opt(depth=6, exception=record.exc_info).log(
            level, message.replace("{", "{{").replace("}", "}}")
        )


def _build_payload(record: Dict[str, Any], metadata: Dict[str, str]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name.lower(),
        "message": record["message"],
        "logger": record["name"],
        "service": metadata["service_name"],
        "environment": metadata["environment"],
        "version": metadata["version"],
    }

    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        payload["trace_id"] = f"{span_context.trace_id:032x}"
        payload["span_id"] = f"{span_context.span_id:016x}"

    if record["exception"] is not None:
        exc_type, exc_value, _ = record["exception"]
        payload["error"] = {
            "type": exc_type.__name__ if exc_type else None,
            "detail": str(exc_value) if exc_value else None,
        }

    payload.update(record["extra"])
    return payload


def configure_logging(
    *,
    service_name: str,
    environment: str,
    version: str,
    level: str = "INFO",
) -> None:
    """Route Loguru and stdlib logging to a single JSON-lines sink on stdout."""

    metadata = {"service_name": service_name, "environment": environment, "version": version}

    def _sink(message: "logger.Message") -> None:
        serialized = json.dumps(_build_payload(message.record, metadata), default=str)
        sys.stdout.write(serialized + "\n")

    logger.remove()
    logger.add(_sink, level=level, backtrace=False, diagnose=False)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name, noisy_level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)
