"""JSON loggers for the catalogue service.

Four named loggers are configured on import: ``structured`` for service
lifecycle events, ``catalogue`` for store loading, ``security`` for failed
requests and ``performance`` for startup timings. Each writes one JSON object
per line to stderr and to a rotating file under ``$CATALOGUE_LOG_DIR``
(``logs/`` by default).

Metadata bound with :func:`logging_context` is attached to every record logged
inside the ``with`` block, together with any ``extra`` fields::

    with logging_context(store="data/hackerone_reports.json", mtime=mtime):
        CatalogueLogger.info("Loading report store")
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import os
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping


__all__ = [
    "StructuredLogger",
    "CatalogueLogger",
    "SecurityLogger",
    "PerformanceLogger",
    "JsonLogFormatter",
    "logging_context",
    "set_global_log_level",
]


LOG_DIR_ENV_VAR = "CATALOGUE_LOG_DIR"
LOG_FILE_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

_bound_metadata: ContextVar[Mapping[str, Any]] = ContextVar("catalogue_log_metadata", default={})

# Attributes every LogRecord carries; anything else came from ``extra``.
_RECORD_FIELDS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


class JsonLogFormatter(logging.Formatter):
    """Render a record as ``{"timestamp", "level", "logger", "message", "metadata"}``."""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: N802
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return created.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        metadata = dict(_bound_metadata.get())
        metadata.update(
            (key, value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_FIELDS and not key.startswith("_")
        )
        if metadata:
            payload["metadata"] = metadata
        return json.dumps(payload, default=str, ensure_ascii=False)


def _log_dir() -> Path:
    path = Path(os.getenv(LOG_DIR_ENV_VAR) or "logs")
    path.mkdir(parents=True, exist_ok=True)
    return path


def _configure_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    formatter = JsonLogFormatter()
    file_handler = logging.handlers.RotatingFileHandler(
        _log_dir() / f"{name}.log",
        maxBytes=LOG_FILE_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    for handler in (file_handler, logging.StreamHandler()):
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger


StructuredLogger = _configure_logger("structured")
CatalogueLogger = _configure_logger("catalogue")
SecurityLogger = _configure_logger("security")
PerformanceLogger = _configure_logger("performance")

_SERVICE_LOGGERS = (StructuredLogger, CatalogueLogger, SecurityLogger, PerformanceLogger)


@contextmanager
def logging_context(**metadata: Any) -> Iterator[None]:
    """Bind ``metadata`` to every record logged in this thread or task."""

    token = _bound_metadata.set({**_bound_metadata.get(), **metadata})
    try:
        yield
    finally:
        _bound_metadata.reset(token)


def set_global_log_level(level: int | str) -> None:
    """Apply ``level`` to all service loggers."""

    for logger in _SERVICE_LOGGERS:
        logger.setLevel(level)
