"""Logging setup for fetch runs.

Build logs get one short line per record on stderr. When a log directory is
configured, every record is also appended as a JSON object to
``driverfetch-YYYYMMDD.jsonl`` together with its ``stage`` and any ``extra``
fields, so a failed CI build can be inspected after the fact. Credential-like
fields are masked before serialisation.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .errors import ConfigurationError
from .settings import LoggingSettings

LOGGER_NAME = "AdbcFlightSQL.DriverFetch"
MASK = "***masked***"

_SECRET_FIELDS = frozenset({"authorization", "api_key", "apikey", "token", "secret", "password"})
_RESERVED_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}
_MANAGED_FLAG = "_driverfetch_managed"


def _looks_secret(key: str, value: Any) -> bool:
    if key.lower() in _SECRET_FIELDS:
        return True
    return isinstance(value, str) and "token=" in value.lower()


def mask_sensitive_data(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``payload`` with credential-like values replaced.

    >>> mask_sensitive_data({"password": "hunter2", "bytes": 12})
    {'password': '***masked***', 'bytes': 12}
    """
    return {key: MASK if _looks_secret(key, value) else value for key, value in payload.items()}


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


class JSONFormatter(logging.Formatter):
    """Render a record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        emitted = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: Dict[str, Any] = {
            "timestamp": emitted.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "stage": getattr(record, "stage", None),
            "message": record.getMessage(),
        }
        entry.update(
            (key, _jsonable(value))
            for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS and key not in entry
        )
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(entry))


def _tag(handler: logging.Handler) -> logging.Handler:
    setattr(handler, _MANAGED_FLAG, True)
    return handler


def setup_logging(config: LoggingSettings, log_dir: Optional[Path] = None) -> logging.Logger:
    """Attach the console and optional JSON-lines handlers.

    Handlers installed by an earlier call are replaced, so calling this once
    per CLI invocation never duplicates output.

    Args:
        config: Level and default log directory.
        log_dir: Directory overriding ``config.log_dir``.

    Returns:
        The ``AdbcFlightSQL.DriverFetch`` logger.

    Raises:
        ConfigurationError: If the log directory cannot be created or opened.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.getLevelName(config.level))

    for stale in [h for h in logger.handlers if getattr(h, _MANAGED_FLAG, False)]:
        logger.removeHandler(stale)
        stale.close()

    # stdout carries the KEY=VALUE build outputs.
    console = _tag(logging.StreamHandler(sys.stderr))
    console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(console)

    directory = log_dir or config.log_dir
    if directory is not None:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d")
        try:
            directory.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(directory / f"driverfetch-{stamp}.jsonl", encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"Cannot open log directory {directory}: {exc}") from exc
        json_lines = _tag(handler)
        json_lines.setFormatter(JSONFormatter())
        logger.addHandler(json_lines)

    return logger


__all__ = ["LOGGER_NAME", "JSONFormatter", "setup_logging", "mask_sensitive_data"]
