"""Structured JSON logging for sow.

Each invocation appends one JSON object per line to ``.sow/sow.log``, rotated
at 5MB with 3 backups. Records about a transition carry ``event``,
``from_state`` and ``to_state``; build that ``extra=`` mapping with
``transition_fields`` so the machine and the CLI log the same keys.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

_LOG_FILENAME = "sow.log"
_MAX_BYTES = 5 * 1024 * 1024  # 5MB
_BACKUP_COUNT = 3
_RECORD_FIELDS = ("command", "project", "event", "from_state", "to_state", "error")
_setup_lock = threading.Lock()


def transition_fields(event: str | None, from_state: str, to_state: str = "", **more: Any) -> dict[str, Any]:
    """``extra=`` mapping for a log record about one transition."""
    fields: dict[str, Any] = {"event": event or "", "from_state": from_state}
    if to_state:
        fields["to_state"] = to_state
    fields.update(more)
    return fields


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="seconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update({key: getattr(record, key) for key in _RECORD_FIELDS if hasattr(record, key)})
        exc = record.exc_info[1] if record.exc_info else None
        if exc is not None:
            entry["exception"] = f"{type(exc).__name__}: {exc}"
        return json.dumps(entry, default=str)


def _level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(sow_dir: Path, level: str = "INFO") -> logging.Logger:
    """Point the ``sow`` logger at ``sow_dir``'s log file.

    The level is applied on every call; an unknown level name means INFO.
    At most one file handler is attached: a call for the directory already
    being logged to keeps it, and a call for another directory replaces it.
    """
    logger = logging.getLogger("sow")
    target = os.path.abspath(sow_dir / _LOG_FILENAME)

    with _setup_lock:
        logger.setLevel(_level(level))
        attached = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
        if any(h.baseFilename == target for h in attached):
            return logger
        for stale in attached:
            logger.removeHandler(stale)
            stale.close()

        handler = RotatingFileHandler(target, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8")
        handler.setFormatter(_JsonFormatter())
        logger.addHandler(handler)
    return logger
