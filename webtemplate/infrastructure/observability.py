"""Structured Logging — JSON/console formatters and stdout or rotating-file output.

Invariants:
    - All logs include timestamp, level, logger name, and message
    - Extra fields (method, path, status_code, user_id, trace_id, ...) surfaced when present
    - setup_logging() installs exactly one handler; calling it again replaces it

Design Decisions:
    - stdlib logging with a JSONFormatter: every module logs through logging.getLogger(__name__)
    - File output rotates by size (max_size MB, max_backups files); rotated files are
      optionally gzipped and pruned after max_age days
"""

import gzip
import logging
import json
import os
import shutil
import time
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path

from webtemplate.config import LoggerSettings

EXTRA_FIELDS = (
    "method", "path", "status_code", "latency_ms", "client_ip", "user_agent",
    "user_id", "username", "error_code", "reason", "span_name", "trace_id",
    "bucket", "count", "index", "action", "environment", "output", "timezone",
)

_HANDLER_NAME = "webtemplate"


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def _gzip_rotator(source: str, dest: str) -> None:
    with open(source, "rb") as src, gzip.open(dest, "wb") as dst:
        shutil.copyfileobj(src, dst)
    os.remove(source)


def prune_old_logs(filename: str, max_age_days: int) -> list[Path]:
    """Delete rotated siblings of *filename* older than *max_age_days*."""
    base = Path(filename)
    if max_age_days <= 0 or not base.parent.is_dir():
        return []
    cutoff = time.time() - max_age_days * 86400
    removed = []
    for path in base.parent.glob(base.name + ".*"):
        if path.stat().st_mtime < cutoff:
            path.unlink()
            removed.append(path)
    return removed


class PruningRotatingFileHandler(RotatingFileHandler):
    """Size-based rotation that also drops backups past their maximum age."""

    def __init__(self, filename: str, max_age_days: int = 0, **kwargs):
        super().__init__(filename, **kwargs)
        self.max_age_days = max_age_days

    def doRollover(self) -> None:
        super().doRollover()
        prune_old_logs(self.baseFilename, self.max_age_days)


def build_handler(cfg: LoggerSettings) -> logging.Handler:
    if cfg.output == "file":
        Path(cfg.filename).parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = PruningRotatingFileHandler(
            cfg.filename,
            max_age_days=cfg.max_age,
            maxBytes=cfg.max_size * 1024 * 1024,
            backupCount=cfg.max_backups,
            encoding="utf-8",
        )
        if cfg.compress:
            handler.namer = lambda name: name + ".gz"
            handler.rotator = _gzip_rotator
    else:
        handler = logging.StreamHandler()

    if cfg.format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
        ))
    handler.set_name(_HANDLER_NAME)
    return handler


def setup_logging(cfg: LoggerSettings | None = None) -> logging.Handler:
    """Configure root logging for the application."""
    cfg = cfg or LoggerSettings()
    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)
            existing.close()

    handler = build_handler(cfg)
    root.addHandler(handler)
    level = "WARNING" if cfg.level.lower() == "warn" else cfg.level.upper()
    root.setLevel(getattr(logging, level, logging.INFO))
    return handler


def flush_logging() -> None:
    for handler in logging.getLogger().handlers:
        handler.flush()
