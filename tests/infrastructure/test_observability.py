"""Structured Logging — JSON formatter, handler setup, rotation pruning."""

import json
import logging
import os
import sys
import time

import pytest

from webtemplate.config import LoggerSettings
from webtemplate.infrastructure.observability import (
    JSONFormatter,
    PruningRotatingFileHandler,
    prune_old_logs,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def test_json_formatter_includes_extras():
    record = logging.LogRecord("webtemplate.test", logging.WARNING, __file__, 1, "hello %s", ("world",), None)
    record.path = "/api/ping"
    record.status_code = 401
    record.irrelevant = "dropped"

    out = json.loads(JSONFormatter().format(record))
    assert out["level"] == "WARNING"
    assert out["logger"] == "webtemplate.test"
    assert out["message"] == "hello world"
    assert out["path"] == "/api/ping"
    assert out["status_code"] == 401
    assert "irrelevant" not in out
    assert "timestamp" in out


def test_json_formatter_includes_exception():
    try:
        raise ValueError("bad")
    except ValueError:
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "oops", (), sys.exc_info())
    out = json.loads(JSONFormatter().format(record))
    assert "ValueError: bad" in out["exception"]


def test_setup_logging_replaces_its_handler():
    setup_logging(LoggerSettings(format="json"))
    setup_logging(LoggerSettings(level="debug"))

    ours = [h for h in logging.getLogger().handlers if h.get_name() == "webtemplate"]
    assert len(ours) == 1
    assert logging.getLogger().level == logging.DEBUG
    assert not isinstance(ours[0].formatter, JSONFormatter)


def test_warn_level_alias():
    setup_logging(LoggerSettings(level="warn"))
    assert logging.getLogger().level == logging.WARNING


def test_file_output(tmp_path):
    filename = tmp_path / "logs" / "app.log"
    handler = setup_logging(LoggerSettings(
        output="file", filename=str(filename), format="json", max_size=1, max_backups=2,
    ))
    assert isinstance(handler, PruningRotatingFileHandler)
    assert handler.maxBytes == 1024 * 1024
    assert handler.backupCount == 2

    logging.getLogger("webtemplate.test").info("to file")
    handler.flush()
    line = filename.read_text(encoding="utf-8").strip().splitlines()[-1]
    assert json.loads(line)["message"] == "to file"


def test_compressed_rotation(tmp_path):
    filename = tmp_path / "app.log"
    handler = setup_logging(LoggerSettings(
        output="file", filename=str(filename), compress=True, max_backups=2,
    ))
    logging.getLogger("webtemplate.test").info("before rotation")
    handler.doRollover()
    assert (tmp_path / "app.log.1.gz").exists()


def test_prune_old_logs(tmp_path):
    current = tmp_path / "app.log"
    current.write_text("live")
    old = tmp_path / "app.log.1"
    old.write_text("old")
    fresh = tmp_path / "app.log.2"
    fresh.write_text("fresh")
    ancient = time.time() - 40 * 86400
    os.utime(old, (ancient, ancient))

    removed = prune_old_logs(str(current), max_age_days=30)

    assert removed == [old]
    assert current.exists()
    assert fresh.exists()
