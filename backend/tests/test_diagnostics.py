"""Tests for diagnostics — crash reports, JSON logging, log dir validation."""

import json
import logging
import os
import sys
import time
from unittest.mock import patch

import pytest

from diagnostics import (
    MAX_CRASH_REPORTS,
    JSONFormatter,
    app_dir,
    build_crash_report,
    prune,
    resolve_log_dir,
    setup_excepthook,
    write_crash_report,
)

pytestmark = pytest.mark.smoke


@pytest.fixture
def crash_dir(tmp_path):
    d = tmp_path / "crash_reports"
    d.mkdir()
    return d


@pytest.fixture
def restore_excepthook():
    original = sys.excepthook
    yield
    sys.excepthook = original


def _exc_info(exc):
    try:
        raise exc
    except type(exc):
        return sys.exc_info()


def test_build_crash_report_fields():
    report = build_crash_report(*_exc_info(ValueError("bad pixel")))
    assert report["exception_type"] == "ValueError"
    assert report["exception_message"] == "bad pixel"
    assert report["version"]
    assert isinstance(report["traceback"], list)


def test_crash_report_strips_home_dir():
    home = os.path.expanduser("~")
    report = build_crash_report(*_exc_info(FileNotFoundError(f"{home}/secret.png")))
    assert home not in json.dumps(report)


def test_write_crash_report_owner_only(crash_dir):
    path = write_crash_report(crash_dir, build_crash_report(*_exc_info(RuntimeError("x"))))
    assert path.stat().st_mode & 0o777 == 0o600
    assert json.loads(path.read_text())["exception_type"] == "RuntimeError"


def test_excepthook_writes_crash_json(crash_dir, restore_excepthook):
    setup_excepthook(crash_dir)
    with patch("sys.__excepthook__") as default_hook:
        sys.excepthook(*_exc_info(ValueError("test crash")))
        default_hook.assert_called_once()
    crash_files = list(crash_dir.glob("crash_*.json"))
    assert len(crash_files) == 1
    assert json.loads(crash_files[0].read_text())["exception_type"] == "ValueError"


def test_unwritable_crash_dir_falls_back(tmp_path, restore_excepthook, capsys):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("")
    setup_excepthook(blocker / "crash_reports")
    with patch("sys.__excepthook__") as default_hook:
        sys.excepthook(*_exc_info(RuntimeError("test")))
        default_hook.assert_called_once()
    assert "Could not write crash report" in capsys.readouterr().err


def test_write_crash_report_keeps_newest(crash_dir):
    for i in range(10):
        f = crash_dir / f"crash_2024010{i}T000000Z.json"
        f.write_text("{}")
        os.utime(f, (1704067200 + i * 3600, 1704067200 + i * 3600))

    write_crash_report(crash_dir, build_crash_report(*_exc_info(KeyError("k"))))

    assert len(list(crash_dir.glob("crash_*.json"))) == MAX_CRASH_REPORTS


def test_prune_by_age(tmp_path):
    old = tmp_path / "pixelfilter.log.1"
    fresh = tmp_path / "pixelfilter.log.2"
    for f in (old, fresh):
        f.write_text("")
    ten_days_ago = time.time() - 10 * 86400
    os.utime(old, (ten_days_ago, ten_days_ago))

    prune(tmp_path, "pixelfilter.log.*", max_age_days=7)

    assert not old.exists()
    assert fresh.exists()


def test_json_formatter_one_object_per_line():
    record = logging.LogRecord(
        "engine.pipeline", logging.WARNING, __file__, 1, "slow %s", ("fx.dim",), None
    )
    entry = json.loads(JSONFormatter().format(record))
    assert entry["level"] == "WARNING"
    assert entry["logger"] == "engine.pipeline"
    assert entry["message"] == "slow fx.dim"
    assert "filter_id" not in entry


def test_json_formatter_copies_filter_context():
    logger = logging.getLogger("test_json_formatter_context")
    record = logger.makeRecord(
        logger.name,
        logging.ERROR,
        __file__,
        1,
        "failed",
        (),
        None,
        extra={"filter_id": "fx.sepia", "strength": 0.5, "dimensions": [4, 3]},
    )
    entry = json.loads(JSONFormatter().format(record))
    assert entry["filter_id"] == "fx.sepia"
    assert entry["strength"] == 0.5
    assert entry["dimensions"] == [4, 3]


def test_json_formatter_includes_exception():
    record = logging.LogRecord(
        "x", logging.ERROR, __file__, 1, "boom", (), _exc_info(KeyError("k"))
    )
    entry = json.loads(JSONFormatter().format(record))
    assert entry["exception"]["type"] == "KeyError"


def test_log_dir_outside_app_dir_rejected():
    assert resolve_log_dir("/tmp/evil/logs") == app_dir() / "logs"


def test_log_dir_inside_app_dir_accepted():
    requested = app_dir() / "custom-logs"
    assert resolve_log_dir(str(requested)) == requested.resolve()


def test_empty_log_dir_uses_default():
    assert resolve_log_dir("") == app_dir() / "logs"
    assert resolve_log_dir(None) == app_dir() / "logs"
