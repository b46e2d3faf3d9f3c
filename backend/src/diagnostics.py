"""Diagnostics: JSON logs, faulthandler output and crash reports.

Everything lands under ~/.pixelfilter:

    logs/pixelfilter.log          rotating, one JSON object per line
    logs/pixelfilter_fault.log    faulthandler (numpy / Pillow segfaults)
    crash_reports/crash_*.json    unhandled exceptions, PII-scrubbed
"""

import datetime
import faulthandler
import json
import logging
import logging.handlers
import os
import sys
import time
import traceback
from pathlib import Path

from _version import __version__
from security import strip_pii

logger = logging.getLogger(__name__)

LOG_FILENAME = "pixelfilter.log"
FAULT_FILENAME = "pixelfilter_fault.log"

MAX_CRASH_REPORTS = 5
MAX_LOG_AGE_DAYS = 7
LOG_MAX_BYTES = 10_000_000
LOG_BACKUP_COUNT = 7

# Attributes a log call may attach with ``extra=``; copied into the JSON line
CONTEXT_FIELDS = ("filter_id", "strength", "dimensions", "cmd")


def app_dir() -> Path:
    return Path(os.path.expanduser("~/.pixelfilter"))


def resolve_log_dir(requested: str | None) -> Path:
    """The requested log directory if it lies under app_dir(), else the default."""
    default = app_dir() / "logs"
    if not requested:
        return default
    candidate = Path(requested).resolve()
    if not candidate.is_relative_to(app_dir().resolve()):
        logger.warning("APP_LOG_DIR outside %s, using default", app_dir())
        return default
    return candidate


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.datetime.fromtimestamp(
                record.created, tz=datetime.timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            if hasattr(record, name):
                entry[name] = getattr(record, name)
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = {
                "type": type(record.exc_info[1]).__name__,
                "traceback": self.formatException(record.exc_info),
            }
        return json.dumps(entry, default=str)


def prune(directory: Path, pattern: str, keep: int | None = None, max_age_days=None):
    """Delete files matching ``pattern`` beyond the newest ``keep``, or older
    than ``max_age_days``."""
    try:
        files = sorted(
            Path(directory).glob(pattern), key=lambda f: f.stat().st_mtime, reverse=True
        )
        doomed = set(files[keep:]) if keep is not None else set()
        if max_age_days is not None:
            cutoff = time.time() - max_age_days * 86400
            doomed.update(f for f in files if f.stat().st_mtime < cutoff)
        for f in doomed:
            f.unlink(missing_ok=True)
    except OSError as e:
        logger.debug("Pruning %s skipped: %s", directory, e)


def setup_structured_logging(log_dir: str | None = None) -> Path:
    """Attach a rotating JSON handler to the root logger. Returns the log dir.

    Directory: ``log_dir`` or APP_LOG_DIR (kept under ~/.pixelfilter).
    Level: APP_LOG_LEVEL, default INFO.
    """
    directory = resolve_log_dir(log_dir or os.environ.get("APP_LOG_DIR"))
    directory.mkdir(mode=0o700, parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        directory / LOG_FILENAME, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT
    )
    handler.setFormatter(JSONFormatter())

    root = logging.getLogger()
    level = os.environ.get("APP_LOG_LEVEL", "INFO").upper()
    root.setLevel(getattr(logging, level, logging.INFO))
    root.addHandler(handler)

    prune(directory, f"{LOG_FILENAME}.*", max_age_days=MAX_LOG_AGE_DAYS)
    return directory


def setup_faulthandler(log_dir: Path):
    # Own file: a rotating handler would close the descriptor under it
    fault_path = Path(log_dir) / FAULT_FILENAME
    try:
        fault_file = open(fault_path, "a", buffering=1)  # noqa: SIM115
        fault_path.chmod(0o600)
        faulthandler.enable(file=fault_file, all_threads=True)
    except OSError as e:
        print(f"WARNING: Could not enable faulthandler: {e}", file=sys.stderr)


def build_crash_report(exc_type, exc_value, exc_tb) -> dict:
    report = {
        "timestamp": datetime.datetime.now(tz=datetime.timezone.utc).strftime(
            "%Y%m%dT%H%M%S%fZ"
        ),
        "exception_type": exc_type.__name__ if exc_type else "Unknown",
        "exception_message": str(exc_value),
        "traceback": traceback.format_exception(exc_type, exc_value, exc_tb),
        "version": __version__,
        "python_version": sys.version,
        "platform": sys.platform,
    }
    return strip_pii({"extra": report}, {})["extra"]


def write_crash_report(crash_dir: str | Path, report: dict) -> Path:
    """Write ``report`` readable by the owner only, then drop the oldest reports."""
    crash_dir = Path(crash_dir)
    crash_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
    path = crash_dir / f"crash_{report['timestamp']}.json"
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as f:
        json.dump(report, f, indent=2)
    prune(crash_dir, "crash_*.json", keep=MAX_CRASH_REPORTS)
    return path


def setup_excepthook(crash_dir: str | Path | None = None):
    """Route unhandled exceptions to a crash report before the default hook."""
    crash_dir = crash_dir or app_dir() / "crash_reports"

    def _crash_excepthook(exc_type, exc_value, exc_tb):
        try:
            write_crash_report(crash_dir, build_crash_report(exc_type, exc_value, exc_tb))
        except (OSError, TypeError, ValueError) as e:
            print(f"WARNING: Could not write crash report: {e}", file=sys.stderr)
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = _crash_excepthook


def init_diagnostics():
    log_dir = setup_structured_logging()
    setup_faulthandler(log_dir)
    setup_excepthook()
    logger.info("Diagnostics initialized: logging=%s, faulthandler=enabled", log_dir)
