import faulthandler
import logging
import os
import sys
import threading
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .utils import get_user_data_path


LOG_FILE_NAME = "live-screensaver.log"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(session)s] %(name)s: %(message)s"
LOG_MAX_BYTES = 1_000_000
LOG_BACKUP_COUNT = 3

# The screensaver starts many times a day; every run gets its own tag.
SESSION_ID = f"{os.getpid()}-{int(time.time()) % 100000:05d}"

_FAULT_FILE = None
_crash_context: dict[str, str] = {}


class SessionFilter(logging.Filter):
    def filter(self, record):
        record.session = SESSION_ID
        return True


def set_crash_context(**fields) -> None:
    """Remember what was playing so crash reports can say so. None clears a field."""
    for key, value in fields.items():
        if value is None:
            _crash_context.pop(key, None)
        else:
            _crash_context[key] = str(value)


def describe_crash_context() -> str:
    if not _crash_context:
        return "no playback context"
    return " ".join(f"{key}={value}" for key, value in sorted(_crash_context.items()))


def setup_app_logging(verbose: bool = False) -> Path:
    log_path = Path(get_user_data_path(LOG_FILE_NAME))
    log_path.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    if verbose:
        _add_console_handler(root)

    for handler in root.handlers:
        if isinstance(handler, RotatingFileHandler) and Path(handler.baseFilename) == log_path:
            return log_path

    handler = RotatingFileHandler(
        log_path,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    _format_handler(handler)
    root.addHandler(handler)

    logging.captureWarnings(True)
    _enable_fault_handler(log_path)
    _install_crash_hooks()
    logging.info(
        "Screensaver session %s started. Python=%s log_path=%s verbose=%s",
        SESSION_ID,
        sys.version.split()[0],
        str(log_path),
        verbose,
    )
    return log_path


def log_session_end(exit_code: int) -> None:
    logging.info("Screensaver session %s ended: exit_code=%s (%s)", SESSION_ID, exit_code, describe_crash_context())


def _format_handler(handler: logging.Handler) -> None:
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(SessionFilter())


def _add_console_handler(root: logging.Logger) -> None:
    if any(getattr(h, "_live_screensaver_console", False) for h in root.handlers):
        return
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG)
    _format_handler(console)
    console._live_screensaver_console = True
    root.addHandler(console)


def _enable_fault_handler(log_path: Path) -> None:
    # Native crashes inside libmpv only show up through faulthandler.
    global _FAULT_FILE
    try:
        _FAULT_FILE = open(log_path, "a", encoding="utf-8")
        faulthandler.enable(_FAULT_FILE)
    except (OSError, RuntimeError, ValueError) as e:
        logging.warning("faulthandler unavailable: %s", e)
        _FAULT_FILE = None


def _report_crash(what: str, exc_info) -> None:
    logging.critical("%s during screensaver session (%s)", what, describe_crash_context(), exc_info=exc_info)


def _install_crash_hooks() -> None:
    def _excepthook(exc_type, exc_value, exc_tb):
        _report_crash("Unhandled exception", (exc_type, exc_value, exc_tb))

    def _unraisablehook(unraisable):
        _report_crash(
            f"Unraisable exception ({unraisable.err_msg or 'no message'})",
            (type(unraisable.exc_value), unraisable.exc_value, unraisable.exc_traceback),
        )

    def _threading_hook(args):
        _report_crash(
            f"Unhandled exception in thread {getattr(args.thread, 'name', 'unknown')}",
            (args.exc_type, args.exc_value, args.exc_traceback),
        )

    sys.excepthook = _excepthook
    sys.unraisablehook = _unraisablehook
    threading.excepthook = _threading_hook
