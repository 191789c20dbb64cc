import faulthandler
import logging
import sys
import threading
from logging.handlers import RotatingFileHandler

import pytest

from live_screensaver import app_logging


@pytest.fixture
def clean_root_logger(monkeypatch):
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    monkeypatch.setattr(sys, "unraisablehook", sys.unraisablehook)
    monkeypatch.setattr(threading, "excepthook", threading.excepthook)
    monkeypatch.setattr(faulthandler, "enable", lambda *args, **kwargs: None)
    yield root
    for handler in list(root.handlers):
        if handler not in before and (
            isinstance(handler, RotatingFileHandler) or getattr(handler, "_live_screensaver_console", False)
        ):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    logging.captureWarnings(False)


def _file_handlers(root):
    return [h for h in root.handlers if isinstance(h, RotatingFileHandler)]


def test_setup_writes_to_user_data_dir(clean_root_logger, isolated_home):
    log_path = app_logging.setup_app_logging()

    assert log_path == isolated_home / app_logging.LOG_FILE_NAME
    handlers = _file_handlers(clean_root_logger)
    assert len(handlers) == 1
    assert handlers[0].maxBytes == 1_000_000
    assert handlers[0].backupCount == 3


def test_setup_is_idempotent(clean_root_logger):
    app_logging.setup_app_logging()
    app_logging.setup_app_logging()
    assert len(_file_handlers(clean_root_logger)) == 1


def test_verbose_adds_one_console_handler(clean_root_logger):
    app_logging.setup_app_logging(verbose=True)
    app_logging.setup_app_logging(verbose=True)

    consoles = [h for h in clean_root_logger.handlers if getattr(h, "_live_screensaver_console", False)]
    assert len(consoles) == 1
    assert clean_root_logger.level == logging.DEBUG


def test_records_carry_the_session_tag(clean_root_logger):
    log_path = app_logging.setup_app_logging()

    text = log_path.read_text(encoding="utf-8")
    assert f"[{app_logging.SESSION_ID}]" in text
    assert "Screensaver session" in text


def test_crash_hook_reports_playback_context(clean_root_logger, monkeypatch, caplog):
    monkeypatch.setattr(app_logging, "_crash_context", {})
    app_logging.setup_app_logging()
    app_logging.set_crash_context(state="retrying", source="https://cdn.example.com/a.m3u8")

    error = ValueError("boom")
    with caplog.at_level(logging.CRITICAL):
        sys.excepthook(ValueError, error, None)

    record = caplog.records[-1]
    assert record.levelno == logging.CRITICAL
    assert "state=retrying" in record.getMessage()
    assert "source=https://cdn.example.com/a.m3u8" in record.getMessage()
    assert record.exc_info[1] is error


def test_crash_context_fields_can_be_cleared(monkeypatch):
    monkeypatch.setattr(app_logging, "_crash_context", {})
    assert app_logging.describe_crash_context() == "no playback context"

    app_logging.set_crash_context(state="ready")
    app_logging.set_crash_context(state=None)

    assert app_logging.describe_crash_context() == "no playback context"
