from PySide6.QtCore import QSettings
from .utils import get_user_data_path

ORG_NAME = "LiveScreensaver"
APP_NAME = "Live Screensaver"
URL_KEY = "HLSStreamURL"
STREAM_START_KEY = "StreamStartTime"
LANGUAGE_KEY = "player/language"
DEFAULT_URL = (
    "https://devstreaming-cdn.apple.com/videos/streaming/examples/"
    "bipbop_adv_example_hevc/master.m3u8"
)


def _to_float(value, default: float | None = None) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def get_settings(path: str | None = None) -> QSettings:
    """Returns a QSettings object pointing to a visible .ini file."""
    return QSettings(path or get_user_data_path("settings.ini"), QSettings.IniFormat)


def _resolve(settings: QSettings | None) -> QSettings:
    return get_settings() if settings is None else settings


def load_source_url(settings: QSettings | None = None) -> str:
    settings = _resolve(settings)
    value = str(settings.value(URL_KEY, "") or "").strip()
    return value or DEFAULT_URL


def save_source_url(url: str, settings: QSettings | None = None) -> None:
    settings = _resolve(settings)
    settings.setValue(URL_KEY, str(url or "").strip() or DEFAULT_URL)
    # A new source starts a new shared timeline.
    settings.remove(STREAM_START_KEY)
    settings.sync()


def load_stream_start(settings: QSettings | None = None) -> float | None:
    settings = _resolve(settings)
    if not settings.contains(STREAM_START_KEY):
        return None
    return _to_float(settings.value(STREAM_START_KEY))


def save_stream_start(timestamp: float, settings: QSettings | None = None) -> None:
    settings = _resolve(settings)
    settings.setValue(STREAM_START_KEY, float(timestamp))
    settings.sync()


def clear_stream_start(settings: QSettings | None = None) -> None:
    settings = _resolve(settings)
    settings.remove(STREAM_START_KEY)
    settings.sync()


def load_language_setting(default: str = "", settings: QSettings | None = None) -> str:
    """Loads saved language code, returns empty string if none (auto-detect)."""
    settings = _resolve(settings)
    return str(settings.value(LANGUAGE_KEY, default) or "")


def save_language_setting(lang_code: str, settings: QSettings | None = None) -> None:
    """Pins the UI language; an empty code or "auto" goes back to the system locale."""
    settings = _resolve(settings)
    code = str(lang_code or "").strip().lower()
    if not code or code == "auto":
        settings.remove(LANGUAGE_KEY)
    else:
        settings.setValue(LANGUAGE_KEY, code)
    settings.sync()
