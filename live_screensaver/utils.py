import os
import sys
import shutil
import hashlib
import tempfile
from pathlib import Path

APP_DIR_NAME = "LiveScreensaver"
CACHE_FILE_PREFIX = "screensaver_"
LOCK_FILE_SUFFIX = "_lock"

YTDLP_CANDIDATE_PATHS = (
    "/opt/homebrew/bin/yt-dlp",
    "/usr/local/bin/yt-dlp",
    "/opt/local/bin/yt-dlp",
    str(Path.home() / ".local" / "bin" / "yt-dlp"),
)


def get_resource_path(relative_path: str) -> Path:
    """Get absolute path to resource, works for dev and for PyInstaller."""
    if getattr(sys, 'frozen', False):
        base_path = Path(sys._MEIPASS)
    else:
        base_path = Path(__file__).parent

    return base_path / relative_path


def get_user_data_dir() -> Path:
    """Get writable base directory for app-managed user files."""
    override = os.getenv("LIVE_SCREENSAVER_HOME")
    if override:
        base = Path(override)
    elif os.name == "nt":
        base = Path(os.getenv("APPDATA") or Path.home()) / APP_DIR_NAME
    else:
        config_home = os.getenv("XDG_CONFIG_HOME") or str(Path.home() / ".config")
        base = Path(config_home) / "live-screensaver"
    base.mkdir(parents=True, exist_ok=True)
    return base


def get_user_data_path(filename: str) -> str:
    """Get path for writable user data (settings, logs)."""
    return str(get_user_data_dir() / filename)


def source_digest(source_url: str) -> str:
    return hashlib.md5(str(source_url).encode("utf-8")).hexdigest()


def cache_file_path(source_url: str, directory: str | os.PathLike | None = None) -> Path:
    base = Path(directory) if directory is not None else Path(tempfile.gettempdir())
    return base / f"{CACHE_FILE_PREFIX}{source_digest(source_url)}"


def lock_file_path(source_url: str, directory: str | os.PathLike | None = None) -> Path:
    cache_path = cache_file_path(source_url, directory)
    return cache_path.with_name(cache_path.name + LOCK_FILE_SUFFIX)


def file_age_seconds(path: Path, now: float) -> float:
    """Seconds since *path* was last modified. Raises OSError if it is gone."""
    return now - path.stat().st_mtime


def remove_file_quietly(path: Path) -> bool:
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError:
        return False


def find_ytdlp_path(candidates=None) -> str | None:
    for candidate in candidates if candidates is not None else YTDLP_CANDIDATE_PATHS:
        if candidate and os.path.isfile(candidate) and os.access(candidate, os.X_OK):
            return str(candidate)
    if candidates is None:
        return shutil.which("yt-dlp")
    return None


def subprocess_flags() -> int:
    if os.name == "nt":
        return 0x08000000  # CREATE_NO_WINDOW
    return 0
