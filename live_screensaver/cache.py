import os
import re
import time
import logging
from pathlib import Path

from .utils import cache_file_path, file_age_seconds, remove_file_quietly

CACHE_TTL_SEC = 300.0
_EXPIRE_RE = re.compile(r"expire/([0-9]+)")


def embedded_expiry(url: str) -> float | None:
    """Expiry timestamp some CDNs put in the URL path (``.../expire/1700000000/...``)."""
    match = _EXPIRE_RE.search(str(url or ""))
    if not match:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None


class ResolutionCache:
    """Source URL -> resolved manifest URL, one small file per source.

    Files live in the shared temp dir so every process of the screensaver
    (one per display on some hosts) sees the same resolution.
    """

    def __init__(self, directory=None, ttl: float = CACHE_TTL_SEC, clock=time.time):
        self.directory = directory
        self.ttl = float(ttl)
        self._clock = clock

    def path_for(self, source_url: str) -> Path:
        return cache_file_path(source_url, self.directory)

    def get(self, source_url: str) -> str | None:
        path = self.path_for(source_url)
        try:
            cached = path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logging.warning("Resolution cache unreadable: path=%s err=%s", path, e)
            return None
        if not cached:
            return None

        now = self._clock()
        expires_at = embedded_expiry(cached)
        if expires_at is not None:
            if expires_at - now > 0:
                return cached
            logging.info("Resolution cache expired (embedded): source=%s", source_url)
            remove_file_quietly(path)
            return None

        try:
            age = file_age_seconds(path, now)
        except OSError:
            return None
        if age < self.ttl:
            return cached
        logging.info("Resolution cache expired (age=%.1fs): source=%s", age, source_url)
        remove_file_quietly(path)
        return None

    def put(self, source_url: str, resolved_url: str) -> None:
        path = self.path_for(source_url)
        tmp_path = path.with_name(f"{path.name}.{os.getpid()}.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(str(resolved_url), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            logging.error("Failed to cache resolved URL: path=%s err=%s", path, e)
            remove_file_quietly(tmp_path)

    def invalidate(self, source_url: str) -> None:
        if remove_file_quietly(self.path_for(source_url)):
            logging.info("Resolution cache invalidated: source=%s", source_url)
