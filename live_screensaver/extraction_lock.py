import os
import time
import logging
from pathlib import Path

from .utils import file_age_seconds, lock_file_path, remove_file_quietly

EXTRACTION_LOCK_TIMEOUT_SEC = 15.0


class ExtractionLock:
    """Advisory marker file keeping concurrent callers from running yt-dlp twice.

    A marker younger than ``timeout`` means another resolution is in flight.
    Older markers belong to a crashed or hung holder and may be reclaimed.
    """

    def __init__(self, directory=None, timeout: float = EXTRACTION_LOCK_TIMEOUT_SEC, clock=time.time):
        self.directory = directory
        self.timeout = float(timeout)
        self._clock = clock

    def path_for(self, source_url: str) -> Path:
        return lock_file_path(source_url, self.directory)

    def is_held(self, source_url: str) -> bool:
        try:
            return file_age_seconds(self.path_for(source_url), self._clock()) < self.timeout
        except OSError:
            return False

    def try_acquire(self, source_url: str) -> bool:
        path = self.path_for(source_url)
        try:
            age = file_age_seconds(path, self._clock())
        except FileNotFoundError:
            age = None
        except OSError as e:
            logging.warning("Failed to check lock file attributes: path=%s err=%s", path, e)
            age = None

        if age is not None:
            if age < self.timeout:
                logging.info("Extraction already in flight (lock age=%.1fs): source=%s", age, source_url)
                return False
            logging.info("Reclaiming stale extraction lock (age=%.1fs): source=%s", age, source_url)
            remove_file_quietly(path)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(str(path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            os.close(fd)
        except FileExistsError:
            logging.info("Lost extraction lock race: source=%s", source_url)
            return False
        except OSError as e:
            # Advisory only: extraction goes ahead without a marker.
            logging.error("Failed to create lock file: path=%s err=%s", path, e)
        return True

    def release(self, source_url: str) -> None:
        remove_file_quietly(self.path_for(source_url))
