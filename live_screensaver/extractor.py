import logging
import subprocess

from PySide6.QtCore import QObject, QRunnable, Signal

from .cache import ResolutionCache
from .extraction_lock import ExtractionLock
from .utils import find_ytdlp_path, subprocess_flags

# yt-dlp has no timeout of its own; a hung run would pin a pool thread forever.
EXTRACTOR_TIMEOUT_SEC = 60.0


def first_output_line(output: str) -> str:
    for line in str(output or "").splitlines():
        line = line.strip()
        if line:
            return line
    return ""


class ExtractorInvoker:
    def __init__(
        self,
        cache: ResolutionCache | None = None,
        lock: ExtractionLock | None = None,
        candidates=None,
        timeout: float = EXTRACTOR_TIMEOUT_SEC,
    ):
        self.cache = cache or ResolutionCache()
        self.lock = lock or ExtractionLock()
        self.candidates = candidates
        self.timeout = timeout

    def find_executable(self) -> str | None:
        return find_ytdlp_path(self.candidates)

    def extract(self, source_url: str, force_refresh: bool = False) -> str | None:
        if not force_refresh:
            cached = self.cache.get(source_url)
            if cached:
                return cached

        if not self.lock.try_acquire(source_url):
            return None

        try:
            executable = self.find_executable()
            if not executable:
                logging.warning("yt-dlp not found; cannot resolve %s", source_url)
                return None
            return self._run(executable, source_url)
        finally:
            self.lock.release(source_url)

    def _run(self, executable: str, source_url: str) -> str | None:
        logging.info("yt-dlp extract started: url=%s exe=%s", source_url, executable)
        try:
            completed = subprocess.run(
                [executable, "-g", source_url],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                creationflags=subprocess_flags(),
                timeout=self.timeout,
                check=False,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except subprocess.TimeoutExpired:
            logging.warning("yt-dlp timed out after %.0fs: url=%s", self.timeout, source_url)
            return None
        except (OSError, subprocess.SubprocessError) as e:
            logging.error("Failed to execute yt-dlp: %s", e)
            return None

        if completed.returncode != 0:
            logging.warning(
                "yt-dlp failed: url=%s code=%s stderr=%s",
                source_url,
                completed.returncode,
                (completed.stderr or "").strip()[:300],
            )
            return None

        resolved = first_output_line(completed.stdout)
        if not resolved:
            logging.warning("yt-dlp returned no URL: url=%s", source_url)
            return None

        self.cache.put(source_url, resolved)
        logging.info("yt-dlp extract success: url=%s", source_url)
        return resolved


class ExtractionSignals(QObject):
    finished = Signal(int, object)  # token, resolved url or None


class ExtractionTask(QRunnable):
    """Runs one ``ExtractorInvoker.extract`` call on a pool thread."""

    def __init__(self, extractor: ExtractorInvoker, source_url: str, token: int, force_refresh: bool = False):
        super().__init__()
        self.extractor = extractor
        self.source_url = source_url
        self.token = token
        self.force_refresh = force_refresh
        self.signals = ExtractionSignals()

    def run(self):
        result = None
        try:
            result = self.extractor.extract(self.source_url, force_refresh=self.force_refresh)
        except Exception:
            logging.exception("Extraction task crashed: url=%s", self.source_url)
        self.signals.finished.emit(self.token, result)
