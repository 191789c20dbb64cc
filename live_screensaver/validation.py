import errno
import logging
import socket
import subprocess
import threading
from dataclasses import dataclass
from urllib.error import HTTPError, URLError
from urllib.parse import urlparse
from urllib.request import Request, urlopen

from PySide6.QtCore import QObject, QThread, Signal

from .classifier import SourceKind, classify
from .extractor import EXTRACTOR_TIMEOUT_SEC, first_output_line
from .i18n import tr
from .utils import find_ytdlp_path, subprocess_flags

HTTP_TIMEOUT_SEC = 10
PROBE_RANGE = "bytes=0-511"
USER_AGENT = "LiveScreensaver/1.0"

# Checked in order; the first phrase found in yt-dlp's stderr wins.
_YTDLP_ERROR_PHRASES = (
    (("Video unavailable", "Private video"), "Video is unavailable or private. Try another URL."),
    (("Sign in",), "This video requires sign-in. Try another URL."),
    (("not a valid URL", "Unsupported URL"), "URL not supported. Try a YouTube or other supported video URL."),
    (("HTTP Error 404",), "Video not found (404). Check the URL and try again."),
    (("Live event will begin",), "This is a scheduled live event that hasn't started yet."),
    (("is offline",), "This stream is currently offline. Try again later or use another URL."),
)

_NO_NETWORK_ERRNOS = {errno.ENETUNREACH, errno.ENETDOWN}


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    message: str = ""

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(True, "")

    @classmethod
    def invalid(cls, message: str) -> "ValidationResult":
        return cls(False, message)


def check_url_format(text: str) -> ValidationResult | None:
    """Offline checks. Returns None when the URL still needs a network probe."""
    url = str(text or "").strip()
    if not url:
        return ValidationResult.ok()
    if any(ch.isspace() for ch in url):
        return ValidationResult.invalid(tr("Invalid URL format. Please check for typos."))
    try:
        parsed = urlparse(url)
        host = parsed.hostname
    except ValueError:
        return ValidationResult.invalid(tr("Invalid URL format. Please check for typos."))
    if parsed.scheme.lower() not in ("http", "https"):
        return ValidationResult.invalid(tr("URL must start with http:// or https://"))
    if not host:
        return ValidationResult.invalid(tr("URL must include a domain (e.g., youtube.com)"))
    return None


def http_status_result(status) -> ValidationResult:
    if status is None:
        return ValidationResult.invalid(tr("Invalid server response. This may not be a valid stream."))
    code = int(status)
    if 200 <= code <= 299:
        return ValidationResult.ok()
    if code in (401, 403):
        return ValidationResult.invalid(
            tr("Access denied (HTTP {}). This stream may require authentication.", code)
        )
    if code == 404:
        return ValidationResult.invalid(tr("Stream not found (HTTP 404). Check the URL or try another stream."))
    if 500 <= code <= 599:
        return ValidationResult.invalid(tr("Server error (HTTP {}). The stream service may be down.", code))
    return ValidationResult.invalid(tr("Unexpected response (HTTP {}). Try another URL.", code))


def network_error_result(reason) -> ValidationResult:
    if isinstance(reason, TimeoutError) or "timed out" in str(reason).lower():
        return ValidationResult.invalid(tr("Connection timed out. Check your internet or try another URL."))
    if isinstance(reason, socket.gaierror):
        return ValidationResult.invalid(tr("Server not found. Check the URL and try again."))
    if isinstance(reason, OSError) and reason.errno in _NO_NETWORK_ERRNOS:
        return ValidationResult.invalid(tr("No internet connection. Please check your network."))
    return ValidationResult.invalid(tr("Connection failed: {}", reason))


def ytdlp_error_result(stderr: str) -> ValidationResult:
    text = str(stderr or "")
    for phrases, message in _YTDLP_ERROR_PHRASES:
        if any(phrase in text for phrase in phrases):
            return ValidationResult.invalid(tr(message))
    return ValidationResult.invalid(tr("Could not load video. Check the URL or try another."))


def probe_manifest(url: str, timeout: float = HTTP_TIMEOUT_SEC, opener=urlopen) -> ValidationResult:
    """Ranged GET of the first bytes of a manifest to see if it is reachable."""
    try:
        request = Request(url, method="GET", headers={"Range": PROBE_RANGE, "User-Agent": USER_AGENT})
    except ValueError:
        return ValidationResult.invalid(tr("Invalid stream URL"))

    try:
        with opener(request, timeout=timeout) as response:
            status = getattr(response, "status", None)
            if status is None:
                status = response.getcode()
    except HTTPError as exc:
        status = exc.code
    except URLError as exc:
        logging.info("Stream probe failed: url=%s reason=%s", url, exc.reason)
        return network_error_result(exc.reason)
    except TimeoutError as exc:
        return network_error_result(exc)
    except (OSError, ValueError) as exc:
        logging.info("Stream probe failed: url=%s err=%s", url, exc)
        return network_error_result(exc)
    return http_status_result(status)


class SourceValidator:
    """Checks that a source reference can be played, from any thread.

    ``cancel()`` may be called from another thread; it kills a running
    yt-dlp and makes ``validate`` return None.
    """

    def __init__(self, candidates=None, timeout: float = HTTP_TIMEOUT_SEC, opener=urlopen):
        self.candidates = candidates
        self.timeout = timeout
        self.opener = opener
        self._process = None
        self._cancelled = False
        self._lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            process = self._process
        if process is not None and process.poll() is None:
            try:
                process.terminate()
            except OSError as e:
                logging.debug("yt-dlp terminate skipped: %s", e)

    def validate(self, text: str) -> ValidationResult | None:
        url = str(text or "").strip()
        result = check_url_format(url)
        if result is not None:
            return result

        classification = classify(url)
        if classification.kind is SourceKind.REDIRECT_REWRITE:
            if not classification.url:
                return ValidationResult.invalid(tr("Invalid stream.place URL. Use format: stream.place/username"))
            return self._probe(classification.url)
        if classification.kind is SourceKind.DIRECT_MANIFEST:
            return self._probe(url)
        return self._validate_with_ytdlp(url)

    def _probe(self, url: str) -> ValidationResult | None:
        if self.cancelled:
            return None
        result = probe_manifest(url, timeout=self.timeout, opener=self.opener)
        if self.cancelled:
            return None
        return result

    def _validate_with_ytdlp(self, url: str) -> ValidationResult | None:
        executable = find_ytdlp_path(self.candidates)
        if not executable:
            return ValidationResult.invalid(tr("yt-dlp is required for this URL. Install it with: pip install yt-dlp"))

        try:
            process = subprocess.Popen(
                [executable, "-g", "--no-warnings", url],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                creationflags=subprocess_flags(),
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except (OSError, ValueError) as e:
            logging.error("Failed to run yt-dlp for validation: %s", e)
            return ValidationResult.invalid(tr("Failed to run yt-dlp: {}", e))

        with self._lock:
            self._process = process
            cancelled = self._cancelled
        if cancelled:
            process.terminate()

        try:
            stdout, stderr = process.communicate(timeout=EXTRACTOR_TIMEOUT_SEC)
        except subprocess.TimeoutExpired:
            process.kill()
            process.communicate()
            return ValidationResult.invalid(tr("Connection timed out. Check your internet or try another URL."))
        finally:
            with self._lock:
                self._process = None

        if self.cancelled:
            return None

        resolved = first_output_line(stdout)
        if process.returncode == 0 and resolved:
            return self._probe(resolved)
        if process.returncode == 0:
            return ValidationResult.invalid(tr("Could not extract stream URL"))
        logging.info("yt-dlp validation failed: url=%s stderr=%s", url, (stderr or "").strip()[:300])
        return ytdlp_error_result(stderr)


class ValidationSignals(QObject):
    finished = Signal(int, object)  # token, ValidationResult


class ValidationWorker(QThread):
    def __init__(self, text: str, token: int, candidates=None, parent=None):
        super().__init__(parent)
        self.text = str(text or "")
        self.token = int(token)
        self.validator = SourceValidator(candidates=candidates)
        self.signals = ValidationSignals()

    def cancel(self) -> None:
        self.requestInterruption()
        self.validator.cancel()

    def run(self):
        try:
            result = self.validator.validate(self.text)
        except Exception:
            logging.exception("Source validation crashed: %s", self.text)
            result = ValidationResult.invalid(tr("Could not load video. Check the URL or try another."))
        if result is None or self.isInterruptionRequested():
            return
        self.signals.finished.emit(self.token, result)
