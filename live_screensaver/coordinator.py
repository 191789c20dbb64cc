"""
Shared playback session for every display of the screensaver.

One coordinator owns one player. Viewers register/unregister with it and
forward their frame ticks; the first registrant triggers setup and the last
one out tears everything down. All state lives on the GUI thread: yt-dlp runs
on a small QThreadPool and its results come back through queued signals.

States
------
IDLE -> SETTING_UP -> READY -> (STALLED | FAILED) -> RETRYING -> SETTING_UP ...
                                                  -> EXHAUSTED (after MAX_RETRIES)
"""

import time
import logging
from enum import Enum

from PySide6.QtCore import QObject, QThreadPool, QTimer, Qt, Signal

from .classifier import SourceKind, classify
from .extractor import ExtractionTask, ExtractorInvoker
from .player import STATUS_FAILED, STATUS_READY
from .settings import clear_stream_start, get_settings, load_source_url
from .sync import resolve_anchor, sync_target

MAX_RETRIES = 3
STALL_TIMEOUT_SEC = 10.0
WORKER_POOL_SIZE = 4


class PlaybackState(Enum):
    IDLE = "idle"
    SETTING_UP = "setting_up"
    READY = "ready"
    STALLED = "stalled"
    FAILED = "failed"
    RETRYING = "retrying"
    EXHAUSTED = "exhausted"


def retry_delay_seconds(attempt: int) -> float:
    """Backoff before retry *attempt* (1-based): 1s, 2s, 4s, ..."""
    return float(2 ** max(0, int(attempt) - 1))


def _default_player_factory():
    from .player import MpvPlayer

    return MpvPlayer()


class PlaybackCoordinator(QObject):
    player_ready = Signal()
    state_changed = Signal(str)

    def __init__(
        self,
        settings=None,
        extractor: ExtractorInvoker | None = None,
        player_factory=None,
        clock=time.time,
        thread_pool=None,
        parent=None,
    ):
        super().__init__(parent)
        self._settings = settings if settings is not None else get_settings()
        self._extractor = extractor or ExtractorInvoker()
        self._cache = self._extractor.cache
        self._player_factory = player_factory or _default_player_factory
        self._clock = clock
        if thread_pool is None:
            thread_pool = QThreadPool(self)
            thread_pool.setMaxThreadCount(WORKER_POOL_SIZE)
        self._pool = thread_pool

        self._player = None
        self._viewers = []
        self._viewer_count = 0
        self._is_setting_up = False
        self._current_source: str | None = None
        self._retry_count = 0
        self._stall_started_at: float | None = None
        self._state = PlaybackState.IDLE

        # Bumped on teardown so late worker results are dropped.
        self._generation = 0
        self._request_seq = 0
        self._pending_requests = {}

        self._retry_timer = QTimer(self)
        self._retry_timer.setSingleShot(True)
        self._retry_timer.timeout.connect(self._retry_playback)

    # ── read-only views ────────────────────────────────────────────────────
    @property
    def player(self):
        return self._player

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def retry_count(self) -> int:
        return self._retry_count

    @property
    def viewer_count(self) -> int:
        return self._viewer_count

    @property
    def is_setting_up(self) -> bool:
        return self._is_setting_up

    @property
    def is_ready(self) -> bool:
        return self._player is not None and self._state in (PlaybackState.READY, PlaybackState.STALLED)

    @property
    def retry_pending(self) -> bool:
        return self._retry_timer.isActive()

    @property
    def retry_interval_ms(self) -> int:
        return self._retry_timer.interval()

    # ── viewer registration ────────────────────────────────────────────────
    def register_viewer(self, viewer=None) -> None:
        if viewer is not None:
            if viewer in self._viewers:
                return
            self._viewers.append(viewer)
        self._viewer_count += 1
        logging.info("Viewer registered: count=%d", self._viewer_count)
        if self._viewer_count == 1 and self._player is None and not self._is_setting_up:
            self.setup()

    def unregister_viewer(self, viewer=None) -> None:
        if viewer is not None:
            if viewer not in self._viewers:
                return
            self._viewers.remove(viewer)
        self._viewer_count -= 1
        logging.info("Viewer unregistered: count=%d", self._viewer_count)
        if self._viewer_count <= 0:
            self.teardown()

    def on_frame_tick(self) -> None:
        self.check_stall()

    # ── setup ──────────────────────────────────────────────────────────────
    def setup(self) -> None:
        if self._is_setting_up:
            return
        self._is_setting_up = True
        self._set_state(PlaybackState.SETTING_UP)

        source = load_source_url(self._settings)
        result = classify(source)
        logging.info("Playback setup: kind=%s source=%s", result.kind.value, source)

        if result.kind is SourceKind.REDIRECT_REWRITE:
            self._current_source = None
            if result.url:
                self._load_video(result.url)
            else:
                logging.warning("No usable stream.place username in %s", source)
                self._is_setting_up = False
                self._set_state(PlaybackState.IDLE)
            return

        if result.kind is SourceKind.NEEDS_EXTRACTION:
            self._current_source = source
            cached = self._cache.get(source)
            if cached:
                logging.info("Using cached resolution for %s", source)
                self._load_video(cached)
                self._submit_extraction(source, force_refresh=True, handler=None)
            else:
                self._submit_extraction(source, force_refresh=False, handler=self._on_initial_resolution)
            return

        self._current_source = None
        self._load_video(source)

    def _submit_extraction(self, source_url: str, force_refresh: bool, handler) -> None:
        self._request_seq += 1
        request_id = self._request_seq
        task = ExtractionTask(self._extractor, source_url, request_id, force_refresh=force_refresh)
        task.signals.finished.connect(self._on_extraction_finished, Qt.QueuedConnection)
        self._pending_requests[request_id] = (self._generation, handler, task.signals)
        self._pool.start(task)

    def _on_extraction_finished(self, request_id: int, resolved) -> None:
        entry = self._pending_requests.pop(request_id, None)
        if entry is None:
            return
        generation, handler, _signals = entry
        if generation != self._generation:
            logging.debug("Dropping stale extraction result: request=%d", request_id)
            return
        if handler is not None:
            handler(resolved)

    def _on_initial_resolution(self, resolved) -> None:
        if resolved:
            self._load_video(str(resolved))
            return
        # Nothing to play; reconfigure() starts over.
        logging.warning("Could not resolve %s; not loading", self._current_source)
        self._is_setting_up = False
        self._set_state(PlaybackState.IDLE)

    def _on_retry_resolution(self, resolved) -> None:
        if resolved:
            self._load_video(str(resolved))
            return
        logging.warning("Could not re-resolve %s", self._current_source)
        self._handle_playback_failure("resolution failed")

    def _load_video(self, url: str) -> None:
        self._release_player()
        player = self._player_factory()
        player.status_changed.connect(lambda status, p=player: self._on_player_status(p, status))
        player.stalled.connect(lambda p=player: self._on_player_stalled(p))
        player.finished.connect(lambda p=player: self._on_player_finished(p))
        player.failed_to_complete.connect(lambda reason, p=player: self._on_player_failed(p, reason))
        self._player = player
        self._stall_started_at = None
        logging.info("Loading stream: %s", url)
        player.load(url)
        player.play()

    def _release_player(self) -> None:
        player, self._player = self._player, None
        if player is None:
            return
        player.pause()
        player.release()
        player.deleteLater()

    # ── player notifications ───────────────────────────────────────────────
    def _on_player_status(self, player, status: str) -> None:
        if player is not self._player:
            return
        if status == STATUS_READY:
            self._on_player_ready()
        elif status == STATUS_FAILED:
            self._handle_playback_failure(player.error or "player reported failure")

    def _on_player_ready(self) -> None:
        self._synchronize_playback()
        self._stall_started_at = None
        self._retry_count = 0
        self._is_setting_up = False
        self._set_state(PlaybackState.READY)
        self.player_ready.emit()

    def _on_player_stalled(self, player) -> None:
        if player is not self._player:
            return
        if self._stall_started_at is None:
            self._stall_started_at = self._clock()
        if self._state is PlaybackState.READY:
            self._set_state(PlaybackState.STALLED)

    def _on_player_finished(self, player) -> None:
        if player is not self._player:
            return
        player.seek(0.0)
        player.play()

    def _on_player_failed(self, player, reason: str) -> None:
        if player is not self._player:
            return
        self._handle_playback_failure(reason or "failed to play to end")

    def _synchronize_playback(self) -> None:
        player = self._player
        if player is None:
            return
        now = self._clock()
        anchor = resolve_anchor(self._settings, now)
        target = sync_target(anchor, now, player.duration)
        if target is None:
            player.play()
            return
        logging.info("Synchronizing playback: anchor=%.3f target=%.3fs", anchor, target)
        player.seek(target, lambda finished, p=player: self._on_sync_seek_done(p, finished))

    def _on_sync_seek_done(self, player, finished: bool) -> None:
        if finished and player is self._player:
            player.play()

    # ── health check / recovery ────────────────────────────────────────────
    def check_stall(self) -> None:
        player = self._player
        if player is None or self._state in (PlaybackState.RETRYING, PlaybackState.EXHAUSTED):
            return

        now = self._clock()
        if self._stall_started_at is not None and now - self._stall_started_at > STALL_TIMEOUT_SEC:
            self._handle_playback_failure(f"stalled for {now - self._stall_started_at:.1f}s")
            return

        error = player.error
        if error:
            self._handle_playback_failure(error)
            return

        if player.rate <= 0:
            if self._stall_started_at is None:
                self._stall_started_at = now
            player.play()
        else:
            self._stall_started_at = None
            if self._state is PlaybackState.STALLED:
                self._set_state(PlaybackState.READY)

    def _handle_playback_failure(self, reason: str = "") -> None:
        if self._retry_timer.isActive():
            return
        if self._retry_count >= MAX_RETRIES:
            self._is_setting_up = False
            if self._state is not PlaybackState.EXHAUSTED:
                logging.error("Playback failed after %d retries, giving up: %s", self._retry_count, reason)
            self._set_state(PlaybackState.EXHAUSTED)
            return

        self._retry_count += 1
        self._stall_started_at = None
        self._set_state(PlaybackState.FAILED)
        if self._current_source:
            self._cache.invalidate(self._current_source)
        clear_stream_start(self._settings)

        delay = retry_delay_seconds(self._retry_count)
        logging.warning(
            "Playback failure (%s); retry %d/%d in %.0fs",
            reason,
            self._retry_count,
            MAX_RETRIES,
            delay,
        )
        self._set_state(PlaybackState.RETRYING)
        self._retry_timer.start(int(delay * 1000))

    def _retry_playback(self) -> None:
        self._release_player()
        self._stall_started_at = None
        if self._current_source:
            self._is_setting_up = True
            self._set_state(PlaybackState.SETTING_UP)
            self._submit_extraction(self._current_source, force_refresh=False, handler=self._on_retry_resolution)
        else:
            self._is_setting_up = False
            self.setup()

    # ── lifecycle ──────────────────────────────────────────────────────────
    def _reset_session(self) -> None:
        self._retry_timer.stop()
        self._generation += 1
        self._release_player()
        self._is_setting_up = False
        self._retry_count = 0
        self._stall_started_at = None
        self._current_source = None
        self._set_state(PlaybackState.IDLE)

    def teardown(self) -> None:
        self._reset_session()
        self._viewer_count = 0
        self._viewers.clear()
        logging.info("Playback session torn down")

    def reconfigure(self) -> None:
        """Start over after the source changed (also the only way out of EXHAUSTED)."""
        clear_stream_start(self._settings)
        self._reset_session()
        if self._viewer_count > 0:
            self.setup()

    def _set_state(self, state: PlaybackState) -> None:
        if state is self._state:
            return
        logging.debug("Playback state: %s -> %s", self._state.value, state.value)
        self._state = state
        self.state_changed.emit(state.value)
