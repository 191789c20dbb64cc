import logging

from PySide6.QtCore import QObject, Qt, Signal
from PySide6.QtGui import QImage

from .mpv_power_config import ensure_mpv_config_layout

STATUS_READY = "ready"
STATUS_FAILED = "failed"


class Player(QObject):
    """What the coordinator needs from a media backend.

    Status and event signals must be emitted on the GUI thread.
    """

    status_changed = Signal(str)
    stalled = Signal()
    finished = Signal()
    failed_to_complete = Signal(str)

    def load(self, url: str) -> None:
        raise NotImplementedError

    def play(self) -> None:
        raise NotImplementedError

    def pause(self) -> None:
        raise NotImplementedError

    def seek(self, position: float, completion=None) -> None:
        raise NotImplementedError

    @property
    def rate(self) -> float:
        raise NotImplementedError

    @property
    def error(self) -> str | None:
        raise NotImplementedError

    @property
    def duration(self) -> float | None:
        raise NotImplementedError

    def release(self) -> None:
        raise NotImplementedError

    def grab_frame(self) -> QImage | None:
        """Copy of the frame on screen, for displays the backend does not draw into."""
        return None


class MpvPlayer(Player):
    _mpv_property_signal = Signal(str, object)
    _mpv_event_signal = Signal(str)

    _OBSERVED = ("playback-time", "idle-active", "paused-for-cache", "eof-reached")

    def __init__(self, wid: int | None = None, parent=None):
        super().__init__(parent)
        import mpv

        paths = ensure_mpv_config_layout()
        options = dict(
            vo=paths["renderer"],
            hwdec=paths["hwdec"],
            mute="yes",
            keep_open="yes",
            cache="yes",
            ytdl=False,
            osc=False,
            input_default_bindings=False,
            config=True,
            config_dir=paths["config_dir"],
        )
        if wid is not None:
            options["wid"] = str(int(wid))
        self._mpv = mpv.MPV(**options)
        self._url = ""
        self._loading = False
        self._seen_active = False
        self._ready = False
        self._error: str | None = None
        self._pending_seek = None
        self._released = False

        self._mpv_property_signal.connect(self._process_property_on_main_thread, Qt.QueuedConnection)
        self._mpv_event_signal.connect(self._process_event_on_main_thread, Qt.QueuedConnection)
        for name in self._OBSERVED:
            self._mpv.observe_property(name, self._on_mpv_property)
        self._mpv.event_callback("playback-restart")(self._on_mpv_event)

    # Called on the mpv event thread: hand everything to the GUI thread.
    def _on_mpv_property(self, name, value):
        try:
            self._mpv_property_signal.emit(str(name), value)
        except RuntimeError as e:
            logging.debug("mpv property dropped after release: %s %s", name, e)

    def _on_mpv_event(self, _event):
        try:
            self._mpv_event_signal.emit("playback-restart")
        except RuntimeError as e:
            logging.debug("mpv event dropped after release: %s", e)

    def _process_property_on_main_thread(self, name: str, value):
        if self._released:
            return
        if name == "idle-active":
            if not value:
                self._seen_active = True
                return
            if not self._seen_active:
                return
            if self._loading and not self._ready:
                self._loading = False
                self._error = f"could not open {self._url}"
                logging.warning("mpv failed to open stream: %s", self._url)
                self.status_changed.emit(STATUS_FAILED)
            elif self._ready:
                self._error = "playback stopped unexpectedly"
                logging.warning("mpv went idle during playback: %s", self._url)
                self.failed_to_complete.emit(self._error)
        elif name == "playback-time":
            if value is not None and self._loading and not self._ready:
                self._loading = False
                self._ready = True
                self.status_changed.emit(STATUS_READY)
        elif name == "paused-for-cache":
            if value:
                self.stalled.emit()
        elif name == "eof-reached":
            if value and self._ready:
                self.finished.emit()

    def _process_event_on_main_thread(self, name: str):
        if name == "playback-restart" and self._pending_seek is not None:
            completion, self._pending_seek = self._pending_seek, None
            completion(True)

    def load(self, url: str) -> None:
        self._url = str(url)
        self._loading = True
        self._seen_active = False
        self._ready = False
        self._error = None
        self._pending_seek = None
        logging.info("mpv loadfile: %s", self._url)
        self._mpv.command("loadfile", self._url, "replace")

    def play(self) -> None:
        try:
            self._mpv.pause = False
        except Exception as e:
            logging.debug("mpv play skipped: %s", e)

    def pause(self) -> None:
        try:
            self._mpv.pause = True
        except Exception as e:
            logging.debug("mpv pause skipped: %s", e)

    def seek(self, position: float, completion=None) -> None:
        try:
            self._mpv.command("seek", float(position), "absolute", "keyframes")
        except Exception as e:
            logging.warning("mpv seek failed: target=%.2f err=%s", position, e)
            if completion is not None:
                completion(False)
            return
        self._pending_seek = completion

    @property
    def rate(self) -> float:
        try:
            if self._mpv.pause or self._mpv.core_idle:
                return 0.0
            return float(self._mpv.speed or 0.0)
        except Exception:
            return 0.0

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def duration(self) -> float | None:
        try:
            value = self._mpv.duration
        except Exception:
            return None
        return float(value) if value is not None else None

    def grab_frame(self) -> QImage | None:
        if self._released or not self._ready:
            return None
        try:
            shot = self._mpv.node_command("screenshot-raw", "video")
        except Exception as e:
            logging.debug("mpv frame grab skipped: %s", e)
            return None
        # bgr0 rows are exactly QImage's RGB32 layout.
        if not shot or shot.get("format") != "bgr0":
            return None
        image = QImage(shot["data"], int(shot["w"]), int(shot["h"]), int(shot["stride"]), QImage.Format_RGB32)
        # Detach from mpv's buffer.
        return image.copy()

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._pending_seek = None
        try:
            self._mpv.terminate()
        except Exception as e:
            logging.debug("mpv terminate skipped: %s", e)
