import time

from PySide6.QtCore import QObject, QPoint, QRect, QTimer, Qt, Signal
from PySide6.QtGui import QImage, QPainter
from PySide6.QtWidgets import QLabel, QWidget

from ..i18n import tr
from .styles import VIEWER_STYLE


class FrameMirror(QObject):
    """Copies frames of the shared player for displays mpv does not draw into.

    Polls only while at least one mirrored display is attached.
    """

    MIRROR_INTERVAL_MS = 66

    frame_ready = Signal(QImage)

    def __init__(self, coordinator, parent=None):
        super().__init__(parent)
        self.coordinator = coordinator
        self._subscribers = 0
        self._timer = QTimer(self)
        self._timer.setInterval(self.MIRROR_INTERVAL_MS)
        self._timer.timeout.connect(self.capture)

    @property
    def is_active(self) -> bool:
        return self._timer.isActive()

    def subscribe(self) -> None:
        self._subscribers += 1
        if not self._timer.isActive():
            self._timer.start()

    def unsubscribe(self) -> None:
        self._subscribers = max(0, self._subscribers - 1)
        if self._subscribers == 0:
            self._timer.stop()

    def capture(self) -> None:
        player = self.coordinator.player
        if player is None or not self.coordinator.is_ready:
            return
        image = player.grab_frame()
        if image is not None and not image.isNull():
            self.frame_ready.emit(image)


class MirrorSurface(QWidget):
    """Paints the latest mirrored frame letterboxed on black."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self._frame: QImage | None = None

    @property
    def frame(self) -> QImage | None:
        return self._frame

    def set_frame(self, image: QImage) -> None:
        self._frame = image
        self.update()

    def clear(self) -> None:
        self._frame = None
        self.update()

    def frame_rect(self) -> QRect:
        if self._frame is None:
            return QRect()
        size = self._frame.size().scaled(self.size(), Qt.KeepAspectRatio)
        return QRect(
            (self.width() - size.width()) // 2,
            (self.height() - size.height()) // 2,
            size.width(),
            size.height(),
        )

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.fillRect(self.rect(), Qt.black)
        if self._frame is not None:
            painter.setRenderHint(QPainter.SmoothPixmapTransform, True)
            painter.drawImage(self.frame_rect(), self._frame)
        painter.end()


class ScreensaverView(QWidget):
    """One display of the screensaver, bound to the shared coordinator.

    Registers when shown, unregisters when closed, and forwards a frame tick
    to the coordinator about 30 times a second while registered. Without a
    mirror the view hosts mpv's native output; with one it paints the frames
    the mirror copies from the shared player.
    """

    FRAME_INTERVAL_MS = 33
    INPUT_GRACE_SEC = 2.0
    MOUSE_SLOP_PX = 8

    exit_requested = Signal()

    def __init__(self, coordinator, quit_on_input: bool = True, mirror: FrameMirror | None = None, parent=None):
        super().__init__(parent)
        self.coordinator = coordinator
        self.quit_on_input = quit_on_input
        self.mirror = mirror
        self.setObjectName("ScreensaverView")
        self.setAttribute(Qt.WA_StyledBackground, True)
        self.setStyleSheet(VIEWER_STYLE)
        self.setMouseTracking(True)
        self.setCursor(Qt.BlankCursor)

        if mirror is None:
            self.video_container = QWidget(self)
            self.video_container.setAttribute(Qt.WA_NativeWindow)
            self.video_container.setStyleSheet("background-color: black;")
        else:
            self.video_container = MirrorSurface(self)
        self.video_container.setMouseTracking(True)

        self.loading_label = QLabel(tr("Loading stream..."), self)
        self.loading_label.setObjectName("LoadingLabel")
        self.loading_label.setAlignment(Qt.AlignCenter)
        self.loading_label.setAttribute(Qt.WA_TransparentForMouseEvents, True)

        self._registered = False
        self._attached = False
        self._shown_at: float | None = None
        self._mouse_origin: QPoint | None = None

        self._frame_timer = QTimer(self)
        self._frame_timer.setInterval(self.FRAME_INTERVAL_MS)
        self._frame_timer.timeout.connect(self.on_frame_tick)

        coordinator.player_ready.connect(self.on_ready_notification)
        coordinator.state_changed.connect(self._on_coordinator_state)

    @property
    def is_registered(self) -> bool:
        return self._registered

    @property
    def is_attached(self) -> bool:
        return self._attached

    @property
    def is_mirrored(self) -> bool:
        return self.mirror is not None

    def video_wid(self) -> int:
        return int(self.video_container.winId())

    # ── coordinator protocol ───────────────────────────────────────────────
    def register(self) -> None:
        if self._registered:
            return
        self._registered = True
        self._frame_timer.start()
        self.coordinator.register_viewer(self)
        # Another display may already have brought the player up.
        if self.coordinator.is_ready:
            self.on_ready_notification()

    def unregister(self) -> None:
        if not self._registered:
            return
        self._registered = False
        self._detach()
        self._frame_timer.stop()
        self.coordinator.unregister_viewer(self)

    def on_frame_tick(self) -> None:
        if self._registered:
            self.coordinator.on_frame_tick()

    def on_ready_notification(self) -> None:
        if not self._registered or self.coordinator.player is None or self._attached:
            return
        if self.mirror is not None:
            self.mirror.frame_ready.connect(self.video_container.set_frame)
            self.mirror.subscribe()
        self._attached = True
        self.loading_label.hide()

    def _detach(self) -> None:
        if not self._attached:
            return
        self._attached = False
        if self.mirror is not None:
            self.mirror.frame_ready.disconnect(self.video_container.set_frame)
            self.mirror.unsubscribe()
            self.video_container.clear()

    def _on_coordinator_state(self, state: str) -> None:
        if state in ("setting_up", "retrying"):
            self._detach()
            self.loading_label.setText(tr("Loading stream..."))
            self.loading_label.show()
        elif state in ("exhausted", "idle") and self._registered:
            self._detach()
            self.loading_label.setText(tr("Stream unavailable"))
            self.loading_label.show()

    # ── Qt events ──────────────────────────────────────────────────────────
    def showEvent(self, event):
        super().showEvent(event)
        if self._shown_at is None:
            self._shown_at = time.monotonic()
        self.register()

    def closeEvent(self, event):
        self.unregister()
        super().closeEvent(event)

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self.video_container.setGeometry(0, 0, self.width(), self.height())
        self.loading_label.setGeometry(0, 0, self.width(), self.height())
        self.loading_label.raise_()

    def keyPressEvent(self, event):
        self._on_user_input()
        super().keyPressEvent(event)

    def mousePressEvent(self, event):
        self._on_user_input()
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event):
        pos = event.position().toPoint()
        if self._mouse_origin is None:
            self._mouse_origin = pos
        elif (pos - self._mouse_origin).manhattanLength() > self.MOUSE_SLOP_PX:
            self._on_user_input()
        super().mouseMoveEvent(event)

    def _on_user_input(self) -> None:
        if not self.quit_on_input or self._shown_at is None:
            return
        if time.monotonic() - self._shown_at < self.INPUT_GRACE_SEC:
            return
        self.exit_requested.emit()
