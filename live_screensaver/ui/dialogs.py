import logging

from PySide6.QtCore import QEvent, QTimer
from PySide6.QtWidgets import QDialog, QHBoxLayout, QLabel, QLineEdit, QPushButton, QVBoxLayout

from .styles import DIALOG_STYLE
from ..i18n import tr
from ..settings import DEFAULT_URL, load_source_url, save_source_url
from ..validation import ValidationResult, ValidationWorker, check_url_format

# Workers outlive a closed dialog until their thread returns.
_RUNNING_WORKERS = set()


class ConfigureDialog(QDialog):
    DEBOUNCE_MS = 200

    def __init__(self, settings=None, coordinator=None, candidates=None, parent=None):
        super().__init__(parent)
        self.settings = settings
        self.coordinator = coordinator
        self.candidates = candidates
        self.setWindowTitle(tr("Live Screensaver Options"))
        self.setMinimumWidth(480)
        self.setStyleSheet(DIALOG_STYLE)

        self._state = "idle"
        self._validation_token = 0
        self._worker: ValidationWorker | None = None
        self._last_valid_url: str | None = None

        layout = QVBoxLayout(self)
        layout.setSpacing(15)
        layout.setContentsMargins(24, 24, 24, 24)

        layout.addWidget(QLabel(tr("Stream URL:")))
        self.url_edit = QLineEdit()
        self.url_edit.setPlaceholderText(DEFAULT_URL)
        layout.addWidget(self.url_edit)

        self.status_label = QLabel(tr("Enter an HLS (.m3u8), stream.place or video page URL."))
        self.status_label.setObjectName("StatusLabel")
        self.status_label.setWordWrap(True)
        layout.addWidget(self.status_label)

        btn_layout = QHBoxLayout()
        btn_layout.addStretch()
        cancel_btn = QPushButton(tr("Cancel"))
        cancel_btn.setAutoDefault(False)
        cancel_btn.clicked.connect(self.reject)
        btn_layout.addWidget(cancel_btn)

        self.ok_btn = QPushButton(tr("OK"))
        self.ok_btn.setObjectName("PrimaryButton")
        self.ok_btn.setAutoDefault(True)
        self.ok_btn.setDefault(True)
        self.ok_btn.clicked.connect(self.accept)
        btn_layout.addWidget(self.ok_btn)
        layout.addLayout(btn_layout)

        self._debounce_timer = QTimer(self)
        self._debounce_timer.setSingleShot(True)
        self._debounce_timer.setInterval(self.DEBOUNCE_MS)
        self._debounce_timer.timeout.connect(self.validate_now)
        self.ok_btn.installEventFilter(self)

        stored = load_source_url(self.settings)
        self.url_edit.setText("" if stored == DEFAULT_URL else stored)
        self.url_edit.textChanged.connect(self._schedule_validation)
        self.validate_now()

    @property
    def state(self) -> str:
        return self._state

    def url_text(self) -> str:
        return self.url_edit.text().strip()

    def _schedule_validation(self, _text=None):
        self._cancel_validation()
        self.ok_btn.setEnabled(False)
        self._debounce_timer.start()

    def validate_now(self):
        self._debounce_timer.stop()
        url = self.url_text()

        if not url:
            self._apply_result(ValidationResult.ok(), tr("Leave empty to use the default demo stream."))
            return
        if url == self._last_valid_url:
            self._set_state("valid", tr("URL looks good."))
            return

        offline = check_url_format(url)
        if offline is not None:
            self._apply_result(offline)
            return

        self._cancel_validation()
        self._validation_token += 1
        worker = ValidationWorker(url, self._validation_token, candidates=self.candidates)
        worker.signals.finished.connect(self._on_validation_finished)
        worker.finished.connect(lambda w=worker: _RUNNING_WORKERS.discard(w))
        _RUNNING_WORKERS.add(worker)
        self._worker = worker
        self._set_state("validating", tr("Checking URL..."))
        worker.start()

    def eventFilter(self, obj, event):
        # Reaching for OK skips the rest of the debounce.
        if obj is self.ok_btn and event.type() == QEvent.Enter and self._debounce_timer.isActive():
            self.validate_now()
        return super().eventFilter(obj, event)

    def _cancel_validation(self):
        worker, self._worker = self._worker, None
        # Late results carry an old token and are dropped.
        self._validation_token += 1
        if worker is not None and worker.isRunning():
            worker.cancel()

    def _on_validation_finished(self, token: int, result):
        if token != self._validation_token:
            return
        self._worker = None
        if result.valid:
            self._last_valid_url = self.url_text()
        self._apply_result(result)

    def _apply_result(self, result: ValidationResult, valid_message: str | None = None):
        if result.valid:
            self._set_state("valid", valid_message or tr("URL looks good."))
        else:
            self._set_state("invalid", result.message)

    def _set_state(self, state: str, message: str):
        self._state = state
        self.ok_btn.setEnabled(state == "valid")
        self.status_label.setText(message)
        self.status_label.setProperty("state", state)
        self.status_label.style().unpolish(self.status_label)
        self.status_label.style().polish(self.status_label)

    def accept(self):
        if self._state != "valid":
            return
        url = self.url_text()
        save_source_url(url, self.settings)
        logging.info("Stream source saved: %s", url or DEFAULT_URL)
        if self.coordinator is not None:
            self.coordinator.reconfigure()
        super().accept()

    def done(self, result):
        self._debounce_timer.stop()
        self._cancel_validation()
        super().done(result)
