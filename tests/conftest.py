import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PySide6.QtCore import QSettings
from PySide6.QtWidgets import QApplication

from live_screensaver.cache import ResolutionCache
from live_screensaver.player import STATUS_FAILED, STATUS_READY, Player


@pytest.fixture(scope="session")
def qapp():
    app = QApplication.instance() or QApplication([])
    yield app


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    home = tmp_path / "home"
    monkeypatch.setenv("LIVE_SCREENSAVER_HOME", str(home))
    return home


@pytest.fixture
def settings(qapp, tmp_path):
    return QSettings(str(tmp_path / "settings.ini"), QSettings.IniFormat)


@pytest.fixture
def cache_dir(tmp_path):
    directory = tmp_path / "cache"
    directory.mkdir()
    return directory


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = float(now)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += float(seconds)


@pytest.fixture
def clock():
    return FakeClock()


class FakePlayer(Player):
    def __init__(self, duration=None):
        super().__init__()
        self.loaded = []
        self.play_calls = 0
        self.pause_calls = 0
        self.seeks = []
        self.released = False
        self._rate = 0.0
        self._error = None
        self._duration = duration
        self.frame = None

    def load(self, url):
        self.loaded.append(url)

    def play(self):
        self.play_calls += 1

    def pause(self):
        self.pause_calls += 1

    def seek(self, position, completion=None):
        self.seeks.append(position)
        if completion is not None:
            completion(True)

    @property
    def rate(self):
        return self._rate

    @property
    def error(self):
        return self._error

    @property
    def duration(self):
        return self._duration

    def release(self):
        self.released = True

    def grab_frame(self):
        return self.frame

    # Test drivers
    def become_ready(self, rate=1.0):
        self._rate = rate
        self.status_changed.emit(STATUS_READY)

    def fail(self, error="could not open"):
        self._error = error
        self.status_changed.emit(STATUS_FAILED)

    def stall(self):
        self._rate = 0.0
        self.stalled.emit()

    def resume(self):
        self._rate = 1.0


class PlayerFactory:
    def __init__(self, duration=None):
        self.duration = duration
        self.players = []

    def __call__(self):
        player = FakePlayer(duration=self.duration)
        self.players.append(player)
        return player

    @property
    def last(self):
        return self.players[-1]


class FakeExtractor:
    """Stands in for ExtractorInvoker: scripted results, recorded calls."""

    def __init__(self, cache, results=None):
        self.cache = cache
        self.results = list(results or [])
        self.calls = []

    def extract(self, source_url, force_refresh=False):
        self.calls.append((source_url, force_refresh))
        if self.results:
            return self.results.pop(0)
        return None


class InlinePool:
    """Runs tasks on start(); their queued results arrive on processEvents()."""

    def __init__(self, deferred=False):
        self.deferred = deferred
        self.tasks = []

    def start(self, task):
        self.tasks.append(task)
        if not self.deferred:
            task.run()

    def run_pending(self):
        for task in self.tasks:
            task.run()


@pytest.fixture
def resolution_cache(cache_dir, clock):
    return ResolutionCache(directory=cache_dir, clock=clock)
