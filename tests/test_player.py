import sys
import types

import pytest

from live_screensaver.player import STATUS_FAILED, STATUS_READY, MpvPlayer, Player


class FakeMPV:
    instances = []

    def __init__(self, **options):
        self.options = options
        self.commands = []
        self.observers = {}
        self.event_handlers = {}
        self.pause = False
        self.core_idle = False
        self.speed = 1.0
        self.duration = None
        self.terminated = False
        self.node_commands = []
        self.screenshot = None
        FakeMPV.instances.append(self)

    def observe_property(self, name, callback):
        self.observers[name] = callback

    def event_callback(self, *names):
        def _register(fn):
            for name in names:
                self.event_handlers[name] = fn
            return fn

        return _register

    def command(self, *args):
        self.commands.append(args)

    def node_command(self, *args):
        self.node_commands.append(args)
        return self.screenshot

    def terminate(self):
        self.terminated = True


@pytest.fixture
def mpv_player(qapp, monkeypatch):
    FakeMPV.instances.clear()
    monkeypatch.setitem(sys.modules, "mpv", types.SimpleNamespace(MPV=FakeMPV))
    player = MpvPlayer(wid=42)
    events = []
    player.status_changed.connect(lambda status: events.append(("status", status)))
    player.stalled.connect(lambda: events.append(("stalled",)))
    player.finished.connect(lambda: events.append(("finished",)))
    player.failed_to_complete.connect(lambda reason: events.append(("failed_to_complete", reason)))
    return player, FakeMPV.instances[-1], events


def _property(qapp, mpv, name, value):
    mpv.observers[name](name, value)
    qapp.processEvents()


def test_base_player_is_abstract(qapp):
    with pytest.raises(NotImplementedError):
        Player().load("https://example.com/a.m3u8")


def test_options(mpv_player, isolated_home):
    _player, mpv, _events = mpv_player
    assert mpv.options["wid"] == "42"
    assert mpv.options["mute"] == "yes"
    assert mpv.options["keep_open"] == "yes"
    assert mpv.options["ytdl"] is False
    assert mpv.options["config_dir"] == str(isolated_home / "mpv")
    assert set(mpv.observers) == {"playback-time", "idle-active", "paused-for-cache", "eof-reached"}


def test_load_then_first_frame_reports_ready(qapp, mpv_player):
    player, mpv, events = mpv_player
    player.load("https://cdn.example.com/a.m3u8")

    assert mpv.commands == [("loadfile", "https://cdn.example.com/a.m3u8", "replace")]
    _property(qapp, mpv, "idle-active", False)
    _property(qapp, mpv, "playback-time", 0.2)
    _property(qapp, mpv, "playback-time", 0.4)

    assert events == [("status", STATUS_READY)]
    assert player.error is None


def test_going_idle_while_loading_reports_failure(qapp, mpv_player):
    player, mpv, events = mpv_player
    player.load("https://cdn.example.com/missing.m3u8")

    _property(qapp, mpv, "idle-active", True)
    assert events == []

    _property(qapp, mpv, "idle-active", False)
    _property(qapp, mpv, "idle-active", True)

    assert events == [("status", STATUS_FAILED)]
    assert "missing.m3u8" in player.error


def test_playback_notifications(qapp, mpv_player):
    player, mpv, events = mpv_player
    player.load("https://cdn.example.com/a.m3u8")
    _property(qapp, mpv, "idle-active", False)
    _property(qapp, mpv, "playback-time", 1.0)
    events.clear()

    _property(qapp, mpv, "paused-for-cache", True)
    _property(qapp, mpv, "paused-for-cache", False)
    _property(qapp, mpv, "eof-reached", True)
    _property(qapp, mpv, "idle-active", True)

    assert events == [("stalled",), ("finished",), ("failed_to_complete", "playback stopped unexpectedly")]


def test_seek_completes_on_playback_restart(qapp, mpv_player):
    player, mpv, _events = mpv_player
    done = []

    player.seek(12.5, done.append)
    assert mpv.commands[-1] == ("seek", 12.5, "absolute", "keyframes")
    assert done == []

    mpv.event_handlers["playback-restart"](None)
    qapp.processEvents()
    assert done == [True]


def test_seek_failure_completes_false(mpv_player):
    player, mpv, _events = mpv_player

    def broken(*args):
        raise RuntimeError("no file")

    mpv.command = broken
    done = []
    player.seek(3.0, done.append)
    assert done == [False]


def test_rate_and_duration(mpv_player):
    player, mpv, _events = mpv_player
    assert player.rate == 1.0
    mpv.pause = True
    assert player.rate == 0.0
    mpv.pause = False
    mpv.core_idle = True
    assert player.rate == 0.0

    assert player.duration is None
    mpv.duration = 30
    assert player.duration == 30.0


def test_play_pause_release(mpv_player):
    player, mpv, _events = mpv_player
    player.pause()
    assert mpv.pause is True
    player.play()
    assert mpv.pause is False

    player.release()
    player.release()
    assert mpv.terminated


def test_grab_frame_needs_a_playing_stream(mpv_player):
    player, _mpv, _events = mpv_player
    assert player.grab_frame() is None


def test_grab_frame_copies_the_video_frame(qapp, mpv_player):
    player, mpv, _events = mpv_player
    player.load("https://cdn.example.com/a.m3u8")
    _property(qapp, mpv, "idle-active", False)
    _property(qapp, mpv, "playback-time", 0.5)
    # One red pixel and one blue pixel, bgr0 order.
    mpv.screenshot = {"w": 2, "h": 1, "stride": 8, "format": "bgr0", "data": bytes([0, 0, 255, 0, 255, 0, 0, 0])}

    image = player.grab_frame()

    assert mpv.node_commands == [("screenshot-raw", "video")]
    assert (image.width(), image.height()) == (2, 1)
    assert image.pixelColor(0, 0).getRgb()[:3] == (255, 0, 0)
    assert image.pixelColor(1, 0).getRgb()[:3] == (0, 0, 255)


def test_grab_frame_ignores_unknown_pixel_format(qapp, mpv_player):
    player, mpv, _events = mpv_player
    player.load("https://cdn.example.com/a.m3u8")
    _property(qapp, mpv, "idle-active", False)
    _property(qapp, mpv, "playback-time", 0.5)
    mpv.screenshot = {"w": 1, "h": 1, "stride": 4, "format": "rgba", "data": bytes(4)}

    assert player.grab_frame() is None
