import math

import pytest

from live_screensaver.settings import load_stream_start, save_stream_start
from live_screensaver.sync import resolve_anchor, sync_target


def test_position_wraps_around_duration():
    assert sync_target(1000.0, 1250.0, 100.0) == pytest.approx(50.0)


def test_same_inputs_give_same_target_on_every_viewer():
    targets = [sync_target(500.0, 1234.5, 60.0) for _ in range(3)]
    assert targets == [pytest.approx(34.5)] * 3


def test_at_anchor_starts_from_zero():
    assert sync_target(42.0, 42.0, 10.0) == 0.0


@pytest.mark.parametrize("duration", [None, 0, -5, math.nan, math.inf, "bogus"])
def test_unusable_duration_gives_no_target(duration):
    assert sync_target(0.0, 100.0, duration) is None


def test_resolve_anchor_persists_first_value(settings):
    assert load_stream_start(settings) is None
    assert resolve_anchor(settings, 1000.0) == 1000.0
    assert load_stream_start(settings) == 1000.0
    assert resolve_anchor(settings, 2000.0) == 1000.0


def test_resolve_anchor_uses_stored_value(settings):
    save_stream_start(123.5, settings)
    assert resolve_anchor(settings, 999.0) == 123.5


@pytest.mark.parametrize("laps", [1, 3, 250])
def test_congruent_times_share_a_target(laps):
    anchor, duration = 500.0, 60.0
    first = sync_target(anchor, 1234.5, duration)
    later = sync_target(anchor, 1234.5 + laps * duration, duration)
    assert later == pytest.approx(first)
