"""
Wall-clock playback synchronization.

Every viewer derives its position from the same persisted anchor:

    position = (now - anchor) mod duration

so two displays, or one screensaver restarted halfway through, land on the
same frame without any server-side timing.
"""

import math

from .settings import load_stream_start, save_stream_start


def sync_target(anchor: float, now: float, duration) -> float | None:
    """Seek target in seconds, or None when the stream has no usable length."""
    if duration is None:
        return None
    try:
        length = float(duration)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(length) or length <= 0:
        return None
    return (now - anchor) % length


def resolve_anchor(settings, now: float) -> float:
    """Stored anchor, or *now* (persisted) when none has been set yet."""
    anchor = load_stream_start(settings)
    if anchor is None:
        anchor = float(now)
        save_stream_start(anchor, settings)
    return anchor
