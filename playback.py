"""Playback clock.

A room never ticks. Its current position is derived on demand from the last
authoritative sample (`last_known_time` captured at `last_update_at`) plus the
wall-clock time elapsed since, when the room is playing.
"""
import math


def effective_time(room, now: float) -> float:
    """Current playback offset of `room` in seconds, never negative."""
    if room.is_playing:
        return max(0.0, room.last_known_time + (now - room.last_update_at))
    return max(0.0, room.last_known_time)


def is_valid_time(value) -> bool:
    # bool is an int subclass but never a playback offset
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # ints too large for a float, e.g. a 400-digit JSON number
        return False


def resolve_time(requested, room, now: float) -> float:
    """Offset an admin action should apply.

    A finite number is clamped to >= 0; anything else falls back to where the
    room is right now.
    """
    if is_valid_time(requested):
        return max(0.0, float(requested))
    return effective_time(room, now)


def to_millis(seconds: float) -> int:
    return int(round(seconds * 1000))
