"""Shared utility functions."""

from __future__ import annotations

FRAMES_PER_SECOND = 75


def frames_to_ms(minutes: int, seconds: int, frames: int) -> int:
    """Convert a sheet ``mm:ss:ff`` timestamp to milliseconds.

    Args:
        minutes: Minutes component (may exceed 59)
        seconds: Seconds component
        frames: Frames component, 75 per second

    Returns:
        Offset in whole milliseconds
    """
    return (minutes * 60 + seconds) * 1000 + round(frames * 1000 / FRAMES_PER_SECOND)


def format_ms(ms: int) -> str:
    """Format milliseconds as ``m:ss.mmm`` for display."""
    minutes, remainder = divmod(ms, 60_000)
    seconds, millis = divmod(remainder, 1000)
    return f"{minutes}:{seconds:02d}.{millis:03d}"
