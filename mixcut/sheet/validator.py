"""Structural validation of parsed sheets."""

from __future__ import annotations

import math

from .models import SheetDocument, SheetTrack, ValidationResult

NO_TRACKS_ERROR = "No tracks found in sheet"


def _check_track(track: SheetTrack, seen_numbers: set[int]) -> str | None:
    number = track.track_number
    if not isinstance(number, int) or number <= 0:
        return f"Invalid track number: {number}"
    if not track.title or not track.title.strip():
        return f"Track {number} is missing a TITLE"
    if not math.isfinite(track.start_ms) or track.start_ms < 0:
        return f"Track {number} has invalid start time"
    if number in seen_numbers:
        return f"Duplicate track number: {number}"
    return None


def _check_order(previous: SheetTrack, track: SheetTrack) -> str | None:
    if track.start_ms <= previous.start_ms:
        return f"Track {track.track_number} starts before or at same time as previous track"
    # Outputs are matched to rows by track number, so numbering must follow start order.
    if track.track_number < previous.track_number:
        return (
            f"Track {track.track_number} starts after track {previous.track_number}; "
            + "start times must increase with track number"
        )
    return None


def validate_sheet(document: SheetDocument) -> ValidationResult:
    """Validate a parsed sheet and normalize its track order.

    Args:
        document: Output of ``parse_sheet``

    Returns:
        ValidationResult holding the tracks sorted by start offset, or the
        first violated rule as a human-readable diagnostic
    """
    if not document.tracks:
        return ValidationResult.failure(NO_TRACKS_ERROR)

    ordered = sorted(document.tracks, key=lambda t: t.start_ms)

    seen_numbers: set[int] = set()
    for track in ordered:
        if (error := _check_track(track, seen_numbers)) is not None:
            return ValidationResult.failure(error)
        seen_numbers.add(track.track_number)

    for previous, track in zip(ordered, ordered[1:]):
        if (error := _check_order(previous, track)) is not None:
            return ValidationResult.failure(error)

    return ValidationResult.success(ordered)
