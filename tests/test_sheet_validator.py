from __future__ import annotations

import math

from mixcut.sheet import SheetDocument, SheetTrack, parse_sheet, validate_sheet


def _doc(*tracks: tuple[int, str, float]) -> SheetDocument:
    return SheetDocument(
        tracks=[SheetTrack(track_number=n, title=title, start_ms=start) for n, title, start in tracks]
    )


def test_valid_sheet_is_sorted_by_start():
    result = validate_sheet(_doc((2, "Two", 60_000), (1, "One", 0), (3, "Three", 120_000)))

    assert result.ok
    assert [t.track_number for t in result.tracks] == [1, 2, 3]


def test_validation_is_idempotent():
    first = validate_sheet(_doc((2, "Two", 60_000), (1, "One", 0)))
    second = validate_sheet(SheetDocument(tracks=first.tracks))

    assert second.ok
    assert second.tracks == first.tracks


def test_no_tracks():
    result = validate_sheet(SheetDocument())

    assert not result.ok
    assert result.error == "No tracks found in sheet"


def test_invalid_track_number():
    result = validate_sheet(_doc((0, "Zero", 0)))

    assert result.error == "Invalid track number: 0"


def test_blank_title():
    result = validate_sheet(_doc((1, "One", 0), (2, "   ", 60_000)))

    assert result.error == "Track 2 is missing a TITLE"


def test_non_finite_start():
    result = validate_sheet(_doc((1, "One", math.nan)))

    assert result.error == "Track 1 has invalid start time"


def test_negative_start():
    result = validate_sheet(_doc((1, "One", -5)))

    assert result.error == "Track 1 has invalid start time"


def test_duplicate_track_number():
    result = validate_sheet(_doc((1, "One", 0), (1, "Again", 60_000)))

    assert result.error == "Duplicate track number: 1"


def test_equal_start_times():
    result = validate_sheet(_doc((1, "One", 0), (2, "Two", 0)))

    assert result.error == "Track 2 starts before or at same time as previous track"


def test_swapped_index_names_the_out_of_order_track():
    text = """\
TRACK 01 AUDIO
  TITLE "One"
  INDEX 01 03:00:00
TRACK 02 AUDIO
  TITLE "Two"
  INDEX 01 00:00:00
"""
    result = validate_sheet(parse_sheet(text))

    assert not result.ok
    assert result.error is not None
    assert "Track 1" in result.error
