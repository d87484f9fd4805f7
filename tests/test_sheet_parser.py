from __future__ import annotations

import pytest

from mixcut.sheet import parse_sheet, read_sheet_remarks, validate_sheet
from mixcut.utils import format_ms, frames_to_ms

from .conftest import TWO_TRACK_SHEET


@pytest.mark.parametrize(
    ("timestamp", "expected"),
    [
        ((0, 0, 0), 0),
        ((1, 0, 0), 60_000),
        ((0, 1, 0), 1_000),
        ((0, 0, 75), 1_000),
        ((0, 1, 37), 1_493),
        ((0, 0, 74), 987),
        ((125, 0, 0), 7_500_000),
    ],
)
def test_frames_to_ms(timestamp: tuple[int, int, int], expected: int):
    assert frames_to_ms(*timestamp) == expected


def test_format_ms():
    assert format_ms(0) == "0:00.000"
    assert format_ms(181_493) == "3:01.493"


def test_parse_full_sheet():
    document = parse_sheet(TWO_TRACK_SHEET)

    assert document.title == "Night Mix"
    assert document.performer == "Various Artists"
    assert document.genre == "Electronic"
    assert document.release_year == "2021"
    assert document.file_name == "source.m4a"
    assert [(t.track_number, t.title, t.performer, t.start_ms) for t in document.tracks] == [
        (1, "One", "Artist A", 0),
        (2, "Two", "Artist B", 180_000),
    ]


def test_title_before_first_track_belongs_to_document():
    document = parse_sheet('TITLE "Album"\nTRACK 01 AUDIO\nTITLE "Song"\nINDEX 01 00:00:00\n')

    assert document.title == "Album"
    assert document.tracks[0].title == "Song"


def test_keywords_are_case_insensitive_and_bare_values_accepted():
    text = "track 3 audio\n  title Bare Words\n  performer Someone\n  index 01 02:10:00\n"

    (track,) = parse_sheet(text).tracks

    assert track.track_number == 3
    assert track.title == "Bare Words"
    assert track.performer == "Someone"
    assert track.start_ms == 130_000


def test_track_without_title_is_dropped():
    text = """\
TRACK 01 AUDIO
  TITLE "One"
  INDEX 01 00:00:00
TRACK 02 AUDIO
  INDEX 01 01:00:00
TRACK 03 AUDIO
  TITLE "Three"
  INDEX 01 02:00:00
"""
    tracks = parse_sheet(text).tracks

    assert [t.track_number for t in tracks] == [1, 3]


def test_track_without_start_is_dropped():
    text = 'TRACK 01 AUDIO\n  TITLE "Pregap only"\n  INDEX 00 00:00:00\n'

    assert parse_sheet(text).tracks == []


def test_only_index_01_sets_start():
    text = 'TRACK 01 AUDIO\n  TITLE "One"\n  INDEX 00 00:58:00\n  INDEX 01 01:00:00\n'

    (track,) = parse_sheet(text).tracks

    assert track.start_ms == 60_000


def test_index_outside_track_is_ignored():
    document = parse_sheet("INDEX 01 00:10:00\nTRACK 01 AUDIO\nTITLE \"One\"\n")

    assert document.tracks == []


def test_unrecognized_lines_are_skipped():
    text = """\
CATALOG 1234567890123
garbage line here
TRACK 01 AUDIO
  FLAGS DCP
  ISRC ABCDE1234567
  TITLE "One"
  INDEX 01 00:00:00
"""
    assert [t.title for t in parse_sheet(text).tracks] == ["One"]


def test_empty_text_has_no_tracks():
    document = parse_sheet("")

    assert document.tracks == []
    assert document.title is None


def test_read_sheet_remarks():
    remarks = read_sheet_remarks('REM GENRE "Deep House"\nREM DATE 1999\nTRACK 01 AUDIO\n')

    assert remarks.genre == "Deep House"
    assert remarks.release_year == "1999"


def test_read_sheet_remarks_without_remarks():
    remarks = read_sheet_remarks('REM COMMENT "ripped"\nTITLE "x"\n')

    assert remarks.genre is None
    assert remarks.release_year is None


def test_track_lines_with_non_audio_types_start_new_tracks():
    text = """\
TRACK 01 AUDIO
  TITLE "One"
  INDEX 01 00:00:00
TRACK 02 MODE1/2352
  TITLE "Two"
  INDEX 01 03:00:00
TRACK 03 MODE2/2336
  TITLE "Three"
  INDEX 01 06:00:00
"""
    tracks = parse_sheet(text).tracks

    assert [(t.track_number, t.title, t.start_ms) for t in tracks] == [
        (1, "One", 0),
        (2, "Two", 180_000),
        (3, "Three", 360_000),
    ]


def test_track_line_without_type():
    (track,) = parse_sheet('TRACK 07\n  TITLE "Seven"\n  INDEX 01 00:00:00\n').tracks

    assert track.track_number == 7


def test_empty_title_counts_as_missing():
    text = """\
TRACK 01 AUDIO
  TITLE "One"
  INDEX 01 00:00:00
TRACK 02 AUDIO
  TITLE ""
  PERFORMER ""
  INDEX 01 03:00:00
"""
    document = parse_sheet(text)

    assert [t.track_number for t in document.tracks] == [1]

    result = validate_sheet(document)
    assert result.ok
    assert [t.title for t in result.tracks] == ["One"]


def test_first_remark_wins():
    text = 'REM GENRE "House"\nREM GENRE "Techno"\nREM DATE 1999\nREM DATE 2005\n'

    remarks = read_sheet_remarks(text)
    document = parse_sheet(text)

    assert (remarks.genre, remarks.release_year) == ("House", "1999")
    assert (document.genre, document.release_year) == ("House", "1999")
