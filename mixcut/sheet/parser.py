"""Best-effort cue sheet parser.

The parser never fails: lines it does not recognize are skipped, and a
track is only emitted once it has a number, a title and a start offset.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from enum import Enum

from ..utils import frames_to_ms
from .models import SheetDocument, SheetRemarks, SheetTrack

FILE_RE = re.compile(r'^FILE\s+(?:"(.+?)"|(\S+))\s+(\S+)$', re.IGNORECASE)
TRACK_RE = re.compile(r"^TRACK\s+(\d+)(?:\s+(\S+))?", re.IGNORECASE)
TITLE_RE = re.compile(r'^TITLE\s+(?:"(.*)"|(.+))$', re.IGNORECASE)
PERFORMER_RE = re.compile(r'^PERFORMER\s+(?:"(.*)"|(.+))$', re.IGNORECASE)
INDEX_RE = re.compile(r"^INDEX\s+(\d+)\s+(\d+):(\d{1,2}):(\d{1,2})$", re.IGNORECASE)
GENRE_REMARK_RE = re.compile(r'^REM\s+GENRE\s+(?:"(.*?)"|(.+))$', re.IGNORECASE)
DATE_REMARK_RE = re.compile(r'^REM\s+DATE\s+(?:"(.*?)"|(.+))$', re.IGNORECASE)

START_INDEX = 1


class _Scope(Enum):
    """Which slot TITLE and PERFORMER lines are routed to."""

    DOCUMENT = "document"
    TRACK = "track"


@dataclass(frozen=True)
class _TrackBuilder:
    number: int
    title: str | None = None
    performer: str | None = None
    start_ms: int | None = None

    def build(self) -> SheetTrack | None:
        if self.title is None or self.start_ms is None:
            return None
        return SheetTrack(
            track_number=self.number,
            title=self.title,
            performer=self.performer,
            start_ms=self.start_ms,
        )


def _quoted_or_bare(match: re.Match[str]) -> str:
    quoted, bare = match.group(1), match.group(2)
    return (quoted if quoted is not None else bare).strip()


def _remark(line: str, pattern: re.Pattern[str]) -> str | None:
    match = pattern.match(line)
    if match is None:
        return None
    return _quoted_or_bare(match) or None


def _lines(text: str) -> list[str]:
    return [stripped for line in text.splitlines() if (stripped := line.strip())]


def parse_sheet(text: str) -> SheetDocument:
    """Parse raw sheet text into a document.

    Args:
        text: Sheet contents

    Returns:
        SheetDocument with tracks in encounter order (not sorted)
    """
    document: dict[str, str | None] = {
        "title": None,
        "performer": None,
        "genre": None,
        "release_year": None,
        "file_name": None,
    }
    tracks: list[SheetTrack] = []
    scope = _Scope.DOCUMENT
    current: _TrackBuilder | None = None

    def flush(builder: _TrackBuilder | None) -> None:
        if builder is not None and (track := builder.build()) is not None:
            tracks.append(track)

    for line in _lines(text):
        if match := FILE_RE.match(line):
            document["file_name"] = match.group(1) or match.group(2)
        elif match := TRACK_RE.match(line):
            flush(current)
            current = _TrackBuilder(number=int(match.group(1)))
            scope = _Scope.TRACK
        elif match := TITLE_RE.match(line):
            # An empty title counts as no title
            if not (value := _quoted_or_bare(match)):
                continue
            if scope is _Scope.TRACK and current is not None:
                current = replace(current, title=value)
            else:
                document["title"] = value
        elif match := PERFORMER_RE.match(line):
            if not (value := _quoted_or_bare(match)):
                continue
            if scope is _Scope.TRACK and current is not None:
                current = replace(current, performer=value)
            else:
                document["performer"] = value
        elif match := INDEX_RE.match(line):
            if current is None or int(match.group(1)) != START_INDEX:
                continue
            mm, ss, ff = (int(match.group(i)) for i in (2, 3, 4))
            current = replace(current, start_ms=frames_to_ms(mm, ss, ff))
        elif (genre := _remark(line, GENRE_REMARK_RE)) is not None:
            document["genre"] = document["genre"] or genre
        elif (year := _remark(line, DATE_REMARK_RE)) is not None:
            document["release_year"] = document["release_year"] or year
        # CATALOG, ISRC, FLAGS, PREGAP and other directives are ignored

    flush(current)

    return SheetDocument(tracks=tracks, **document)


def read_sheet_remarks(text: str) -> SheetRemarks:
    """Extract only the genre and date remarks from sheet text; the first of each wins."""
    remarks = SheetRemarks()
    for line in _lines(text):
        if (genre := _remark(line, GENRE_REMARK_RE)) is not None:
            remarks.genre = remarks.genre or genre
        elif (year := _remark(line, DATE_REMARK_RE)) is not None:
            remarks.release_year = remarks.release_year or year
    return remarks
