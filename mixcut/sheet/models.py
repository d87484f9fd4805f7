"""Data models for parsed cue sheets."""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, Field


class SheetTrack(BaseModel):
    """One complete track entry extracted from a sheet."""

    track_number: int
    title: str
    performer: str | None = None
    start_ms: float = Field(..., description="Start offset in milliseconds")


class SheetDocument(BaseModel):
    """Everything recognizable in a sheet, tracks in encounter order."""

    title: str | None = None
    performer: str | None = None
    genre: str | None = None
    release_year: str | None = None
    file_name: str | None = None
    tracks: list[SheetTrack] = Field(default_factory=list)


class SheetRemarks(BaseModel):
    """Disc-level remarks applied as tags to every output file."""

    genre: str | None = None
    release_year: str | None = None


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a sheet: sorted tracks or a diagnostic."""

    tracks: list[SheetTrack] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, tracks: list[SheetTrack]) -> ValidationResult:
        return cls(tracks=tracks)

    @classmethod
    def failure(cls, error: str) -> ValidationResult:
        return cls(error=error)
