from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from mixcut import __version__
from mixcut.cli import app

from .conftest import TWO_TRACK_SHEET

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_check_sheet_lists_tracks(tmp_path: Path):
    sheet = tmp_path / "mix.cue"
    _ = sheet.write_text(TWO_TRACK_SHEET)

    result = runner.invoke(app, ["check-sheet", str(sheet)])

    assert result.exit_code == 0
    assert "Various Artists - Night Mix" in result.output
    assert "3:00.000" in result.output
    assert "2 track(s)" in result.output


def test_check_sheet_rejects_empty_sheet(tmp_path: Path):
    sheet = tmp_path / "empty.cue"
    _ = sheet.write_text("REM nothing\n")

    result = runner.invoke(app, ["check-sheet", str(sheet)])

    assert result.exit_code == 1
