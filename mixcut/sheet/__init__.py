"""Cue sheet parsing and validation."""

from .models import SheetDocument, SheetRemarks, SheetTrack, ValidationResult
from .parser import parse_sheet, read_sheet_remarks
from .validator import validate_sheet

__all__ = [
    "SheetDocument",
    "SheetRemarks",
    "SheetTrack",
    "ValidationResult",
    "parse_sheet",
    "read_sheet_remarks",
    "validate_sheet",
]
