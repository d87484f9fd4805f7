"""Job-scoped scratch directories."""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path
from uuid import UUID

logger = logging.getLogger(__name__)

_LEADING_NUMBER_RE = re.compile(r"^(\d+)")


def workspace_path(root: Path | str, job_id: UUID) -> Path:
    """Directory used for one job; the same job always maps to the same path."""
    return Path(root) / f"job-{job_id}"


def prepare_workspace(root: Path | str, job_id: UUID) -> Path:
    """Create an empty workspace, discarding anything a previous run left behind."""
    path = workspace_path(root, job_id)
    if path.exists():
        logger.warning(f"[{job_id}] Removing stale workspace {path}")
        shutil.rmtree(path)
    path.mkdir(parents=True)
    return path


def cleanup_workspace(path: Path) -> None:
    """Best-effort removal; failures are logged, never raised."""
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to remove workspace {path}: {e}")


def list_outputs(workspace: Path, extension: str, exclude: set[str]) -> list[Path]:
    """Output files with ``extension`` in lexical order, skipping ``exclude`` names."""
    return sorted(
        (
            p
            for p in workspace.iterdir()
            if p.is_file() and p.suffix.lower() == extension and p.name not in exclude
        ),
        key=lambda p: p.name,
    )


def leading_track_number(path: Path) -> int | None:
    """Track number a file name starts with (``03 - Title.m4a`` → 3)."""
    match = _LEADING_NUMBER_RE.match(path.name)
    return int(match.group(1)) if match else None
