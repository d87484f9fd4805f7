"""Wrappers around the external cutting and tagging executables."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from ..errors import ErrorKind, MixcutError

logger = logging.getLogger(__name__)


def _run(cmd: list[str], cwd: Path, timeout: float | None = None) -> subprocess.CompletedProcess[str]:
    return subprocess.run(cmd, cwd=cwd, check=True, capture_output=True, text=True, timeout=timeout)


def run_tool(cmd: list[str], cwd: Path, timeout: float | None = None) -> None:
    """Run an external executable, raising a TOOL error on failure.

    Args:
        cmd: Executable and arguments
        cwd: Working directory
        timeout: Seconds before the process is killed (None waits forever)

    Raises:
        MixcutError: TOOL kind if the executable is missing, exits non-zero or times out
    """
    logger.debug(f"Running {' '.join(cmd)} in {cwd}")
    try:
        _ = _run(cmd, cwd, timeout)
    except FileNotFoundError as e:
        raise MixcutError(ErrorKind.TOOL, f"Executable not found: {cmd[0]}") from e
    except subprocess.CalledProcessError as e:
        detail = (e.stderr or e.stdout or "").strip()
        message = f"{cmd[0]} exited with status {e.returncode}"
        raise MixcutError(ErrorKind.TOOL, f"{message}: {detail}" if detail else message) from e
    except subprocess.TimeoutExpired as e:
        raise MixcutError(ErrorKind.TOOL, f"{cmd[0]} timed out after {e.timeout}s") from e


def cut_audio(
    executable: str,
    audio_path: Path,
    sheet_path: Path,
    workspace: Path,
    timeout: float | None = None,
) -> None:
    """Split the source recording; one file per track lands in ``workspace``."""
    run_tool([executable, "-C", str(sheet_path), str(audio_path)], cwd=workspace, timeout=timeout)


def apply_artwork(
    executable: str, files: list[Path], artwork_path: Path, timeout: float | None = None
) -> None:
    """Embed cover artwork into every file."""
    for file_path in files:
        run_tool(
            [executable, str(file_path), "--artwork", str(artwork_path), "--overWrite"],
            cwd=file_path.parent,
            timeout=timeout,
        )


def apply_tag(
    executable: str, files: list[Path], flag: str, value: str, timeout: float | None = None
) -> None:
    """Write one metadata tag (e.g. ``--genre``) into every file."""
    for file_path in files:
        run_tool(
            [executable, str(file_path), flag, value, "--overWrite"],
            cwd=file_path.parent,
            timeout=timeout,
        )
