"""CLI entrypoint for mixcut administrative commands."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TypeVar
from uuid import UUID

import typer
from dotenv import load_dotenv

from .. import __version__
from ..config import Config
from ..db.config import close_db, init_db, new_session
from ..db.operations import get_job_with_tracks
from ..errors import MixcutError
from ..processor.bundle import bundle_job
from ..processor.context import StageContext
from ..processor.jobs import create_upload_job, upload_sources
from ..processor.validation import start_job
from ..processor.worker import run_worker
from ..sheet import parse_sheet, validate_sheet
from ..utils import format_ms

T = TypeVar("T")

app = typer.Typer(
    name="mixcut",
    help="Split a continuous recording into tagged tracks using a cue sheet",
    no_args_is_help=True,
)

ConfigOption = typer.Option(Path("config.yaml"), "--config", "-c", help="Path to config.yaml")


def _load_context(config_path: Path) -> StageContext:
    config = Config.load(config_path)
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return StageContext.from_config(config)


def _run(config_path: Path, action: Callable[[StageContext], Awaitable[T]]) -> T:
    async def _wrapped() -> T:
        ctx = _load_context(config_path)
        try:
            return await action(ctx)
        finally:
            await close_db(ctx.engine)

    try:
        return asyncio.run(_wrapped())
    except MixcutError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


@app.command("version")
def version() -> None:
    """Print the current version of mixcut."""
    typer.echo(f"mixcut version {__version__}")


@app.command("check-sheet")
def check_sheet(path: Path) -> None:
    """Parse and validate a local sheet without touching any job.

    Args:
        path: Sheet file to check
    """
    document = parse_sheet(path.read_bytes().decode("utf-8-sig", errors="replace"))
    result = validate_sheet(document)

    if not result.ok:
        typer.echo(f"✗ {result.error}", err=True)
        raise typer.Exit(code=1)

    if document.title or document.performer:
        typer.echo(f"{document.performer or '?'} - {document.title or '?'}")
    for track in result.tracks:
        performer = f" ({track.performer})" if track.performer else ""
        typer.echo(f"{track.track_number:02d}  {format_ms(int(track.start_ms)):>11}  {track.title}{performer}")
    typer.echo(f"✓ {len(result.tracks)} track(s)")


@app.command("init-db")
def init_db_command(config: Path = ConfigOption) -> None:
    """Create database tables (development only; use alembic in production)."""
    _run(config, lambda ctx: init_db(ctx.engine))
    typer.echo("✓ Tables created")


@app.command("create-job")
def create_job_command(
    audio: Path = typer.Option(..., "--audio", exists=True, dir_okay=False),
    sheet: Path = typer.Option(..., "--sheet", exists=True, dir_okay=False),
    artwork: Path | None = typer.Option(None, "--artwork", exists=True, dir_okay=False),
    start: bool = typer.Option(False, "--start", help="Start validation right after upload"),
    process: bool = typer.Option(
        False, "--process", help="With --start, also drain the queue in this process"
    ),
    config: Path = ConfigOption,
) -> None:
    """Create a job and upload its source files."""

    async def _create(ctx: StageContext) -> None:
        job = await create_upload_job(ctx, artwork.suffix if artwork else None)
        await upload_sources(ctx, job, audio, sheet, artwork)
        typer.echo(f"✓ Created job {job.id}")
        if start:
            status = await start_job(job.id, ctx)
            typer.echo(f"Job {job.id} is {status.value if status else 'missing'}")
        if start and process:
            handled = await run_worker(ctx, until_empty=True)
            typer.echo(f"Handled {handled} message(s)")

    _run(config, _create)


@app.command("start-job")
def start_job_command(job_id: UUID, config: Path = ConfigOption) -> None:
    """Start validation of an uploaded job.

    Args:
        job_id: UUID of the job
    """
    status = _run(config, lambda ctx: start_job(job_id, ctx))
    typer.echo(f"Job {job_id} is {status.value if status else 'missing'}")


@app.command("show-job")
def show_job(job_id: UUID, config: Path = ConfigOption) -> None:
    """Print a job's status and its tracks.

    Args:
        job_id: UUID of the job
    """

    async def _show(ctx: StageContext) -> None:
        async with new_session(ctx.engine) as session:
            loaded = await get_job_with_tracks(session, job_id)
        if loaded is None:
            typer.echo(f"Error: Job {job_id} not found", err=True)
            raise typer.Exit(code=1)

        job, tracks = loaded
        typer.echo(f"Job {job.id}: {job.status}")
        if job.error_message:
            typer.echo(f"  error: {job.error_message}")
        if job.output_prefix:
            typer.echo(f"  outputs: {job.output_location}/{job.output_prefix}/")
        for track in tracks:
            output = track.output_key or "-"
            typer.echo(f"  {track.track_number:02d}  {format_ms(track.start_ms):>11}  {track.title}  {output}")

    _run(config, _show)


@app.command("worker")
def worker(
    until_empty: bool = typer.Option(False, "--until-empty", help="Exit once the queue is drained"),
    config: Path = ConfigOption,
) -> None:
    """Consume the job queue and process jobs."""
    handled = _run(config, lambda ctx: run_worker(ctx, until_empty=until_empty))
    typer.echo(f"Handled {handled} message(s)")


@app.command("bundle")
def bundle(job_id: UUID, config: Path = ConfigOption) -> None:
    """Zip a completed job's outputs.

    Args:
        job_id: UUID of the job
    """
    key = _run(config, lambda ctx: bundle_job(job_id, ctx))
    typer.echo(f"✓ Bundle stored at {key}")


def main() -> None:
    """Main CLI entrypoint."""
    # Load .env file if it exists (doesn't override existing env vars)
    _ = load_dotenv()
    app()


if __name__ == "__main__":
    main()
