"""Creating jobs and placing their source files."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from uuid import UUID, uuid4

from ..db.config import new_session
from ..db.models import Job
from ..db.operations import create_job
from .context import StageContext

SOURCE_PREFIX = "raw"


@dataclass(frozen=True)
class SourceKeys:
    """Object keys a job's uploads are expected under."""

    audio_key: str
    sheet_key: str
    artwork_key: str | None = None


def source_keys(job_id: UUID, artwork_suffix: str | None = None) -> SourceKeys:
    prefix = f"{SOURCE_PREFIX}/{job_id}"
    return SourceKeys(
        audio_key=f"{prefix}/source.m4a",
        sheet_key=f"{prefix}/source.cue",
        artwork_key=f"{prefix}/artwork{artwork_suffix.lower()}" if artwork_suffix else None,
    )


async def create_upload_job(ctx: StageContext, artwork_suffix: str | None = None) -> Job:
    """Create a PENDING_UPLOAD job whose sources go to the uploads location.

    Args:
        ctx: Stage collaborators
        artwork_suffix: Extension of the artwork to expect (e.g. ".jpg"), None for no artwork
    """
    job_id = uuid4()
    keys = source_keys(job_id, artwork_suffix)
    uploads = ctx.config.storage.uploads_location

    async with new_session(ctx.engine) as session:
        return await create_job(
            session,
            audio_location=uploads,
            audio_key=keys.audio_key,
            sheet_location=uploads,
            sheet_key=keys.sheet_key,
            artwork_location=uploads if artwork_suffix else None,
            artwork_key=keys.artwork_key,
            job_id=job_id,
        )


async def upload_sources(
    ctx: StageContext,
    job: Job,
    audio_path: Path,
    sheet_path: Path,
    artwork_path: Path | None = None,
) -> None:
    """Upload local source files to the keys recorded on the job."""
    uploads = [
        (audio_path, job.audio_location, job.audio_key),
        (sheet_path, job.sheet_location, job.sheet_key),
    ]
    if artwork_path is not None and job.artwork_location and job.artwork_key:
        uploads.append((artwork_path, job.artwork_location, job.artwork_key))

    _ = await asyncio.gather(
        *(asyncio.to_thread(ctx.storage.upload_file, path, loc, key) for path, loc, key in uploads)
    )
