"""Database operations for jobs and their tracks."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import delete
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..errors import ErrorKind, MixcutError
from ..sheet import SheetTrack
from .models import Job, JobStatus, Track, utc_now

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.PENDING_UPLOAD: {JobStatus.VALIDATING},
    JobStatus.VALIDATING: {JobStatus.QUEUED, JobStatus.FAILED},
    JobStatus.QUEUED: {JobStatus.PROCESSING},
    # PROCESSING -> PROCESSING covers a redelivered message
    JobStatus.PROCESSING: {JobStatus.PROCESSING, JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


async def create_job(
    session: AsyncSession,
    audio_location: str,
    audio_key: str,
    sheet_location: str,
    sheet_key: str,
    artwork_location: str | None = None,
    artwork_key: str | None = None,
    job_id: UUID | None = None,
) -> Job:
    """Create a new job awaiting its source uploads.

    Args:
        session: Active async database session
        audio_location: Bucket holding the source recording
        audio_key: Key of the source recording
        sheet_location: Bucket holding the sheet
        sheet_key: Key of the sheet
        artwork_location: Bucket holding optional artwork
        artwork_key: Key of optional artwork
        job_id: Explicit id (generated when omitted)

    Returns:
        The created Job in PENDING_UPLOAD
    """
    job = Job(
        status=JobStatus.PENDING_UPLOAD.value,
        audio_location=audio_location,
        audio_key=audio_key,
        sheet_location=sheet_location,
        sheet_key=sheet_key,
        artwork_location=artwork_location,
        artwork_key=artwork_key,
    )
    if job_id is not None:
        job.id = job_id
    session.add(job)
    await session.commit()
    await session.refresh(job)
    return job


async def get_job(session: AsyncSession, job_id: UUID) -> Job | None:
    """Get a single job by ID."""
    stmt = select(Job).where(Job.id == job_id).execution_options(populate_existing=True)
    result = await session.exec(stmt)
    return result.first()


async def transition_job(
    session: AsyncSession,
    job_id: UUID,
    status: JobStatus,
    **fields: Any,
) -> Job:
    """Move a job to a new status, optionally setting other columns.

    Args:
        session: Active async database session
        job_id: UUID of the job
        status: Target status
        **fields: Extra columns to update (e.g. error_message, output_prefix)

    Returns:
        The updated Job

    Raises:
        MixcutError: STATE kind if the job is missing or the move is not allowed
    """
    job = await get_job(session, job_id)
    if job is None:
        raise MixcutError(ErrorKind.STATE, f"Job {job_id} not found")

    current = job.job_status
    if status not in ALLOWED_TRANSITIONS[current]:
        raise MixcutError(
            ErrorKind.STATE, f"Job {job_id} cannot move from {current.value} to {status.value}"
        )

    job.status = status.value
    for name, value in fields.items():
        setattr(job, name, value)
    job.updated_at = utc_now()
    await session.commit()
    await session.refresh(job)
    logger.info(f"[{job_id}] {current.value} -> {status.value}")
    return job


async def fail_job(session: AsyncSession, job_id: UUID, message: str) -> Job:
    """Move a job to FAILED and record the diagnostic verbatim."""
    return await transition_job(session, job_id, JobStatus.FAILED, error_message=message)


def _track_rows(job_id: UUID, tracks: list[SheetTrack]) -> list[Track]:
    starts = [int(round(t.start_ms)) for t in tracks]
    rows: list[Track] = []
    for i, track in enumerate(tracks):
        duration = starts[i + 1] - starts[i] if i + 1 < len(starts) else None
        rows.append(
            Track(
                job_id=job_id,
                track_number=track.track_number,
                title=track.title.strip(),
                performer=track.performer,
                start_ms=starts[i],
                duration_ms=duration,
            )
        )
    return rows


async def replace_tracks(session: AsyncSession, job_id: UUID, tracks: list[SheetTrack]) -> list[Track]:
    """Insert the validated track list of a job.

    Rows left behind by an earlier, aborted validation of the same job are
    removed in the same transaction.

    Args:
        session: Active async database session
        job_id: UUID of the job
        tracks: Validated tracks in canonical (start) order

    Returns:
        The inserted Track rows
    """
    _ = await session.execute(delete(Track).where(col(Track.job_id) == job_id))
    rows = _track_rows(job_id, tracks)
    session.add_all(rows)
    await session.commit()
    return rows


async def list_tracks(session: AsyncSession, job_id: UUID) -> list[Track]:
    """Get all tracks of a job ordered by track number."""
    stmt = (
        select(Track)
        .where(Track.job_id == job_id)
        .order_by(col(Track.track_number))
    )
    result = await session.exec(stmt)
    return list(result.all())


async def set_track_output(session: AsyncSession, track_id: UUID, output_key: str) -> Track:
    """Attach the uploaded object key to a track.

    Raises:
        MixcutError: STATE kind if the track does not exist
    """
    result = await session.exec(select(Track).where(Track.id == track_id))
    track = result.first()
    if track is None:
        raise MixcutError(ErrorKind.STATE, f"Track {track_id} not found")

    track.output_key = output_key
    await session.commit()
    return track


async def get_job_with_tracks(session: AsyncSession, job_id: UUID) -> tuple[Job, list[Track]] | None:
    """Load a job together with its tracks, or None if the job does not exist."""
    job = await get_job(session, job_id)
    if job is None:
        return None
    return job, await list_tracks(session, job_id)
