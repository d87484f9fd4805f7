"""Validation stage: turn an uploaded sheet into track rows and a queued job."""

from __future__ import annotations

import asyncio
import logging
from uuid import UUID

from ..db.config import new_session
from ..db.models import Job, JobStatus
from ..db.operations import fail_job, get_job, replace_tracks, transition_job
from ..errors import ErrorKind, MixcutError, classify_error
from ..queue import WorkerMessage
from ..sheet import parse_sheet, validate_sheet
from .context import StageContext

logger = logging.getLogger(__name__)


def build_worker_message(job: Job) -> WorkerMessage:
    """Queue payload describing where the job's sources live."""
    has_artwork = bool(job.artwork_location and job.artwork_key)
    return WorkerMessage(
        job_id=job.id,
        audio_location=job.audio_location,
        audio_key=job.audio_key,
        sheet_location=job.sheet_location,
        sheet_key=job.sheet_key,
        artwork_location=job.artwork_location if has_artwork else None,
        artwork_key=job.artwork_key if has_artwork else None,
    )


async def validate_job(job_id: UUID, ctx: StageContext) -> JobStatus | None:
    """Validate a job's sheet, persist its tracks and queue it for processing.

    The job must already be VALIDATING. Any failure is recorded on the job
    (FAILED + error message) instead of being raised.

    Args:
        job_id: UUID of the job
        ctx: Stage collaborators

    Returns:
        The job's resulting status, or None if the job does not exist
    """
    async with new_session(ctx.engine) as session:
        job = await get_job(session, job_id)

    if job is None:
        logger.error(f"[{job_id}] Job not found, nothing to validate")
        return None

    if job.job_status is not JobStatus.VALIDATING:
        logger.warning(f"[{job_id}] Skipping validation, job is {job.status}")
        return job.job_status

    try:
        logger.info(f"[{job_id}] Fetching sheet {job.sheet_location}/{job.sheet_key}")
        sheet_text = await asyncio.to_thread(ctx.storage.read_text, job.sheet_location, job.sheet_key)

        result = validate_sheet(parse_sheet(sheet_text))
        if not result.ok:
            raise MixcutError(ErrorKind.VALIDATION, result.error or "Invalid sheet")

        async with new_session(ctx.engine) as session:
            rows = await replace_tracks(session, job_id, result.tracks)
        logger.info(f"[{job_id}] Stored {len(rows)} track(s)")

        await asyncio.to_thread(ctx.queue.send, build_worker_message(job))

        async with new_session(ctx.engine) as session:
            _ = await transition_job(session, job_id, JobStatus.QUEUED)
        return JobStatus.QUEUED

    except Exception as e:
        error = classify_error(e)
        if error.kind is ErrorKind.VALIDATION:
            logger.warning(f"[{job_id}] Sheet rejected: {error.message}")
        else:
            logger.exception(f"[{job_id}] Validation failed: {error.message}")

        async with new_session(ctx.engine) as session:
            _ = await fail_job(session, job_id, error.message)
        return JobStatus.FAILED


async def start_job(job_id: UUID, ctx: StageContext) -> JobStatus | None:
    """Move an uploaded job to VALIDATING and run the validation stage.

    Raises:
        MixcutError: STATE kind if the job is missing or not PENDING_UPLOAD
    """
    async with new_session(ctx.engine) as session:
        job = await get_job(session, job_id)
        if job is None:
            raise MixcutError(ErrorKind.STATE, f"Job {job_id} not found")
        if job.job_status is not JobStatus.PENDING_UPLOAD:
            raise MixcutError(
                ErrorKind.STATE,
                f"Job cannot be started from status {job.status}. Expected PENDING_UPLOAD.",
            )
        _ = await transition_job(session, job_id, JobStatus.VALIDATING)

    return await validate_job(job_id, ctx)
