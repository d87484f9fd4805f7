"""Processing stage: cut a queued job's recording into tagged, uploaded tracks.

Workflow for one delivered message:
1. Mark the job PROCESSING
2. Rebuild the job's workspace from scratch
3. Download the recording and sheet (concurrently)
4. Run the cutter, collect its output files
5. Embed artwork and genre/year tags
6. Reconcile the output count with the stored track rows
7. Upload each output and attach its key to the matching track
8. Mark the job COMPLETED and remove the workspace
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
from pathlib import Path
from uuid import UUID

from ..db.config import new_session
from ..db.models import JobStatus, Track
from ..db.operations import fail_job, get_job, list_tracks, set_track_output, transition_job
from ..errors import ErrorKind, MixcutError, ObjectNotFoundError, classify_error
from ..queue import Delivery, WorkerMessage
from ..sheet import read_sheet_remarks
from ..storage import ObjectStore
from .context import StageContext
from .tools import apply_artwork, apply_tag, cut_audio
from .workspace import (
    cleanup_workspace,
    leading_track_number,
    list_outputs,
    prepare_workspace,
    workspace_path,
)

logger = logging.getLogger(__name__)

SHEET_FILENAME = "source.cue"


def fetch_artwork(
    storage: ObjectStore,
    location: str,
    artwork_key: str,
    workspace: Path,
    candidates: list[str],
) -> Path | None:
    """Download the job's artwork if any candidate name exists.

    The given key is tried first, then each candidate file name in the same
    prefix. A missing object moves on to the next candidate; any other error
    propagates.
    """
    prefix = posixpath.dirname(artwork_key)
    keys = [artwork_key] + [posixpath.join(prefix, name) if prefix else name for name in candidates]

    for key in dict.fromkeys(keys):
        local_path = workspace / f"artwork{posixpath.splitext(key)[1].lower()}"
        try:
            storage.download_file(location, key, local_path)
        except ObjectNotFoundError:
            continue
        return local_path

    return None


def pair_outputs(tracks: list[Track], outputs: list[Path]) -> list[tuple[Track, Path]]:
    """Match track rows with output files.

    When every file name starts with a distinct number and those numbers are
    exactly the track numbers, files are matched by number. Otherwise row i
    gets the i-th file in lexical order.
    """
    numbered = {leading_track_number(p): p for p in outputs}
    if (
        None not in numbered
        and len(numbered) == len(outputs)
        and set(numbered) == {t.track_number for t in tracks}
    ):
        return [(t, numbered[t.track_number]) for t in tracks]
    return list(zip(tracks, outputs))


async def _run_pipeline(message: WorkerMessage, ctx: StageContext, workspace: Path) -> None:
    job_id = message.job_id
    worker = ctx.config.worker
    timeout = worker.tool_timeout_seconds

    audio_path = workspace / f"source{posixpath.splitext(message.audio_key)[1].lower() or worker.output_extension}"
    sheet_path = workspace / SHEET_FILENAME

    logger.info(f"[{job_id}] Downloading sources")
    _ = await asyncio.gather(
        asyncio.to_thread(
            ctx.storage.download_file, message.audio_location, message.audio_key, audio_path
        ),
        asyncio.to_thread(
            ctx.storage.download_file, message.sheet_location, message.sheet_key, sheet_path
        ),
    )

    logger.info(f"[{job_id}] Cutting with {worker.cutter_executable}")
    await asyncio.to_thread(
        cut_audio, worker.cutter_executable, audio_path, sheet_path, workspace, timeout
    )

    outputs = list_outputs(workspace, worker.output_extension, exclude={audio_path.name})
    logger.info(f"[{job_id}] Cutter produced {len(outputs)} file(s)")

    if message.artwork_location and message.artwork_key:
        artwork_path = await asyncio.to_thread(
            fetch_artwork,
            ctx.storage,
            message.artwork_location,
            message.artwork_key,
            workspace,
            worker.artwork_filenames,
        )
        if artwork_path is not None:
            logger.info(f"[{job_id}] Embedding {artwork_path.name}")
            await asyncio.to_thread(
                apply_artwork, worker.tagger_executable, outputs, artwork_path, timeout
            )
        else:
            logger.info(f"[{job_id}] No artwork found, skipping")

    sheet_bytes = await asyncio.to_thread(sheet_path.read_bytes)
    remarks = read_sheet_remarks(sheet_bytes.decode("utf-8-sig", errors="replace"))
    if remarks.genre:
        await asyncio.to_thread(
            apply_tag, worker.tagger_executable, outputs, "--genre", remarks.genre, timeout
        )
    if remarks.release_year:
        await asyncio.to_thread(
            apply_tag, worker.tagger_executable, outputs, "--year", remarks.release_year, timeout
        )

    async with new_session(ctx.engine) as session:
        tracks = await list_tracks(session, job_id)

    if len(tracks) != len(outputs):
        raise MixcutError(
            ErrorKind.RECONCILIATION,
            f"Track count mismatch: have {len(tracks)} tracks but {len(outputs)} output files",
        )

    output_location = ctx.config.storage.outputs_location
    output_prefix = f"{worker.output_prefix}/{job_id}" if worker.output_prefix else str(job_id)

    for track, file_path in pair_outputs(tracks, outputs):
        output_key = f"{output_prefix}/{file_path.name}"
        await asyncio.to_thread(ctx.storage.upload_file, file_path, output_location, output_key)
        async with new_session(ctx.engine) as session:
            _ = await set_track_output(session, track.id, output_key)
        logger.info(f"[{job_id}] Track {track.track_number} -> {output_key}")

    async with new_session(ctx.engine) as session:
        _ = await transition_job(
            session,
            job_id,
            JobStatus.COMPLETED,
            output_location=output_location,
            output_prefix=output_prefix,
            error_message=None,
        )


async def process_message(
    message: WorkerMessage, ctx: StageContext, receive_count: int = 1
) -> JobStatus | None:
    """Run the processing stage for one delivered message.

    Failures are recorded on the job and not raised, so the delivery can be
    acknowledged. Two cases are raised instead, for the queue to redeliver:
    a job still VALIDATING, and (when ``worker.retry_transient_errors`` is
    set) a transient infrastructure error before the last allowed receive.

    Args:
        message: Queue payload
        ctx: Stage collaborators
        receive_count: How many times this message has been received

    Returns:
        The job's resulting status, or None if the job does not exist
    """
    job_id: UUID = message.job_id

    async with new_session(ctx.engine) as session:
        job = await get_job(session, job_id)

    if job is None:
        logger.error(f"[{job_id}] Job not found, dropping message")
        return None

    status = job.job_status
    if status is JobStatus.VALIDATING:
        raise MixcutError(
            ErrorKind.STATE, f"Job {job_id} is still VALIDATING", transient=True
        )
    if status not in (JobStatus.QUEUED, JobStatus.PROCESSING):
        logger.warning(f"[{job_id}] Skipping message, job is {job.status}")
        return status
    if status is JobStatus.PROCESSING:
        logger.warning(f"[{job_id}] Redelivered (receive {receive_count}), reprocessing")

    workspace = workspace_path(ctx.config.worker.workspace_root, job_id)
    try:
        async with new_session(ctx.engine) as session:
            _ = await transition_job(session, job_id, JobStatus.PROCESSING)

        workspace = prepare_workspace(ctx.config.worker.workspace_root, job_id)
        await _run_pipeline(message, ctx, workspace)
        logger.info(f"[{job_id}] Completed")
        return JobStatus.COMPLETED

    except Exception as e:
        error = classify_error(e)
        retry_allowed = (
            ctx.config.worker.retry_transient_errors
            and error.transient
            and receive_count < ctx.queue.max_receive_count
        )
        if retry_allowed:
            logger.warning(f"[{job_id}] Transient failure, leaving for redelivery: {error.message}")
            if error is e:
                raise
            raise error from e

        logger.exception(f"[{job_id}] Processing failed ({error.kind.value}): {error.message}")
        async with new_session(ctx.engine) as session:
            _ = await fail_job(session, job_id, error.message)
        return JobStatus.FAILED

    finally:
        cleanup_workspace(workspace)


async def handle_delivery(delivery: Delivery, ctx: StageContext) -> None:
    """Process one delivery, acknowledging it unless the stage asks for redelivery."""
    try:
        _ = await process_message(delivery.message, ctx, receive_count=delivery.receive_count)
    except Exception as e:
        logger.warning(f"[{delivery.message.job_id}] Releasing message for redelivery: {e}")
        await asyncio.to_thread(ctx.queue.release, delivery)
        return
    await asyncio.to_thread(ctx.queue.ack, delivery)


async def run_worker(
    ctx: StageContext,
    until_empty: bool = False,
    stop_event: asyncio.Event | None = None,
    idle_sleep: float = 1.0,
) -> int:
    """Consume the queue one message at a time.

    Args:
        ctx: Stage collaborators
        until_empty: Return as soon as a receive comes back empty
        stop_event: Set to stop after the current message
        idle_sleep: Pause between empty receives

    Returns:
        Number of deliveries handled
    """
    handled = 0
    while stop_event is None or not stop_event.is_set():
        deliveries = await asyncio.to_thread(ctx.queue.receive, 1)
        if not deliveries:
            if until_empty:
                break
            await asyncio.sleep(idle_sleep)
            continue

        for delivery in deliveries:
            await handle_delivery(delivery, ctx)
            handled += 1

    return handled
