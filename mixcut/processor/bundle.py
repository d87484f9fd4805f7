"""Zip a completed job's outputs into a single downloadable object."""

from __future__ import annotations

import asyncio
import io
import logging
import tempfile
import zipfile
from pathlib import Path
from uuid import UUID

from ..db.config import new_session
from ..db.models import JobStatus
from ..db.operations import get_job
from ..errors import ErrorKind, MixcutError
from .context import StageContext

logger = logging.getLogger(__name__)

BUNDLE_FILENAME = "bundle.zip"


def _build_zip(ctx: StageContext, location: str, prefix: str, keys: list[str]) -> bytes:
    buffer = io.BytesIO()
    with tempfile.TemporaryDirectory() as temp_dir, zipfile.ZipFile(buffer, "w") as archive:
        temp_path = Path(temp_dir)
        for key in keys:
            name = key[len(prefix) :]
            local_path = temp_path / name
            ctx.storage.download_file(location, key, local_path)
            # Audio is already compressed
            archive.write(local_path, arcname=name, compress_type=zipfile.ZIP_STORED)
    return buffer.getvalue()


async def bundle_job(job_id: UUID, ctx: StageContext) -> str:
    """Store every output of a completed job as ``<prefix>/bundle.zip``.

    Returns:
        Key of the bundle in the outputs location

    Raises:
        MixcutError: STATE kind if the job is missing, not completed, or has no outputs
    """
    async with new_session(ctx.engine) as session:
        job = await get_job(session, job_id)

    if job is None:
        raise MixcutError(ErrorKind.STATE, f"Job {job_id} not found")
    if job.job_status is not JobStatus.COMPLETED:
        raise MixcutError(ErrorKind.STATE, "Job is not completed yet")
    if not job.output_location:
        raise MixcutError(ErrorKind.STATE, "Job has no outputs yet")

    prefix = f"{job.output_prefix or f'{ctx.config.worker.output_prefix}/{job_id}'}/"
    bundle_key = f"{prefix}{BUNDLE_FILENAME}"

    keys = [
        k
        for k in await asyncio.to_thread(ctx.storage.list_keys, job.output_location, prefix)
        if k != bundle_key
    ]
    if not keys:
        raise MixcutError(ErrorKind.STATE, "No output files to bundle")

    data = await asyncio.to_thread(_build_zip, ctx, job.output_location, prefix, keys)
    await asyncio.to_thread(
        ctx.storage.put_bytes, job.output_location, bundle_key, data, "application/zip"
    )
    logger.info(f"[{job_id}] Bundled {len(keys)} file(s) into {bundle_key}")
    return bundle_key
