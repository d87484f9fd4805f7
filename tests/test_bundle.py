from __future__ import annotations

import io
import zipfile

import pytest

from mixcut.db.models import JobStatus
from mixcut.errors import ErrorKind, MixcutError
from mixcut.processor.bundle import bundle_job
from mixcut.processor.context import StageContext
from mixcut.processor.validation import validate_job
from mixcut.processor.worker import process_message

from .conftest import FakeTools, make_job


@pytest.mark.asyncio
async def test_bundle_zips_outputs(ctx: StageContext, tools: FakeTools):
    job = await make_job(ctx)
    _ = await validate_job(job.id, ctx)
    (delivery,) = ctx.queue.receive()
    assert await process_message(delivery.message, ctx) is JobStatus.COMPLETED

    key = await bundle_job(job.id, ctx)

    assert key == f"jobs/{job.id}/bundle.zip"
    data = (ctx.storage.root / "outputs" / key).read_bytes()
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        assert sorted(archive.namelist()) == ["01 - One.m4a", "02 - Two.m4a"]
        assert archive.read("01 - One.m4a") == b"audio:01 - One.m4a"

    # A second bundle does not include the first one
    _ = await bundle_job(job.id, ctx)
    data = (ctx.storage.root / "outputs" / key).read_bytes()
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        assert "bundle.zip" not in archive.namelist()


@pytest.mark.asyncio
async def test_bundle_requires_completed_job(ctx: StageContext):
    job = await make_job(ctx, status=JobStatus.QUEUED)

    with pytest.raises(MixcutError, match="not completed") as exc_info:
        _ = await bundle_job(job.id, ctx)

    assert exc_info.value.kind is ErrorKind.STATE
