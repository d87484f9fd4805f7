"""Shared fixtures: a SQLite record store, local storage and queue, fake executables."""

from __future__ import annotations

import subprocess
from collections.abc import AsyncIterator
from pathlib import Path
from uuid import UUID

import pytest
import pytest_asyncio

from mixcut.config import Config, QueueConfig, StorageConfig, WorkerConfig
from mixcut.db.config import create_engine, init_db, new_session
from mixcut.db.models import Job, JobStatus
from mixcut.db.operations import get_job
from mixcut.processor.context import StageContext
from mixcut.processor.jobs import create_upload_job
from mixcut.queue import LocalQueue
from mixcut.storage import LocalStorage

TWO_TRACK_SHEET = """\
REM GENRE "Electronic"
REM DATE 2021
PERFORMER "Various Artists"
TITLE "Night Mix"
FILE "source.m4a" MP4
  TRACK 01 AUDIO
    TITLE "One"
    PERFORMER "Artist A"
    INDEX 01 00:00:00
  TRACK 02 AUDIO
    TITLE "Two"
    PERFORMER "Artist B"
    INDEX 01 03:00:00
"""


class FakeTools:
    """Stands in for the cutter and tagger executables."""

    def __init__(self) -> None:
        self.outputs: list[str] = ["01 - One.m4a", "02 - Two.m4a"]
        self.calls: list[list[str]] = []
        self.fail_on: str | None = None

    def __call__(
        self, cmd: list[str], cwd: Path, timeout: float | None = None
    ) -> subprocess.CompletedProcess[str]:
        self.calls.append(list(cmd))
        if self.fail_on is not None and cmd[0] == self.fail_on:
            raise subprocess.CalledProcessError(1, cmd, output="", stderr="boom")
        if cmd[0] == "m4acut":
            for name in self.outputs:
                _ = (Path(cwd) / name).write_bytes(b"audio:" + name.encode())
        return subprocess.CompletedProcess(cmd, 0, "", "")

    def tagger_calls(self, flag: str) -> list[list[str]]:
        return [c for c in self.calls if c[0] == "AtomicParsley" and flag in c]


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'mixcut.db'}",
        storage=StorageConfig(backend="local", local_root=str(tmp_path / "store")),
        queue=QueueConfig(backend="local", max_receive_count=3),
        worker=WorkerConfig(workspace_root=str(tmp_path / "work")),
    )


@pytest_asyncio.fixture
async def ctx(config: Config) -> AsyncIterator[StageContext]:
    engine = create_engine(config.database_url)
    await init_db(engine)
    yield StageContext(
        config=config,
        engine=engine,
        storage=LocalStorage(config.storage.local_root),
        queue=LocalQueue(config.queue.max_receive_count),
    )
    await engine.dispose()


@pytest.fixture
def tools(monkeypatch: pytest.MonkeyPatch) -> FakeTools:
    fake = FakeTools()
    monkeypatch.setattr("mixcut.processor.tools._run", fake)
    return fake


async def force_status(ctx: StageContext, job_id: UUID, status: JobStatus) -> None:
    """Set a job's status directly, bypassing the transition rules."""
    async with new_session(ctx.engine) as session:
        job = await get_job(session, job_id)
        assert job is not None
        job.status = status.value
        await session.commit()


async def load_job(ctx: StageContext, job_id: UUID) -> Job:
    async with new_session(ctx.engine) as session:
        job = await get_job(session, job_id)
    assert job is not None
    return job


async def make_job(
    ctx: StageContext,
    sheet_text: str = TWO_TRACK_SHEET,
    status: JobStatus = JobStatus.VALIDATING,
    artwork: bytes | None = None,
    upload_sheet: bool = True,
) -> Job:
    """Create a job with its sources already uploaded."""
    job = await create_upload_job(ctx, ".jpg" if artwork is not None else None)
    ctx.storage.put_bytes(job.audio_location, job.audio_key, b"source-audio")
    if upload_sheet:
        ctx.storage.put_bytes(job.sheet_location, job.sheet_key, sheet_text.encode())
    if artwork is not None and job.artwork_location and job.artwork_key:
        ctx.storage.put_bytes(job.artwork_location, job.artwork_key, artwork)
    if status is not JobStatus.PENDING_UPLOAD:
        await force_status(ctx, job.id, status)
    return await load_job(ctx, job.id)
