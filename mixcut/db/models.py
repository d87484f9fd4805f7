# pyright: reportExplicitAny=false
"""Database models for Mixcut using SQLModel."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar
from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlmodel import Column, Field, SQLModel


def utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


def new_uuid() -> UUID:
    """Generate a new UUIDv4."""
    return uuid4()


class JobStatus(str, Enum):
    """Lifecycle status of a job."""

    PENDING_UPLOAD = "PENDING_UPLOAD"
    VALIDATING = "VALIDATING"
    QUEUED = "QUEUED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class Job(SQLModel, table=True):
    """One request to split a recording according to a sheet."""

    __tablename__: ClassVar[Any] = "jobs"

    id: UUID = Field(default_factory=new_uuid, primary_key=True)
    status: str = Field(default=JobStatus.PENDING_UPLOAD.value, index=True)

    audio_location: str
    audio_key: str
    sheet_location: str
    sheet_key: str
    artwork_location: str | None = None
    artwork_key: str | None = None

    # Set only on completion
    output_location: str | None = None
    output_prefix: str | None = None
    # Set only on failure
    error_message: str | None = None

    created_at: datetime = Field(
        default_factory=utc_now, sa_column=Column(sa.DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utc_now, sa_column=Column(sa.DateTime(timezone=True), nullable=False)
    )

    @property
    def job_status(self) -> JobStatus:
        return JobStatus(self.status)


class Track(SQLModel, table=True):
    """One validated track of a job; output key attached once it is uploaded."""

    __tablename__: ClassVar[Any] = "job_tracks"

    id: UUID = Field(default_factory=new_uuid, primary_key=True)
    job_id: UUID = Field(foreign_key="jobs.id", index=True)
    track_number: int = Field(gt=0)
    title: str
    performer: str | None = None
    start_ms: int = Field(ge=0)
    duration_ms: int | None = None  # Unknown for the last track
    output_key: str | None = None
    created_at: datetime = Field(
        default_factory=utc_now, sa_column=Column(sa.DateTime(timezone=True), nullable=False)
    )

    __table_args__ = (
        sa.UniqueConstraint("job_id", "track_number", name="uq_job_track_number"),
    )
