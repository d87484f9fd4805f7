"""Collaborators shared by every stage invocation."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine

from ..config import Config
from ..db.config import create_engine
from ..queue import JobQueue, create_queue
from ..storage import ObjectStore, create_storage


@dataclass
class StageContext:
    """Configuration plus the record store, object store and queue."""

    config: Config
    engine: AsyncEngine
    storage: ObjectStore
    queue: JobQueue

    @classmethod
    def from_config(cls, config: Config) -> StageContext:
        return cls(
            config=config,
            engine=create_engine(config.database_url),
            storage=create_storage(config.storage),
            queue=create_queue(config.queue),
        )
