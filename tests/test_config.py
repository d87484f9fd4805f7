from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from mixcut.config import (
    Config,
    QueueBackendName,
    QueueConfig,
    StorageBackendName,
    StorageConfig,
    WorkerConfig,
)

CONFIG_YAML = """\
database_url: ${DATABASE_URL}
log_level: debug
storage:
  backend: s3
  uploads_location: ${UPLOADS_BUCKET}
  outputs_location: mixcut-outputs
queue:
  backend: sqs
  queue_url: https://sqs.example/queue
  max_receive_count: 5
worker:
  output_prefix: /tracks/
  output_extension: .M4A
"""


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    _ = path.write_text(text)
    return path


def test_load_substitutes_env_vars(tmp_path: Path):
    path = _write(tmp_path, CONFIG_YAML)

    config = Config.load(
        path, environ={"DATABASE_URL": "postgresql://db/mixcut", "UPLOADS_BUCKET": "uploads-1"}
    )

    assert config.database_url == "postgresql://db/mixcut"
    assert config.log_level == "DEBUG"
    assert config.storage.backend is StorageBackendName.S3
    assert config.storage.uploads_location == "uploads-1"
    assert config.queue.backend is QueueBackendName.SQS
    assert config.queue.max_receive_count == 5
    assert config.worker.output_prefix == "tracks"
    assert config.worker.output_extension == ".m4a"


def test_load_reports_every_missing_env_var(tmp_path: Path):
    path = _write(tmp_path, CONFIG_YAML)

    with pytest.raises(ValueError, match="DATABASE_URL, UPLOADS_BUCKET"):
        _ = Config.load(path, environ={})


def test_load_missing_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        _ = Config.load(tmp_path / "nope.yaml", environ={})


def test_local_defaults():
    config = Config(database_url="sqlite+aiosqlite:///x.db")

    assert config.storage.backend is StorageBackendName.LOCAL
    assert config.storage.uploads_location == "uploads"
    assert config.storage.outputs_location == "outputs"
    assert config.queue.backend is QueueBackendName.LOCAL
    assert config.worker.retry_transient_errors is False


def test_s3_requires_both_locations():
    with pytest.raises(ValidationError):
        _ = StorageConfig(backend="s3", uploads_location="only-uploads")


def test_sqs_requires_queue_url():
    with pytest.raises(ValidationError):
        _ = QueueConfig(backend="sqs")


def test_max_receive_count_must_be_positive():
    with pytest.raises(ValidationError):
        _ = QueueConfig(max_receive_count=0)


def test_output_extension_needs_dot():
    with pytest.raises(ValidationError):
        _ = WorkerConfig(output_extension="m4a")


def test_unknown_log_level():
    with pytest.raises(ValidationError):
        _ = Config(database_url="sqlite+aiosqlite:///x.db", log_level="chatty")
