"""Object store abstraction for job sources and outputs (local or S3-compatible).

The backend is chosen by ``storage.backend`` in config.yaml:
- s3 → S3Storage (production; AWS S3, Cloudflare R2 or MinIO via endpoint_url)
- local → LocalStorage (development; one directory per location under local_root)
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Protocol

import boto3
from botocore.exceptions import ClientError

from .config import StorageBackendName, StorageConfig
from .errors import ObjectNotFoundError

_NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404"}


class ObjectStore(Protocol):
    """Protocol for object store backends."""

    def download_file(self, location: str, key: str, dest_path: Path) -> None:
        """Download an object to a local file."""
        ...

    def read_text(self, location: str, key: str) -> str:
        """Read an object as UTF-8 text (undecodable bytes are replaced)."""
        ...

    def upload_file(self, local_path: Path, location: str, key: str) -> None:
        """Upload a local file, overwriting any existing object."""
        ...

    def put_bytes(self, location: str, key: str, data: bytes, content_type: str | None = None) -> None:
        """Store raw bytes under a key."""
        ...

    def list_keys(self, location: str, prefix: str) -> list[str]:
        """List object keys under a prefix."""
        ...


class LocalStorage:
    """Local filesystem storage backend."""

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def _path(self, location: str, key: str) -> Path:
        return self.root / location / key

    def download_file(self, location: str, key: str, dest_path: Path) -> None:
        """Copy an object to a local file."""
        source = self._path(location, key)
        if not source.is_file():
            raise ObjectNotFoundError(location, key)
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        _ = shutil.copyfile(source, dest_path)

    def read_text(self, location: str, key: str) -> str:
        """Read an object as UTF-8 text (undecodable bytes are replaced)."""
        source = self._path(location, key)
        if not source.is_file():
            raise ObjectNotFoundError(location, key)
        return source.read_bytes().decode("utf-8-sig", errors="replace")

    def upload_file(self, local_path: Path, location: str, key: str) -> None:
        """Copy a local file into the store."""
        dest = self._path(location, key)
        dest.parent.mkdir(parents=True, exist_ok=True)
        _ = shutil.copyfile(local_path, dest)

    def put_bytes(self, location: str, key: str, data: bytes, content_type: str | None = None) -> None:
        """Write raw bytes into the store."""
        dest = self._path(location, key)
        dest.parent.mkdir(parents=True, exist_ok=True)
        _ = dest.write_bytes(data)

    def list_keys(self, location: str, prefix: str) -> list[str]:
        """List object keys under a prefix."""
        base = self.root / location
        if not base.exists():
            return []
        keys = [p.relative_to(base).as_posix() for p in base.rglob("*") if p.is_file()]
        return sorted(k for k in keys if k.startswith(prefix))


class S3Storage:
    """S3-compatible storage backend."""

    def __init__(self, storage_config: StorageConfig):
        """Initialize S3 storage with configuration."""
        self.config = storage_config
        self.s3_client = boto3.client(
            "s3",
            endpoint_url=storage_config.endpoint_url,
            region_name=storage_config.region_name,
        )

    @staticmethod
    def _is_not_found(error: ClientError) -> bool:
        code = str(error.response.get("Error", {}).get("Code", ""))
        status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        return code in _NOT_FOUND_CODES or status == 404

    def download_file(self, location: str, key: str, dest_path: Path) -> None:
        """Download an object to a local file."""
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self.s3_client.download_file(location, key, str(dest_path))
        except ClientError as e:
            if self._is_not_found(e):
                raise ObjectNotFoundError(location, key) from e
            raise

    def read_text(self, location: str, key: str) -> str:
        """Read an object as UTF-8 text (undecodable bytes are replaced)."""
        try:
            response = self.s3_client.get_object(Bucket=location, Key=key)
        except ClientError as e:
            if self._is_not_found(e):
                raise ObjectNotFoundError(location, key) from e
            raise
        return response["Body"].read().decode("utf-8-sig", errors="replace")

    def upload_file(self, local_path: Path, location: str, key: str) -> None:
        """Upload a local file, overwriting any existing object."""
        self.s3_client.upload_file(str(local_path), location, key)

    def put_bytes(self, location: str, key: str, data: bytes, content_type: str | None = None) -> None:
        """Store raw bytes under a key."""
        extra = {"ContentType": content_type} if content_type else {}
        _ = self.s3_client.put_object(Bucket=location, Key=key, Body=data, **extra)

    def list_keys(self, location: str, prefix: str) -> list[str]:
        """List object keys under a prefix."""
        keys: list[str] = []
        paginator = self.s3_client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=location, Prefix=prefix):
            for obj in page.get("Contents", []):
                key = obj.get("Key")
                if key and not key.endswith("/"):
                    keys.append(key)
        return keys


def create_storage(storage_config: StorageConfig) -> ObjectStore:
    """Build the configured object store backend."""
    if storage_config.backend is StorageBackendName.S3:
        return S3Storage(storage_config)
    return LocalStorage(storage_config.local_root)
