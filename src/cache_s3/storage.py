"""
Object store backends -- where cache archives live.

Each backend knows how to check, put, get and delete one object under
a string key with a small string-to-string metadata mapping. The cache
core never talks to a transport directly.

S3: Any S3-compatible service through boto3 (AWS, MinIO, LocalStack).
Local: Plain directory with JSON metadata sidecars. For NAS, USB drives
and tests.
"""

from __future__ import annotations

import io
import json
import logging
import os
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, Mapping, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .config import CommonArgs, StoreType
from .errors import ObjectNotFoundError, StoreError

logger = logging.getLogger("cache_s3.storage")

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


class ObjectStore(ABC):
    """Abstract object store capability."""

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Whether an object is stored under ``key``."""

    @abstractmethod
    def head(self, key: str) -> Optional[dict[str, str]]:
        """Metadata of the object under ``key``, or None if absent."""

    @abstractmethod
    def put(self, key: str, body: BinaryIO, metadata: Mapping[str, str]) -> None:
        """Store ``body`` under ``key``, replacing any existing object.

        Args:
            key: Object key.
            body: Readable binary stream, consumed to exhaustion.
            metadata: String metadata attached to the object.

        Raises:
            StoreError: On any transport or permission failure.
        """

    @abstractmethod
    def get(self, key: str) -> tuple[BinaryIO, dict[str, str]]:
        """Open the object under ``key`` for streaming.

        Returns:
            Readable body stream (caller closes it) and its metadata.
            Reading the body raises StoreError on transport failures.

        Raises:
            ObjectNotFoundError: If nothing is stored under ``key``.
            StoreError: On any other failure.
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the object under ``key``. Absence is not an error."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable store description."""


def _is_missing(exc: ClientError) -> bool:
    error = exc.response.get("Error", {})
    return str(error.get("Code", "")) in _MISSING_CODES


class _StoreBody(io.RawIOBase):
    """Readable body that reports transport failures as StoreError."""

    def __init__(self, raw, errors: tuple[type[BaseException], ...], location: str):
        self._raw = raw
        self._errors = errors
        self._location = location

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        try:
            data = self._raw.read(len(buffer))
        except self._errors as exc:
            raise StoreError(f"Failed to read {self._location}: {exc}") from exc
        n = len(data)
        buffer[:n] = data
        return n

    def close(self) -> None:
        if not self.closed:
            try:
                self._raw.close()
            finally:
                super().close()


class S3ObjectStore(ObjectStore):
    """S3 or S3-compatible bucket accessed through boto3."""

    def __init__(
        self,
        bucket: str,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        client=None,
    ):
        """Initialize the store.

        Credentials come from the standard boto3 discovery chain.

        Args:
            bucket: Bucket name.
            region: AWS region, default from the environment.
            endpoint_url: Custom endpoint for S3-compatible services.
            client: Pre-built boto3 S3 client, mostly for tests.
        """
        if not bucket:
            raise ValueError("An S3 bucket name is required")
        self.bucket = bucket
        if client is None:
            kwargs = {"config": BotoConfig(retries={"max_attempts": 5, "mode": "standard"})}
            if region:
                kwargs["region_name"] = region
            if endpoint_url:
                kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("s3", **kwargs)
        self._client = client

    @property
    def name(self) -> str:
        return f"s3://{self.bucket}"

    def head(self, key: str) -> Optional[dict[str, str]]:
        try:
            response = self._client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _is_missing(exc):
                return None
            raise StoreError(f"Failed to query s3://{self.bucket}/{key}: {exc}") from exc
        except BotoCoreError as exc:
            raise StoreError(f"Failed to query s3://{self.bucket}/{key}: {exc}") from exc
        return dict(response.get("Metadata", {}))

    def exists(self, key: str) -> bool:
        return self.head(key) is not None

    def put(self, key: str, body: BinaryIO, metadata: Mapping[str, str]) -> None:
        try:
            self._client.upload_fileobj(
                body,
                self.bucket,
                key,
                ExtraArgs={"Metadata": dict(metadata)},
            )
        except (BotoCoreError, ClientError) as exc:
            raise StoreError(f"Failed to upload s3://{self.bucket}/{key}: {exc}") from exc
        logger.debug("Uploaded s3://%s/%s", self.bucket, key)

    def get(self, key: str) -> tuple[BinaryIO, dict[str, str]]:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _is_missing(exc):
                raise ObjectNotFoundError(f"No object at s3://{self.bucket}/{key}") from exc
            raise StoreError(f"Failed to download s3://{self.bucket}/{key}: {exc}") from exc
        except BotoCoreError as exc:
            raise StoreError(f"Failed to download s3://{self.bucket}/{key}: {exc}") from exc
        body = _StoreBody(
            response["Body"], (BotoCoreError, ClientError), f"s3://{self.bucket}/{key}"
        )
        return body, dict(response.get("Metadata", {}))

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _is_missing(exc):
                return
            raise StoreError(f"Failed to delete s3://{self.bucket}/{key}: {exc}") from exc
        except BotoCoreError as exc:
            raise StoreError(f"Failed to delete s3://{self.bucket}/{key}: {exc}") from exc
        logger.debug("Deleted s3://%s/%s", self.bucket, key)


class LocalObjectStore(ObjectStore):
    """Directory-backed store. Object keys map to relative file paths."""

    def __init__(self, root: Path):
        self.root = Path(root).expanduser()
        self.root.mkdir(parents=True, exist_ok=True)

    @property
    def name(self) -> str:
        return f"local:{self.root}"

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise StoreError(f"Key escapes the store root: {key}")
        return path

    def _meta_path(self, key: str) -> Path:
        path = self._path(key)
        return path.with_name(path.name + ".meta.json")

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def head(self, key: str) -> Optional[dict[str, str]]:
        if not self.exists(key):
            return None
        meta_path = self._meta_path(key)
        if not meta_path.exists():
            return {}
        try:
            return json.loads(meta_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Failed to read metadata for {key}: {exc}") from exc

    def put(self, key: str, body: BinaryIO, metadata: Mapping[str, str]) -> None:
        path = self._path(key)
        meta_path = self._meta_path(key)
        tmp = path.with_name(path.name + ".part")
        meta_tmp = meta_path.with_name(meta_path.name + ".part")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "wb") as f:
                shutil.copyfileobj(body, f)
            meta_tmp.write_text(json.dumps(dict(metadata), indent=2), encoding="utf-8")
            os.replace(meta_tmp, meta_path)
        except OSError as exc:
            tmp.unlink(missing_ok=True)
            meta_tmp.unlink(missing_ok=True)
            raise StoreError(f"Failed to store {key} in {self.root}: {exc}") from exc
        try:
            os.replace(tmp, path)
        except OSError as exc:
            # new sidecar, old body: drop the object rather than keep a mismatched pair
            tmp.unlink(missing_ok=True)
            path.unlink(missing_ok=True)
            meta_path.unlink(missing_ok=True)
            raise StoreError(f"Failed to store {key} in {self.root}: {exc}") from exc
        logger.debug("Stored %s in %s", key, self.root)

    def get(self, key: str) -> tuple[BinaryIO, dict[str, str]]:
        metadata = self.head(key)
        if metadata is None:
            raise ObjectNotFoundError(f"No object at {key} in {self.root}")
        try:
            raw = open(self._path(key), "rb")
        except OSError as exc:
            raise StoreError(f"Failed to open {key} in {self.root}: {exc}") from exc
        return _StoreBody(raw, (OSError,), f"{key} in {self.root}"), metadata

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
            self._meta_path(key).unlink(missing_ok=True)
        except OSError as exc:
            raise StoreError(f"Failed to delete {key} in {self.root}: {exc}") from exc


def create_store(common: CommonArgs) -> ObjectStore:
    """Factory function to create the configured object store.

    Args:
        common: Invocation settings naming the store and its location.

    Returns:
        Instantiated ObjectStore.

    Raises:
        ValueError: If required settings for the store are missing.
    """
    if common.store == StoreType.LOCAL:
        if not common.store_dir:
            raise ValueError("A store directory is required for the local store")
        return LocalObjectStore(common.store_dir)
    if not common.bucket:
        raise ValueError("A bucket name is required for the s3 store")
    return S3ObjectStore(
        bucket=common.bucket,
        region=common.region,
        endpoint_url=common.endpoint_url,
    )
