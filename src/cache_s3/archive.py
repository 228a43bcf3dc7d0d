"""
Archive codec -- tar streams through gzip or LZ4.

Everything here works on file objects so that packing, compressing and
hashing happen in a single pass with constant memory. Paths are stored
absolute (leading ``/`` stripped, as tar does), so a cache restored to
``/`` lands exactly where it was taken from.
"""

from __future__ import annotations

import gzip
import io
import logging
import os
import tarfile
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Sequence

import lz4.frame

from .errors import PackError, UnpackError
from .models import CompressionScheme

logger = logging.getLogger("cache_s3.archive")


class HashingWriter(io.RawIOBase):
    """Write-through wrapper feeding every byte to a hash object."""

    def __init__(self, sink: BinaryIO, hasher):
        self._sink = sink
        self.hasher = hasher
        self.bytes_written = 0

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        view = memoryview(data)
        self.hasher.update(view)
        self._sink.write(view)
        self.bytes_written += len(view)
        return len(view)


class HashingReader(io.RawIOBase):
    """Read-through wrapper feeding every byte read to a hash object."""

    def __init__(self, source: BinaryIO, hasher):
        self._source = source
        self.hasher = hasher
        self.bytes_read = 0

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        data = self._source.read(len(buffer))
        n = len(data)
        buffer[:n] = data
        self.hasher.update(data)
        self.bytes_read += n
        return n


@contextmanager
def _compressor(scheme: CompressionScheme, sink: BinaryIO) -> Iterator[BinaryIO]:
    if scheme is CompressionScheme.GZIP:
        # mtime=0 keeps identical content byte-identical across runs
        stream = gzip.GzipFile(fileobj=sink, mode="wb", mtime=0)
    else:
        stream = lz4.frame.LZ4FrameFile(sink, mode="wb")
    try:
        yield stream
    finally:
        stream.close()


@contextmanager
def _decompressor(scheme: CompressionScheme, source: BinaryIO) -> Iterator[BinaryIO]:
    if scheme is CompressionScheme.GZIP:
        stream = gzip.GzipFile(fileobj=source, mode="rb")
    else:
        stream = lz4.frame.LZ4FrameFile(source, mode="rb")
    try:
        yield stream
    finally:
        stream.close()


def _archive_name(path: Path) -> str:
    return str(path.absolute()).lstrip(os.sep)


def pack(paths: Sequence[Path], scheme: CompressionScheme, sink: BinaryIO) -> int:
    """Write a compressed tar archive of ``paths`` into ``sink``.

    Missing paths are skipped with a warning. Directories are added
    recursively. ``sink`` is not closed.

    Args:
        paths: Files and directories to archive, in order.
        scheme: Compression to apply to the tar stream.
        sink: Writable binary stream receiving the compressed bytes.

    Returns:
        Number of top-level paths actually archived.

    Raises:
        PackError: If a path cannot be read or the archive cannot be
            written.
    """
    added = 0
    try:
        with _compressor(scheme, sink) as stream:
            with tarfile.open(fileobj=stream, mode="w|", format=tarfile.PAX_FORMAT) as tar:
                for path in paths:
                    path = Path(path).expanduser()
                    if not path.exists() and not path.is_symlink():
                        logger.warning("Path does not exist, skipping: %s", path)
                        continue
                    tar.add(str(path), arcname=_archive_name(path))
                    logger.debug("Archived %s", path)
                    added += 1
    except (tarfile.TarError, OSError) as exc:
        raise PackError(f"Failed to archive {len(paths)} path(s): {exc}") from exc
    logger.info("Packed %d of %d path(s) with %s", added, len(paths), scheme.value)
    return added


def unpack(source: BinaryIO, scheme: CompressionScheme, dest_root: Optional[Path] = None) -> Path:
    """Extract a compressed tar archive from ``source``.

    Args:
        source: Readable binary stream of compressed bytes.
        scheme: Compression the archive was written with.
        dest_root: Extraction root. Defaults to the filesystem root,
            which puts files back at their original absolute locations.

    Returns:
        The extraction root.

    Raises:
        UnpackError: If the stream is not a valid archive or extraction
            fails on the local filesystem.
    """
    root = Path(dest_root) if dest_root else Path(os.sep)
    try:
        root.mkdir(parents=True, exist_ok=True)
        with _decompressor(scheme, source) as stream:
            with tarfile.open(fileobj=stream, mode="r|") as tar:
                tar.extractall(path=str(root), filter="tar")
    except (tarfile.TarError, OSError, EOFError, RuntimeError) as exc:
        raise UnpackError(f"Failed to unpack archive into {root}: {exc}") from exc

    logger.info("Archive unpacked to %s", root)
    return root
