"""Storage backend interface.

Every physical operation on the file store goes through a ``StorageBackend``.
Paths are always storage-relative (``user_alice/Reports/<token>_q1.pdf``);
implementations map them onto a local directory, a bucket, or memory.

The repository service receives a backend as an injected dependency, so tests
substitute an in-memory implementation of the same contract.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import BinaryIO, Iterator

# Chunk size used when streaming uploads and downloads.
CHUNK_SIZE = 64 * 1024


class StorageError(Exception):
    """Physical storage operation failed."""

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class StorageNotFoundError(StorageError):
    """Source object or directory does not exist."""


class StorageConflictError(StorageError):
    """Destination is occupied and would be overwritten."""


@dataclass(frozen=True)
class StoredObject:
    """Result of a completed upload."""
    path: str
    size: int


def normalize_path(path: str) -> str:
    """Validate a storage-relative path and return it without stray slashes.

    Raises:
        StorageError: On empty, absolute, or traversing (``..``) paths.
    """
    if not path or path.startswith("/") or "\\" in path:
        raise StorageError(f"Invalid storage path: {path!r}", path)
    parts = [p for p in path.split("/") if p]
    if not parts or any(p in (".", "..") for p in parts):
        raise StorageError(f"Invalid storage path: {path!r}", path)
    return "/".join(parts)


def iter_chunks(stream: BinaryIO, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield a readable binary stream in chunks, closing it at the end."""
    try:
        while True:
            chunk = stream.read(chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        stream.close()


class StorageBackend(abc.ABC):
    """Capability set for the physical file store.

    Contract:
        ensure_directory       -- idempotent, creates missing intermediates
        move                   -- StorageNotFoundError if source is missing,
                                  StorageConflictError if destination is a file
                                  or a non-empty directory
        delete_file            -- returns False if already gone
        delete_empty_directory -- never raises; logs and ignores missing or
                                  non-empty directories
        exists                 -- file or directory
        write_uploaded_object  -- enforces max_bytes before anything becomes
                                  visible at *path*; never overwrites
        open_for_read          -- binary stream, StorageNotFoundError if missing
        public_locator         -- externally dereferenceable URL
    """

    @abc.abstractmethod
    def ensure_directory(self, path: str) -> None:
        ...

    @abc.abstractmethod
    def move(self, old_path: str, new_path: str) -> None:
        ...

    @abc.abstractmethod
    def delete_file(self, path: str) -> bool:
        ...

    @abc.abstractmethod
    def delete_empty_directory(self, path: str) -> bool:
        ...

    @abc.abstractmethod
    def exists(self, path: str) -> bool:
        ...

    @abc.abstractmethod
    def write_uploaded_object(self, path: str, source: BinaryIO, max_bytes: int) -> StoredObject:
        ...

    @abc.abstractmethod
    def open_for_read(self, path: str) -> BinaryIO:
        ...

    @abc.abstractmethod
    def public_locator(self, path: str) -> str:
        ...
