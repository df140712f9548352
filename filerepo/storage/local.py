"""Local-disk storage backend.

Maps storage-relative paths onto a directory tree below ``root``. The same
tree is served read-only at ``/storage`` by the API, which is what
``public_locator`` points at.
"""

import logging
import os
import uuid
from pathlib import Path
from typing import BinaryIO
from urllib.parse import quote

from ..exceptions import FileTooLargeError
from .base import (
    CHUNK_SIZE,
    StorageBackend,
    StorageConflictError,
    StorageError,
    StorageNotFoundError,
    StoredObject,
    normalize_path,
)

logger = logging.getLogger(__name__)


class LocalStorage(StorageBackend):
    """Filesystem implementation of :class:`StorageBackend`."""

    def __init__(self, root: str, public_base_url: str):
        self.root = Path(root).resolve()
        self.public_base_url = public_base_url.rstrip("/")

    def _abs(self, path: str) -> Path:
        """Absolute filesystem path for a storage-relative path.

        Resolves symlinks and refuses anything that lands outside ``root``.
        """
        target = (self.root / normalize_path(path)).resolve()
        if target == self.root or self.root not in target.parents:
            raise StorageError(f"Path escapes storage root: {path!r}", path)
        return target

    def ensure_directory(self, path: str) -> None:
        target = self._abs(path)
        try:
            target.mkdir(parents=True, exist_ok=True)
        except FileExistsError as e:
            # A regular file sits where a directory is expected.
            raise StorageConflictError(f"Not a directory: {path}", path) from e
        except OSError as e:
            logger.exception("Failed to create directory: %s", path)
            raise StorageError(f"Failed to create directory: {path}", path) from e

    def move(self, old_path: str, new_path: str) -> None:
        source = self._abs(old_path)
        destination = self._abs(new_path)

        if not source.exists():
            raise StorageNotFoundError(f"Source does not exist: {old_path}", old_path)

        if destination.exists():
            if destination.is_dir() and not any(destination.iterdir()):
                # An empty placeholder directory may be replaced.
                destination.rmdir()
            else:
                raise StorageConflictError(f"Destination already exists: {new_path}", new_path)

        try:
            logger.info("Moving in storage: %s -> %s", old_path, new_path)
            destination.parent.mkdir(parents=True, exist_ok=True)
            os.replace(source, destination)
        except OSError as e:
            logger.exception("Move failed: %s -> %s", old_path, new_path)
            raise StorageError(f"Move failed: {old_path} -> {new_path}", old_path) from e

    def delete_file(self, path: str) -> bool:
        target = self._abs(path)
        try:
            target.unlink()
        except FileNotFoundError:
            logger.warning("File already absent from storage: %s", path)
            return False
        except OSError as e:
            logger.exception("Failed to delete file from storage: %s", path)
            raise StorageError(f"Failed to delete file: {path}", path) from e
        logger.info("Deleted file from storage: %s", path)
        return True

    def delete_empty_directory(self, path: str) -> bool:
        try:
            target = self._abs(path)
            target.rmdir()
        except FileNotFoundError:
            logger.warning("Directory already absent from storage: %s", path)
            return False
        except (OSError, StorageError) as e:
            # Non-empty, not a directory, or permission problems.
            logger.warning("Directory not removed from storage: %s (%s)", path, e)
            return False
        logger.info("Removed directory from storage: %s", path)
        return True

    def exists(self, path: str) -> bool:
        return self._abs(path).exists()

    def write_uploaded_object(self, path: str, source: BinaryIO, max_bytes: int) -> StoredObject:
        """Stream *source* to *path*, rejecting it once it exceeds *max_bytes*.

        Bytes are written to a hidden temporary sibling and renamed into place
        only after the whole stream was accepted.
        """
        target = self._abs(path)
        if target.exists():
            raise StorageConflictError(f"Object already exists: {path}", path)

        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(f".{target.name}.{uuid.uuid4().hex[:8]}.part")
        size = 0
        try:
            with open(tmp, "wb") as out:
                while True:
                    chunk = source.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > max_bytes:
                        raise FileTooLargeError(max_bytes)
                    out.write(chunk)
            os.replace(tmp, target)
        except FileTooLargeError:
            logger.warning("Upload rejected, exceeds %d bytes: %s", max_bytes, path)
            tmp.unlink(missing_ok=True)
            raise
        except OSError as e:
            logger.exception("Failed to write upload to storage: %s", path)
            tmp.unlink(missing_ok=True)
            raise StorageError(f"Failed to write object: {path}", path) from e

        logger.info("Stored upload: %s (%d bytes)", path, size)
        return StoredObject(path=normalize_path(path), size=size)

    def open_for_read(self, path: str) -> BinaryIO:
        target = self._abs(path)
        if not target.is_file():
            raise StorageNotFoundError(f"Object does not exist: {path}", path)
        return open(target, "rb")

    def public_locator(self, path: str) -> str:
        return f"{self.public_base_url}/{quote(normalize_path(path))}"
