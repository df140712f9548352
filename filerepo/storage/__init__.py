"""Physical storage backends."""

from functools import lru_cache

from ..core.config import settings
from .base import (
    StorageBackend,
    StorageError,
    StorageNotFoundError,
    StorageConflictError,
    StoredObject,
)
from .local import LocalStorage


@lru_cache(maxsize=1)
def get_storage() -> StorageBackend:
    """FastAPI dependency returning the process-wide storage backend.

    Tests override this dependency with a backend rooted in a temp dir.
    """
    return LocalStorage(settings.storage_root, settings.public_base_url)


__all__ = [
    "StorageBackend",
    "StorageError",
    "StorageNotFoundError",
    "StorageConflictError",
    "StoredObject",
    "LocalStorage",
    "get_storage",
]
