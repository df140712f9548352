"""Data access repositories."""

from .base import BaseRepository
from .folder_repository import FolderRepository
from .file_repository import FileRepository

__all__ = [
    "BaseRepository",
    "FolderRepository",
    "FileRepository",
]
