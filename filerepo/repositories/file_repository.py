"""Repository for file database operations."""

from typing import Iterable, List, Optional

from .base import BaseRepository
from ..exceptions import StoredFileNotFoundError
from ..models.file import File


class FileRepository(BaseRepository[File]):
    """Data access layer for file records."""

    model_class = File
    not_found_error = StoredFileNotFoundError

    def create(
        self,
        user_id: int,
        folder_id: Optional[int],
        file_name: str,
        file_path: str,
        file_type: str,
        file_size: int,
    ) -> File:
        record = File(
            user_id=user_id,
            folder_id=folder_id,
            file_name=file_name,
            file_path=file_path,
            file_type=file_type,
            file_size=file_size,
            is_archived=False,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def get_by_user(self, user_id: int) -> List[File]:
        return (
            self.db.query(File)
            .filter(File.user_id == user_id)
            .order_by(File.file_name, File.id)
            .all()
        )

    def get_by_users(self, user_ids: Iterable[int]) -> List[File]:
        return (
            self.db.query(File)
            .filter(File.user_id.in_(list(user_ids)))
            .order_by(File.file_name, File.id)
            .all()
        )

    def get_by_folder(self, folder_id: int) -> List[File]:
        return (
            self.db.query(File)
            .filter(File.folder_id == folder_id)
            .order_by(File.file_name, File.id)
            .all()
        )

    def get_by_folders(self, folder_ids: Iterable[int]) -> List[File]:
        ids = list(folder_ids)
        if not ids:
            return []
        return self.db.query(File).filter(File.folder_id.in_(ids)).all()
