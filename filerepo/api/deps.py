"""Shared FastAPI dependencies and response helpers for the repository routes."""

from fastapi import Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.file import File
from ..models.folder import Folder
from ..schemas.file import FileResponse
from ..schemas.folder import FolderResponse
from ..services import RepositoryReader, RepositoryTreeService
from ..storage import StorageBackend, get_storage


def get_tree_service(
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
) -> RepositoryTreeService:
    return RepositoryTreeService(db, storage)


def get_reader(
    db: Session = Depends(get_db),
    storage: StorageBackend = Depends(get_storage),
) -> RepositoryReader:
    return RepositoryReader(db, storage)


def folder_response(folder: Folder, storage: StorageBackend) -> FolderResponse:
    response = FolderResponse.model_validate(folder)
    if folder.path:
        response.folder_url = storage.public_locator(folder.path)
    return response


def file_response(record: File, storage: StorageBackend) -> FileResponse:
    response = FileResponse.model_validate(record)
    response.file_url = storage.public_locator(record.file_path)
    return response
