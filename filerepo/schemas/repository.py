"""Repository tree schemas."""

from pydantic import BaseModel
from typing import Optional, List

from .file import FileResponse
from .folder import FolderResponse


class FileNode(FileResponse):
    """A file inside a repository tree."""
    user_full_name: Optional[str] = None


class FolderNode(FolderResponse):
    """A folder with its nested subfolders and files."""
    user_full_name: Optional[str] = None
    children: List['FolderNode'] = []
    files: List[FileNode] = []


class MyRepositoryResponse(BaseModel):
    """The caller's whole repository: top-level folders and root files."""
    folders: List[FolderNode] = []
    files: List[FileNode] = []


class UserRepository(BaseModel):
    """One owner's repository in the principal's cross-user view."""
    user_id: int
    user_full_name: str
    folders: List[FolderNode] = []
    files: List[FileNode] = []


class AllRepositoriesResponse(BaseModel):
    """A page of owners' repositories.

    ``next_cursor`` is the value to pass as ``cursor`` for the next page, or
    ``None`` on the last page.
    """
    repositories: List[UserRepository] = []
    per_page: int
    next_cursor: Optional[int] = None


FolderNode.model_rebuild()
