"""Pydantic schemas for API validation."""

from .folder import FolderCreate, FolderUpdate, FolderResponse
from .file import FileRename, FileResponse
from .repository import (
    FileNode,
    FolderNode,
    MyRepositoryResponse,
    UserRepository,
    AllRepositoriesResponse,
)
from .user import (
    RegisterRequest,
    LoginRequest,
    UserCreate,
    UserUpdate,
    UserResponse,
    LoginResponse,
    AuditLogResponse,
)

__all__ = [
    "FolderCreate",
    "FolderUpdate",
    "FolderResponse",
    "FileRename",
    "FileResponse",
    "FileNode",
    "FolderNode",
    "MyRepositoryResponse",
    "UserRepository",
    "AllRepositoriesResponse",
    "RegisterRequest",
    "LoginRequest",
    "UserCreate",
    "UserUpdate",
    "UserResponse",
    "LoginResponse",
    "AuditLogResponse",
]
