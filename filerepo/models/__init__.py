"""Database models."""

from .user import User, RevokedToken, AuditLog
from .folder import Folder
from .file import File

__all__ = [
    "User", "RevokedToken", "AuditLog",
    "Folder", "File",
]
