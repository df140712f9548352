"""Business logic services."""

from .repository_service import RepositoryTreeService
from .repository_reader import RepositoryReader

__all__ = ["RepositoryTreeService", "RepositoryReader"]
