"""API routes."""

from .auth_routes import router as auth_router
from .files import router as files_router
from .folders import router as folders_router
from .principal import router as principal_router
from .repository import router as repository_router
from .users import router as users_router

__all__ = [
    "auth_router",
    "files_router",
    "folders_router",
    "principal_router",
    "repository_router",
    "users_router",
]
