"""Folder API: create, rename/reparent, recursive delete.

All three operate on the caller's own folders only; another user's folder
id answers 404 exactly like a missing one.
"""

import logging

from fastapi import APIRouter, Depends, Response

from .deps import folder_response, get_tree_service
from ..core.auth import AuthContext, require_auth
from ..schemas.folder import FolderCreate, FolderResponse, FolderUpdate
from ..services import RepositoryTreeService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/folders", tags=["folders"])


@router.post("", response_model=FolderResponse, status_code=201)
def create_folder(
    data: FolderCreate,
    auth: AuthContext = Depends(require_auth),
    service: RepositoryTreeService = Depends(get_tree_service),
):
    """Create an empty folder at the root or under ``parent_id``."""
    folder = service.create_folder(auth, data.folder_name, data.parent_id)
    return folder_response(folder, service.storage)


@router.post("/{folder_id}", response_model=FolderResponse)
def update_folder(
    folder_id: int,
    data: FolderUpdate,
    auth: AuthContext = Depends(require_auth),
    service: RepositoryTreeService = Depends(get_tree_service),
):
    """Rename and/or move a folder. Contents move along with it."""
    folder = service.update_folder(folder_id, auth, data.folder_name, data.parent_id)
    return folder_response(folder, service.storage)


@router.delete("/{folder_id}", status_code=204)
def delete_folder(
    folder_id: int,
    auth: AuthContext = Depends(require_auth),
    service: RepositoryTreeService = Depends(get_tree_service),
):
    """Delete a folder together with all its subfolders and files."""
    service.delete_folder(folder_id, auth)
    return Response(status_code=204)
