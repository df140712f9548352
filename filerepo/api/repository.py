"""Repository tree endpoints.

    GET /api/my-repository    — caller's full tree
    GET /api/all-repositories — every owner's tree, paginated (principal only)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from .deps import get_reader
from ..core.auth import AuthContext, require_auth, require_principal
from ..schemas.repository import AllRepositoriesResponse, MyRepositoryResponse
from ..services import RepositoryReader
from ..services.repository_reader import DEFAULT_PER_PAGE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["repository"])


@router.get("/my-repository", response_model=MyRepositoryResponse)
def get_my_repository(
    auth: AuthContext = Depends(require_auth),
    reader: RepositoryReader = Depends(get_reader),
):
    """Caller's top-level folders with nested subfolders and files, plus root files."""
    return reader.list_my_repository(auth.user_id)


@router.get("/all-repositories", response_model=AllRepositoriesResponse)
def get_all_repositories(
    search: Optional[str] = Query(None, max_length=255, description="Case-insensitive match on user, folder or file names"),
    cursor: Optional[int] = Query(None, ge=0, description="next_cursor from the previous page"),
    per_page: int = Query(DEFAULT_PER_PAGE, ge=1, le=100),
    auth: AuthContext = Depends(require_principal),
    reader: RepositoryReader = Depends(get_reader),
):
    """Cross-user view for principals. Every node carries its owner's name."""
    return reader.list_all_repositories(search=search, cursor=cursor, per_page=per_page)
