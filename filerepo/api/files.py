"""File API: upload, rename, delete, download, preview.

Uploads are multipart (``file`` plus optional ``folder_id``) and limited to
``MAX_UPLOAD_BYTES``. Download and preview stream the stored object; the
owner and principals may read a file, anyone else gets 404.
"""

import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile
from fastapi.responses import StreamingResponse

from .deps import file_response, get_tree_service
from ..core.auth import AuthContext, require_auth
from ..schemas.file import FileRename, FileResponse
from ..services import RepositoryTreeService
from ..storage.base import iter_chunks

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/files", tags=["files"])


def _content_disposition(disposition: str, filename: str) -> str:
    """Header value carrying both an ASCII fallback and the RFC 5987 UTF-8 name."""
    fallback = filename.encode("ascii", "replace").decode("ascii").replace('"', "_").replace("?", "_")
    return f"{disposition}; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


@router.post("", response_model=FileResponse, status_code=201)
def upload_file(
    file: UploadFile = File(..., description="File to upload (max 10 MiB)"),
    folder_id: Optional[int] = Form(None, description="Target folder; omit for the root"),
    auth: AuthContext = Depends(require_auth),
    service: RepositoryTreeService = Depends(get_tree_service),
):
    """Upload a file into one of the caller's folders or their root."""
    try:
        record = service.upload_file(
            auth, folder_id, file.filename, file.content_type, file.file
        )
    finally:
        file.file.close()
    return file_response(record, service.storage)


@router.post("/{file_id}", response_model=FileResponse)
def rename_file(
    file_id: int,
    data: FileRename,
    auth: AuthContext = Depends(require_auth),
    service: RepositoryTreeService = Depends(get_tree_service),
):
    """Rename a file. Its extension never changes."""
    record = service.rename_file(file_id, auth, data.file_name)
    return file_response(record, service.storage)


@router.delete("/{file_id}", status_code=204)
def delete_file(
    file_id: int,
    auth: AuthContext = Depends(require_auth),
    service: RepositoryTreeService = Depends(get_tree_service),
):
    service.delete_file(file_id, auth)
    return Response(status_code=204)


def _stream(file_id: int, auth: AuthContext, service: RepositoryTreeService, disposition: str) -> StreamingResponse:
    record, stream = service.get_file_for_read(file_id, auth)
    logger.info("Serving file %s (%s) to user %s", record.id, disposition, auth.user_id)
    return StreamingResponse(
        iter_chunks(stream),
        media_type=record.file_type,
        headers={"Content-Disposition": _content_disposition(disposition, record.download_name)},
    )


@router.get("/{file_id}/download")
def download_file(
    file_id: int,
    auth: AuthContext = Depends(require_auth),
    service: RepositoryTreeService = Depends(get_tree_service),
):
    """Stream the file as an attachment."""
    return _stream(file_id, auth, service, "attachment")


@router.get("/{file_id}/preview")
def preview_file(
    file_id: int,
    auth: AuthContext = Depends(require_auth),
    service: RepositoryTreeService = Depends(get_tree_service),
):
    """Stream the file inline with its stored content type."""
    return _stream(file_id, auth, service, "inline")
