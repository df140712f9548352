"""Renders every ``RepoException`` as ``{"error", "message", "details"}``.

Missing folders and files, path conflicts, oversized uploads and storage
failures all reach the client through this one handler.
"""

import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from ..exceptions import RepoException

logger = logging.getLogger(__name__)


async def repo_exception_handler(request: Request, exc: RepoException) -> JSONResponse:
    """Log *exc* with the request path and return its JSON body.

    4xx (not found, conflict, too large) is logged at WARNING; 5xx (storage or
    database failure) at ERROR.
    """
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"RepoException: {exc.error_code.value}",
        extra={
            "error_code": exc.error_code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
            "status_code": exc.status_code
        }
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )
