"""Principal console: registration approval and the audit trail.

    GET  /api/principal/pending-users
    POST /api/principal/users/{id}/approve
    POST /api/principal/users/{id}/reject
    GET  /api/principal/audit-log
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_principal
from ..database import get_db
from ..schemas.user import AuditLogResponse, UserResponse
from ..services import audit_service, user_service

router = APIRouter(prefix="/api/principal", tags=["principal"])


@router.get("/pending-users", response_model=List[UserResponse])
def pending_users(
    auth: AuthContext = Depends(require_principal),
    db: Session = Depends(get_db),
):
    return [UserResponse.model_validate(u) for u in user_service.list_pending_users(db)]


@router.post("/users/{user_id}/approve", response_model=UserResponse)
def approve_user(
    user_id: int,
    auth: AuthContext = Depends(require_principal),
    db: Session = Depends(get_db),
):
    return UserResponse.model_validate(user_service.approve_user(db, user_id, approved_by=auth.user_id))


@router.post("/users/{user_id}/reject", response_model=UserResponse)
def reject_user(
    user_id: int,
    auth: AuthContext = Depends(require_principal),
    db: Session = Depends(get_db),
):
    return UserResponse.model_validate(user_service.reject_user(db, user_id, rejected_by=auth.user_id))


@router.get("/audit-log", response_model=List[AuditLogResponse])
def audit_log(
    resource_type: Optional[str] = Query(None, description="folder, file or user"),
    resource_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    auth: AuthContext = Depends(require_principal),
    db: Session = Depends(get_db),
):
    """Most recent audit entries, optionally for one resource."""
    if resource_type and resource_id:
        entries = audit_service.get_by_resource(db, resource_type, resource_id, limit)
    else:
        entries = audit_service.get_recent(db, limit)
    return [AuditLogResponse.model_validate(e) for e in entries]
