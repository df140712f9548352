"""User management API (principal only).

    POST /api/users                — create an approved account
    GET  /api/users                — list non-archived accounts
    GET  /api/users/{id}           — one account
    POST /api/users/{id}           — partial update
    POST /api/users/{id}/archive   — archive (soft delete)
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_principal
from ..database import get_db
from ..schemas.user import UserCreate, UserResponse, UserUpdate
from ..services import user_service

router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("", response_model=UserResponse, status_code=201)
def create_user(
    body: UserCreate,
    auth: AuthContext = Depends(require_principal),
    db: Session = Depends(get_db),
):
    user = user_service.create_user(
        db, body.full_name, body.email, body.password, body.role, created_by=auth.user_id
    )
    return UserResponse.model_validate(user)


@router.get("", response_model=List[UserResponse])
def list_users(
    auth: AuthContext = Depends(require_principal),
    db: Session = Depends(get_db),
):
    return [UserResponse.model_validate(u) for u in user_service.list_users(db)]


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    auth: AuthContext = Depends(require_principal),
    db: Session = Depends(get_db),
):
    return UserResponse.model_validate(user_service.get_user(db, user_id))


@router.post("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    body: UserUpdate,
    auth: AuthContext = Depends(require_principal),
    db: Session = Depends(get_db),
):
    user = user_service.update_user(
        db,
        user_id,
        updated_by=auth.user_id,
        full_name=body.full_name,
        email=body.email,
        password=body.password,
        role=body.role,
        is_active=body.is_active,
    )
    return UserResponse.model_validate(user)


@router.post("/{user_id}/archive", response_model=UserResponse)
def archive_user(
    user_id: int,
    auth: AuthContext = Depends(require_principal),
    db: Session = Depends(get_db),
):
    return UserResponse.model_validate(user_service.archive_user(db, user_id, archived_by=auth.user_id))
