"""Authentication API endpoints.

    POST /api/auth/register  — self-registration (first account becomes principal)
    POST /api/auth/login     — authenticate and receive JWT
    POST /api/auth/logout    — revoke the presented token
    GET  /api/auth/me        — current user
"""

import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_auth
from ..core.config import settings
from ..core.token_factory import create_token
from ..database import get_db
from ..schemas.user import LoginRequest, LoginResponse, RegisterRequest, UserResponse
from ..services import audit_service, user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=201,
    summary="Register a new account",
    description="The first account becomes an approved principal. Later accounts wait for approval.",
)
def register(body: RegisterRequest, db: Session = Depends(get_db)):
    user = user_service.register_user(db, body.full_name, body.email, body.password)
    return UserResponse.model_validate(user)


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Authenticate and receive JWT",
)
def login(body: LoginRequest, request: Request, db: Session = Depends(get_db)):
    user = user_service.authenticate(db, body.email, body.password)
    token = create_token(
        subject=str(user.id),
        role=user.role,
        secret=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        expires_hours=settings.token_expire_hours,
    )
    logger.info("User logged in: %s", user.email)
    audit_service.log(db, user.id, "login", "user", user.id, ip_address=client_ip(request))
    return LoginResponse(
        token=token,
        expires_in=settings.token_expire_hours * 3600,
        user=UserResponse.model_validate(user),
    )


@router.post(
    "/logout",
    status_code=204,
    summary="Revoke the current token",
)
def logout(
    request: Request,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    user_service.revoke_token(db, auth.token_id, auth.user_id, auth.token_expires_at)
    audit_service.log(db, auth.user_id, "logout", "user", auth.user_id, ip_address=client_ip(request))
    return Response(status_code=204)


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user",
)
def get_me(auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    return UserResponse.model_validate(user_service.get_user(db, auth.user_id))
