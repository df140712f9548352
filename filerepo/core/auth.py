"""Authentication module — deep module exposing FastAPI dependencies.

Public interface:
    ``require_auth``      — returns AuthContext or raises 401.
    ``require_principal`` — returns AuthContext, raises 403 if not a principal.

A token is accepted only if its signature and expiry are valid, it has not
been revoked by logout, and its user is still active, approved and not
archived.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import settings
from .token_factory import TokenPayload, decode_token
from ..database import get_db
from ..exceptions import AuthenticationError, ForbiddenError

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """Verified caller identity available to every endpoint.

    ``display_name`` is the user's full name; the repository layer derives
    the caller's root storage namespace from it.
    """

    user_id: int
    display_name: str
    role: str
    token_id: str = ""
    token_expires_at: Optional[datetime] = None

    @property
    def is_principal(self) -> bool:
        return self.role == "principal"


def get_bearer_scheme() -> HTTPBearer:
    """Expose the security scheme so OpenAPI picks it up."""
    return _bearer_scheme


def require_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    db: Session = Depends(get_db),
) -> AuthContext:
    """Require a valid JWT and return the user's AuthContext."""
    if credentials is None:
        raise AuthenticationError("Missing authentication token")

    payload = decode_token(
        credentials.credentials, settings.jwt_secret_key, settings.jwt_algorithm
    )
    if payload is None:
        raise AuthenticationError("Invalid or expired token")

    return _load_auth_context(payload, db)


def require_principal(
    auth: AuthContext = Depends(require_auth),
) -> AuthContext:
    """Require the authenticated user to be a principal. Raises 403 otherwise."""
    if not auth.is_principal:
        raise ForbiddenError("Principal access required")
    return auth


def _load_auth_context(payload: TokenPayload, db: Session) -> AuthContext:
    """Load the user from DB given a decoded token payload."""
    from ..models.user import User, RevokedToken

    if payload.jti and db.query(RevokedToken).filter(RevokedToken.jti == payload.jti).first():
        raise AuthenticationError("Token has been revoked")

    try:
        user_id = int(payload.sub)
    except ValueError:
        raise AuthenticationError("Invalid token subject")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise AuthenticationError("User not found")
    if user.is_archived or not user.is_active:
        raise AuthenticationError("Account is deactivated")
    if not user.is_approved:
        raise AuthenticationError("Account is not approved")

    return AuthContext(
        user_id=user.id,
        display_name=user.full_name,
        role=user.role,
        token_id=payload.jti,
        token_expires_at=payload.exp,
    )
