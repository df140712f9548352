"""User service — account lifecycle, password hashing, approval workflow.

All password operations use bcrypt via passlib. Passwords are never stored
or logged in plaintext. Endpoints are thin wrappers over these functions.

Lifecycle:
    register  -> pending   (first account ever: approved principal)
    approve   -> approved  (may log in)
    reject    -> rejected  (may not log in)
    archive   -> archived  (hidden from listings, may not log in)
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from passlib.hash import bcrypt
from sqlalchemy.orm import Session

from . import audit_service
from .path_resolver import user_root
from ..core.config import settings
from ..exceptions import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    UserNotFoundError,
    ValidationError,
)
from ..models.file import File
from ..models.folder import Folder
from ..models.user import (
    APPROVAL_APPROVED,
    APPROVAL_PENDING,
    APPROVAL_REJECTED,
    ROLE_PRINCIPAL,
    ROLE_USER,
    ROLES,
    RevokedToken,
    User,
)

logger = logging.getLogger(__name__)

# NIST SP 800-63B recommends at least 8 characters.
MIN_PASSWORD_LENGTH = 8


def hash_password(password: str) -> str:
    return bcrypt.using(rounds=settings.bcrypt_rounds).hash(password)


def _normalize_email(email: str) -> str:
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationError("Valid email address required", field="email")
    return email


def _validate_password(password: str) -> None:
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters", field="password"
        )


def _validate_full_name(full_name: str) -> str:
    full_name = (full_name or "").strip()
    if not full_name:
        raise ValidationError("Full name required", field="full_name")
    return full_name


def _ensure_email_free(db: Session, email: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(User).filter(User.email == email)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first() is not None:
        raise ValidationError("Email already registered", field="email")


def _ensure_root_free(db: Session, full_name: str, exclude_id: Optional[int] = None) -> None:
    """Reject a name whose storage root is already used by another account.

    Roots are compared case-insensitively so they stay distinct on
    case-insensitive filesystems too.
    """
    root = user_root(full_name).lower()
    query = db.query(User.id, User.full_name)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    for _, other_name in query:
        if user_root(other_name).lower() == root:
            raise ValidationError(
                "Another account already uses this name (or one that differs only in punctuation)",
                field="full_name",
            )


def _owns_content(db: Session, user_id: int) -> bool:
    return (
        db.query(Folder.id).filter(Folder.user_id == user_id).first() is not None
        or db.query(File.id).filter(File.user_id == user_id).first() is not None
    )


def register_user(db: Session, full_name: str, email: str, password: str) -> User:
    """Self-registration.

    The first account ever registered becomes an approved principal so the
    deployment can be bootstrapped. Every later account waits in ``pending``
    until a principal approves it.
    """
    email = _normalize_email(email)
    _validate_password(password)
    full_name = _validate_full_name(full_name)
    _ensure_email_free(db, email)
    _ensure_root_free(db, full_name)

    # FOR UPDATE so two concurrent first registrations cannot both become principal.
    is_first_user = db.query(User).with_for_update().count() == 0

    user = User(
        full_name=full_name,
        email=email,
        password_hash=hash_password(password),
        role=ROLE_PRINCIPAL if is_first_user else ROLE_USER,
        is_active=True,
        approval_status=APPROVAL_APPROVED if is_first_user else APPROVAL_PENDING,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    if is_first_user:
        logger.info("First user registered as principal: %s", email)
    else:
        logger.info("User registered, awaiting approval: %s", email)
    audit_service.log(db, user.id, "register", "user", user.id)
    return user


def create_user(
    db: Session,
    full_name: str,
    email: str,
    password: str,
    role: str = ROLE_USER,
    created_by: Optional[int] = None,
) -> User:
    """Principal-created account. Approved immediately."""
    email = _normalize_email(email)
    _validate_password(password)
    full_name = _validate_full_name(full_name)
    if role not in ROLES:
        raise ValidationError(f"Invalid role: {role}", field="role")
    _ensure_email_free(db, email)
    _ensure_root_free(db, full_name)

    user = User(
        full_name=full_name,
        email=email,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
        approval_status=APPROVAL_APPROVED,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("User created: %s (role=%s)", email, role)
    audit_service.log(db, created_by, "create", "user", user.id, {"email": email, "role": role})
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    """Validate credentials and return the user.

    Raises:
        AuthenticationError: Unknown email or wrong password.
        ForbiddenError: Correct credentials but the account is archived,
            deactivated, or not approved.
    """
    email = (email or "").strip().lower()
    user = db.query(User).filter(User.email == email).first()

    if user is None or not bcrypt.verify(password, user.password_hash):
        audit_service.log(db, user.id if user else None, "login_failed", "user", details={"email": email})
        raise AuthenticationError("Invalid email or password")

    if user.is_archived or not user.is_active:
        raise ForbiddenError("Account is deactivated")
    if user.approval_status == APPROVAL_PENDING:
        raise ForbiddenError("Account is awaiting approval")
    if user.approval_status == APPROVAL_REJECTED:
        raise ForbiddenError("Account registration was rejected")

    return user


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise UserNotFoundError(user_id)
    return user


def list_users(db: Session) -> list[User]:
    """All non-archived users, oldest first."""
    return (
        db.query(User)
        .filter(User.is_archived.is_(False))
        .order_by(User.created_at, User.id)
        .all()
    )


def list_pending_users(db: Session) -> list[User]:
    return (
        db.query(User)
        .filter(User.approval_status == APPROVAL_PENDING, User.is_archived.is_(False))
        .order_by(User.created_at, User.id)
        .all()
    )


def update_user(
    db: Session,
    user_id: int,
    updated_by: Optional[int] = None,
    full_name: Optional[str] = None,
    email: Optional[str] = None,
    password: Optional[str] = None,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> User:
    """Partial update. Only the fields that are not None change.

    ``full_name`` names the user's storage root, so it may only change to a
    name with a different root while the user owns no folders or files.
    """
    user = get_user(db, user_id)
    changed = []

    if full_name is not None:
        full_name = _validate_full_name(full_name)
        if user_root(full_name) != user_root(user.full_name):
            _ensure_root_free(db, full_name, exclude_id=user.id)
            if _owns_content(db, user.id):
                raise ValidationError(
                    "Full name cannot change while the account owns folders or files",
                    field="full_name",
                )
        user.full_name = full_name
        changed.append("full_name")
    if email is not None:
        email = _normalize_email(email)
        _ensure_email_free(db, email, exclude_id=user.id)
        user.email = email
        changed.append("email")
    if password is not None:
        _validate_password(password)
        user.password_hash = hash_password(password)
        changed.append("password")
    if role is not None:
        if role not in ROLES:
            raise ValidationError(f"Invalid role: {role}", field="role")
        user.role = role
        changed.append("role")
    if is_active is not None:
        user.is_active = is_active
        changed.append("is_active")

    db.commit()
    db.refresh(user)
    audit_service.log(db, updated_by, "update", "user", user.id, {"fields": changed})
    return user


def archive_user(db: Session, user_id: int, archived_by: Optional[int] = None) -> User:
    """Soft-delete an account. Archived users cannot log in; their files stay."""
    user = get_user(db, user_id)
    if archived_by is not None and user.id == archived_by:
        raise ValidationError("You cannot archive your own account", field="user_id")
    user.is_archived = True
    db.commit()
    db.refresh(user)
    logger.info("User archived: %s", user.email)
    audit_service.log(db, archived_by, "archive", "user", user.id)
    return user


def _set_approval(db: Session, user_id: int, status: str, action: str, actor_id: Optional[int]) -> User:
    user = get_user(db, user_id)
    if user.approval_status != APPROVAL_PENDING:
        raise ConflictError(
            path="",
            message=f"User is not awaiting approval (status: {user.approval_status})",
        )
    user.approval_status = status
    db.commit()
    db.refresh(user)
    logger.info("User %s: %s", action, user.email)
    audit_service.log(db, actor_id, action, "user", user.id)
    return user


def approve_user(db: Session, user_id: int, approved_by: Optional[int] = None) -> User:
    return _set_approval(db, user_id, APPROVAL_APPROVED, "approve", approved_by)


def reject_user(db: Session, user_id: int, rejected_by: Optional[int] = None) -> User:
    return _set_approval(db, user_id, APPROVAL_REJECTED, "reject", rejected_by)


def revoke_token(db: Session, jti: str, user_id: int, expires_at: Optional[datetime]) -> None:
    """Invalidate a token before its expiry. Idempotent."""
    if not jti:
        return
    if db.query(RevokedToken).filter(RevokedToken.jti == jti).first() is not None:
        return
    db.add(RevokedToken(
        jti=jti,
        user_id=user_id,
        expires_at=expires_at or datetime.now(timezone.utc),
    ))
    db.commit()


def purge_expired_revocations(db: Session) -> int:
    """Drop revocation rows whose tokens would have expired anyway."""
    count = (
        db.query(RevokedToken)
        .filter(RevokedToken.expires_at < datetime.now(timezone.utc))
        .delete()
    )
    db.commit()
    return count
