"""User, RevokedToken, and AuditLog models.

Users authenticate with email/password and receive JWT tokens.
New self-registered accounts wait in ``pending`` until a principal
approves or rejects them. AuditLog records all state-changing operations.
"""

from sqlalchemy import Column, String, DateTime, Boolean, Integer, Text, ForeignKey
from sqlalchemy.sql import func
from ..database import Base


ROLE_USER = "user"
ROLE_PRINCIPAL = "principal"
ROLES = (ROLE_USER, ROLE_PRINCIPAL)

APPROVAL_PENDING = "pending"
APPROVAL_APPROVED = "approved"
APPROVAL_REJECTED = "rejected"


class User(Base):
    """User account.

    Roles:
        principal — approves registrations, manages users, audits every repository
        user      — owns and manages their own repository only

    ``full_name`` doubles as the source of the user's root storage namespace
    (``user_<sanitized full_name>``).
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(Text, nullable=False)
    role = Column(String(20), nullable=False, default=ROLE_USER)
    is_active = Column(Boolean, nullable=False, default=True)
    is_archived = Column(Boolean, nullable=False, default=False)
    approval_status = Column(String(20), nullable=False, default=APPROVAL_PENDING)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def is_principal(self) -> bool:
        return self.role == ROLE_PRINCIPAL

    @property
    def is_approved(self) -> bool:
        return self.approval_status == APPROVAL_APPROVED


class RevokedToken(Base):
    """A login token invalidated by logout before its natural expiry."""

    __tablename__ = "revoked_tokens"

    jti = Column(String(64), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class AuditLog(Base):
    """Immutable record of state-changing operations.

    Written by the service layer and never modified; entries older than the
    retention period are purged on startup.
    Fields:
        action        — create, update, delete, upload, rename, login, logout,
                        login_failed, register, approve, reject, archive
        resource_type — folder, file, user
        resource_id   — ID of the affected resource
        details       — JSON string with additional context
    """

    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = Column(String(50), nullable=False)
    resource_type = Column(String(50), nullable=False)
    resource_id = Column(String(255), nullable=True)
    details = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
