"""Shared test fixtures for the file repository test suite.

Tests run against a throwaway SQLite database and storage root created in a
temp directory. Each test starts from empty tables and an empty storage root.

Environment is configured before any app import so that settings, the
engine and the /storage mount all pick it up.
"""

import os
import shutil
import tempfile

# Stable across re-imports (test modules import helpers from tests.conftest).
if "FILEREPO_TEST_DIR" not in os.environ:
    os.environ["FILEREPO_TEST_DIR"] = tempfile.mkdtemp(prefix="filerepo-tests-")
_TMP = os.environ["FILEREPO_TEST_DIR"]
os.environ["DATABASE_URL"] = os.environ.get(
    "TEST_DATABASE_URL", f"sqlite:///{os.path.join(_TMP, 'test.db')}"
)
os.environ["STORAGE_ROOT"] = os.path.join(_TMP, "storage")
os.environ["PUBLIC_BASE_URL"] = "http://testserver/storage"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_FORMAT"] = "text"

import pytest
from fastapi.testclient import TestClient

from filerepo.database import Base, get_db, engine, SessionLocal
from filerepo.main import app
from filerepo.core.auth import AuthContext
from filerepo.core.config import settings
from filerepo.core.token_factory import create_token
from filerepo.middleware.request_context import _rate_buckets
from filerepo.models.user import User, APPROVAL_APPROVED, ROLE_PRINCIPAL, ROLE_USER
from filerepo.services.user_service import hash_password
from filerepo.storage import LocalStorage, get_storage

from tests.fakes import InMemoryStorage

PASSWORD = "correct-horse"


@pytest.fixture(autouse=True)
def _clean_state():
    """Empty every table and the storage root before each test.

    Runs before the test (not after) so test failures leave data
    available for debugging.
    """
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    shutil.rmtree(settings.storage_root, ignore_errors=True)
    os.makedirs(settings.storage_root, exist_ok=True)
    yield


@pytest.fixture()
def db():
    """Per-test database session."""
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def storage() -> LocalStorage:
    """Local storage on the same root the app serves at /storage."""
    return LocalStorage(settings.storage_root, settings.public_base_url)


@pytest.fixture()
def memory_storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture()
def client(db, storage):
    """FastAPI TestClient with DB and storage dependencies overridden."""

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    _rate_buckets.clear()  # Reset rate limiter so tests don't hit 429
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db):
    """Factory for approved users inserted directly in the database."""
    counter = {"n": 0}

    def _make(
        full_name: str = "Alice Martin",
        email: str = "",
        role: str = ROLE_USER,
        approval_status: str = APPROVAL_APPROVED,
        **overrides,
    ) -> User:
        counter["n"] += 1
        user = User(
            full_name=full_name,
            email=email or f"user{counter['n']}@example.com",
            password_hash=hash_password(PASSWORD),
            role=role,
            approval_status=approval_status,
            is_active=True,
            is_archived=False,
        )
        for key, value in overrides.items():
            setattr(user, key, value)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture()
def alice(make_user) -> User:
    return make_user("Alice Martin", "alice@example.com")


@pytest.fixture()
def bob(make_user) -> User:
    return make_user("Bob Stone", "bob@example.com")


@pytest.fixture()
def principal(make_user) -> User:
    return make_user("Paula Principal", "paula@example.com", role=ROLE_PRINCIPAL)


def auth_context(user: User) -> AuthContext:
    """Caller identity for calling services directly."""
    return AuthContext(user_id=user.id, display_name=user.full_name, role=user.role)


def auth_headers(user: User) -> dict:
    """Valid JWT auth headers for *user*."""
    token = create_token(
        subject=str(user.id),
        role=user.role,
        secret=settings.jwt_secret_key,
    )
    return {"Authorization": f"Bearer {token}"}
