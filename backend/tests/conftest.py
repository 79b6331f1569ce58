"""
StudyShare Backend — Test Configuration (conftest.py)
=======================================================

Shared pytest fixtures.

Fixture Hierarchy (all function-scoped):
    ├── mock_db_session:  AsyncMock session for pure unit tests
    ├── temp_storage:     fresh directory for storage backend tests
    ├── db_engine:        in-memory SQLite (aiosqlite) with the full schema
    ├── db_session:       AsyncSession on db_engine
    ├── make_user / make_resource: factories writing real rows
    ├── pdf_bytes / docx_bytes: minimal documents that pass signature checks
    └── test_client:      httpx AsyncClient against the app, DB overridden
"""

import os
import tempfile

# Test settings must be in place before studyshare.config is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="studyshare_test_")
os.environ["JWT_SECRET_KEY"] = "test-secret-not-for-production"
os.environ["SMTP_HOST"] = ""
os.environ["RATE_LIMIT_REQUESTS"] = "100000"
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import datetime, timedelta, timezone
from functools import lru_cache
from itertools import count
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import studyshare.models  # noqa: F401  (registers every table)
from studyshare.database import Base, get_db_session
from studyshare.models.resource import Comment, Resource, ResourceTag
from studyshare.models.user import User
from studyshare.services.auth_service import hash_password

TEST_PASSWORD = "password123"

# Base timestamp for factory rows; each resource is one second newer than the last
_BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)
_sequence = count()


@lru_cache(maxsize=1)
def _password_hash() -> str:
    # bcrypt is deliberately slow; hash the shared test password once
    return hash_password(TEST_PASSWORD)


# ══════════════════════════════════════════════════════════════════════════
# Unit-test fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    A MagicMock standing in for AsyncSession.

    Usage:
        mock_db_session.execute.side_effect = SQLAlchemyError("down")
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def temp_storage(tmp_path):
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def pdf_bytes():
    """Smallest byte string that looks like a PDF to the signature check."""
    return b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n<< /Root 1 0 R >>\n%%EOF\n"


@pytest.fixture
def docx_bytes():
    """ZIP local-file-header signature followed by filler bytes."""
    return b"PK\x03\x04" + b"\x00" * 60


# ══════════════════════════════════════════════════════════════════════════
# Database fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    """
    A private in-memory database per test.

    StaticPool keeps the single SQLite connection alive across sessions;
    a new connection would see an empty database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def make_user(db_session):
    """
    Factory: await make_user(name="Ada", department="CS") → persisted User.

    Every user gets the password TEST_PASSWORD.
    """
    async def _make_user(**overrides) -> User:
        n = next(_sequence)
        fields = {
            "name": f"Student {n}",
            "email": f"student{n}@studyshare.edu",
            "password_hash": _password_hash(),
            "department": "CS",
            "semester": 3,
            "role": "student",
        }
        fields.update(overrides)
        user = User(**fields)
        db_session.add(user)
        await db_session.flush()
        return user

    return _make_user


@pytest.fixture
def make_resource(db_session):
    """
    Factory: await make_resource(owner, subject="Math", tags=["exam"], comments=2).

    created_at increases with every call, so "recent" order equals reverse
    creation order. `comments=n` attaches n comments by the owner; `upvoters`
    attaches the given users and sets the counter to match.
    """
    async def _make_resource(owner: User, tags=(), comments: int = 0, upvoters=(), **overrides) -> Resource:
        n = next(_sequence)
        created = _BASE_TIME + timedelta(seconds=n)
        fields = {
            "title": f"Resource {n}",
            "description": "",
            "subject": "Algorithms",
            "department": "CS",
            "semester": 3,
            "teacher": "",
            "file_url": f"/api/files/resources/test-{n}.pdf",
            "file_key": f"resources/test-{n}.pdf",
            "file_type": "application/pdf",
            "upvotes": len(upvoters),
            "created_at": created,
            "updated_at": created,
        }
        fields.update(overrides)
        resource = Resource(
            uploaded_by=owner,
            tag_links=[ResourceTag(name=t) for t in tags],
            upvoters=list(upvoters),
            comments=[
                Comment(user=owner, text=f"comment {i}", created_at=created + timedelta(milliseconds=i))
                for i in range(comments)
            ],
            **fields,
        )
        db_session.add(resource)
        await db_session.flush()
        return resource

    return _make_resource


# ══════════════════════════════════════════════════════════════════════════
# HTTP client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(db_engine):
    """
    HTTPX AsyncClient talking to the app in-process.

    get_db_session is overridden with sessions on the test engine that
    commit on success, as the real dependency does.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
    """
    from studyshare.main import app

    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db_session():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
