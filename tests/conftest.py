"""
TextLens Backend — Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Environment variables are set before any textlens import, so the
       settings singleton, the engine, and every service singleton are
       built against a throwaway SQLite file and temp storage.

Fixture Hierarchy:
    Function-scoped:
    ├── database:        create_all / drop_all around each test
    ├── db_session:      AsyncSession on the test database
    ├── mock_db_session: AsyncMock session for pure unit tests
    ├── temp_storage:    Temporary directory for file operations
    ├── jpeg_bytes / png_bytes: Real images generated with Pillow
    ├── caller / other_caller / auth_headers / make_token
    └── test_client:     HTTPX AsyncClient over ASGITransport
"""

import io
import os
import tempfile
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image


# ══════════════════════════════════════════════════════════════════════════
# Environment Setup (before any textlens import)
# ══════════════════════════════════════════════════════════════════════════

_TEST_DIR = tempfile.mkdtemp(prefix="textlens_test_")

os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/test.db"
os.environ["JWT_SECRET"] = "test-secret-not-real"
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["STORAGE_ROOT"] = os.path.join(_TEST_DIR, "uploads")
os.environ["OCR_LANGUAGE"] = "por"
os.environ["LOG_LEVEL"] = "WARNING"

from textlens.database import Base, async_session_factory, engine  # noqa: E402
from textlens import models  # noqa: E402,F401
from textlens.schemas.auth import CallerIdentity  # noqa: E402
from textlens.services.auth_service import auth_service  # noqa: E402


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def database():
    """
    Fresh schema for one test.

    The engine is disposed afterwards: each test runs on its own event
    loop and pooled aiosqlite connections must not cross loops.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(database):
    async with async_session_factory() as session:
        yield session


@pytest.fixture
def mock_db_session():
    """
    Mock AsyncSession for tests that must not touch a database.

    Usage:
        mock_db_session.execute.side_effect = OperationalError("SELECT", {}, Exception())
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


# ══════════════════════════════════════════════════════════════════════════
# Files
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def temp_storage(tmp_path):
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


def _image_bytes(fmt: str) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (32, 16), color=(255, 255, 255)).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def jpeg_bytes():
    return _image_bytes("JPEG")


@pytest.fixture
def png_bytes():
    return _image_bytes("PNG")


# ══════════════════════════════════════════════════════════════════════════
# Identity
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def caller():
    return CallerIdentity(
        id="u1",
        email="a@x.com",
        name="Ana",
        avatar="https://img.example.com/ana.png",
    )


@pytest.fixture
def other_caller():
    return CallerIdentity(id="u2", email="b@x.com")


@pytest.fixture
def make_token():
    """Signs a bearer token for an identity with the test secret."""

    def _make(identity: CallerIdentity, expires_in=None) -> str:
        return auth_service.issue_token(identity, expires_in=expires_in)

    return _make


@pytest.fixture
def auth_headers(caller, make_token):
    return {"Authorization": f"Bearer {make_token(caller)}"}


# ══════════════════════════════════════════════════════════════════════════
# HTTP
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(database):
    """
    HTTPX AsyncClient routed straight into the app.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from textlens.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
