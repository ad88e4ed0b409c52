"""Pytest configuration and fixtures for slugshare tests."""
import os
import tempfile

# Settings are read at import time; these must be in place before slugshare is imported.
os.environ.setdefault("TOKEN_SECRET", "test-signing-secret-0123456789abcdef")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("FILE_STORAGE_PATH", tempfile.mkdtemp(prefix="slugshare-tests-"))
os.environ.setdefault("EXPIRY_SWEEP_INTERVAL_SECONDS", "0")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from werkzeug.security import generate_password_hash

from slugshare.config import settings
from slugshare.database import get_db
from slugshare.dependencies import get_clock, get_file_storage
from slugshare.main import app
from slugshare.models import AdminUser, Base
from slugshare.services.admin_auth import TokenService
from slugshare.services.file_storage import FileStorageService

START_MS = 1_700_000_000_000
ADMIN_PASSWORD = "correct-horse"
VIEWER_PASSWORD = "viewer-pass"


class FakeClock:
    """Settable epoch-millisecond clock."""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage(tmp_path):
    return FileStorageService(tmp_path / "objects")


@pytest.fixture
def tokens(clock):
    return TokenService(settings.TOKEN_SECRET, settings.TOKEN_TTL_MINUTES, clock=clock)


@pytest_asyncio.fixture
async def admin_users(db):
    admin = AdminUser(username="admin", password_hash=generate_password_hash(ADMIN_PASSWORD), role="admin")
    viewer = AdminUser(username="viewer", password_hash=generate_password_hash(VIEWER_PASSWORD), role="viewer")
    db.add_all([admin, viewer])
    await db.commit()
    return {"admin": admin, "viewer": viewer}


@pytest_asyncio.fixture
async def client(session_factory, storage, clock):
    """HTTP client against the app with DB, storage and clock swapped for test doubles."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_file_storage] = lambda: storage
    app.dependency_overrides[get_clock] = lambda: clock
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as c:
        yield c
    app.dependency_overrides.clear()


async def upload(client, content=b"0123456789", filename="hello.txt", content_type="text/plain", **fields):
    """POST a multipart upload; ``fields`` are sent as form values."""
    data = {key: str(value) for key, value in fields.items()}
    return await client.post("/api/upload", files={"file": (filename, content, content_type)}, data=data)


async def login(client, username="admin", password=ADMIN_PASSWORD):
    return await client.post("/api/admin/login", json={"username": username, "password": password})


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
