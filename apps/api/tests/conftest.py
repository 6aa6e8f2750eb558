"""
Shared test fixtures.

HTTP-level tests run the real application over an httpx ASGI transport with:
- an in-memory SQLite database (aiosqlite) in place of PostgreSQL
- an in-memory MinIO client double behind the real ObjectStorage gateway
- a shared-secret identity provider
- a fresh notification dispatcher
"""

import os

# Settings are read at import time
os.environ["PYTHON_ENV"] = "test"
os.environ["AUTH_JWT_SECRET"] = "test-secret-key-for-hs256-signing"
os.environ["STORAGE_PUBLIC_URL"] = "http://storage.test"
os.environ["STORAGE_BUCKET"] = "test-bucket"
os.environ.pop("RESEND_API_KEY", None)

from dataclasses import dataclass
from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
import pytest_asyncio
from minio.error import S3Error
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from courseapp.core.database import Base, get_db
from courseapp.core.notifications import NotificationDispatcher, get_dispatcher
from courseapp.core.rate_limit import MemoryCounterStore, configure_rate_limiter
from courseapp.core.security import IdentityProvider, get_identity_provider
from courseapp.core.storage import ObjectStorage, get_storage
from courseapp.main import app

TEST_SECRET = os.environ["AUTH_JWT_SECRET"]
STORAGE_BASE_URL = "http://storage.test"
BUCKET = "test-bucket"


# ============================================
# Object storage double
# ============================================


@dataclass
class FakeStoredObject:
    data: bytes
    content_type: str
    last_modified: datetime


class FakeResponse:
    """Stands in for the urllib3 response returned by get_object."""

    def __init__(self, data: bytes, content_type: str):
        self._data = data
        self.headers = {"Content-Type": content_type}
        self.closed = False

    def read(self) -> bytes:
        return self._data

    def close(self) -> None:
        self.closed = True

    def release_conn(self) -> None:
        pass


def no_such_key(object_name: str) -> S3Error:
    return S3Error(
        code="NoSuchKey",
        message="The specified key does not exist.",
        resource=object_name,
        request_id="123",
        host_id="456",
        response={},
    )


class FakeMinio:
    """In-memory subset of the MinIO client API used by ObjectStorage."""

    def __init__(self):
        self.buckets: set[str] = set()
        self.objects: dict[tuple[str, str], FakeStoredObject] = {}

    def bucket_exists(self, bucket_name: str) -> bool:
        return bucket_name in self.buckets

    def make_bucket(self, bucket_name: str) -> None:
        self.buckets.add(bucket_name)

    def put_object(self, bucket_name, object_name, data, length, content_type="application/octet-stream"):
        self.objects[(bucket_name, object_name)] = FakeStoredObject(
            data=data.read(length),
            content_type=content_type,
            last_modified=datetime.now(UTC),
        )

    def get_object(self, bucket_name, object_name):
        stored = self.objects.get((bucket_name, object_name))
        if stored is None:
            raise no_such_key(object_name)
        return FakeResponse(stored.data, stored.content_type)

    def remove_object(self, bucket_name, object_name):
        self.objects.pop((bucket_name, object_name), None)

    def list_objects(self, bucket_name, prefix=None, recursive=False):
        for (bucket, name), stored in list(self.objects.items()):
            if bucket == bucket_name and name.startswith(prefix or ""):
                yield SimpleNamespace(object_name=name, last_modified=stored.last_modified)

    def keys(self) -> list[str]:
        return [name for (_bucket, name) in self.objects]


@pytest.fixture
def fake_minio():
    return FakeMinio()


@pytest.fixture
def storage(fake_minio):
    """Real storage gateway over the in-memory client."""
    return ObjectStorage(fake_minio, BUCKET, STORAGE_BASE_URL)


# ============================================
# Auth
# ============================================


@pytest.fixture
def identity_provider():
    return IdentityProvider(secret=TEST_SECRET)


@pytest.fixture
def admin_token(identity_provider):
    return identity_provider.create_access_token("admin-1", "admin@example.com", admin=True)


@pytest.fixture
def user_token(identity_provider):
    return identity_provider.create_access_token("user-1", "user@example.com", admin=False)


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


# ============================================
# Database
# ============================================


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.refresh = AsyncMock()
    db.rollback = AsyncMock()
    db.get = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    return db


@pytest_asyncio.fixture
async def session_factory():
    """Session factory over a fresh in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


# ============================================
# Application
# ============================================


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Every test starts with empty rate limit counters."""
    configure_rate_limiter(MemoryCounterStore())


@pytest.fixture
def dispatcher():
    return NotificationDispatcher()


@pytest.fixture
def mock_confirmation():
    """Replace the confirmation email sender."""
    with patch(
        "courseapp.modules.submissions.service.send_submission_confirmation",
        new_callable=AsyncMock,
    ) as mock_send:
        yield mock_send


@pytest_asyncio.fixture
async def client(session_factory, storage, identity_provider, dispatcher, mock_confirmation):
    """HTTP client bound to the application with test doubles injected."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_identity_provider] = lambda: identity_provider
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher

    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    await dispatcher.drain()
    app.dependency_overrides.clear()


EVENT_PAYLOAD = {
    "courseName": "JS101",
    "venue": "Dublin",
    "date": "2026-01-10",
    "price": 100,
    "emailText": "hi",
}


@pytest.fixture
def event_payload():
    return dict(EVENT_PAYLOAD)


@pytest_asyncio.fixture
async def created_event(client, admin_headers, event_payload):
    """An event created through the API."""
    response = await client.post("/api/events", json=event_payload, headers=admin_headers)
    assert response.status_code == 201
    return response.json()
