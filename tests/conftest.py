"""
Shared fixtures for Workspace Hub integration tests.

The relational store is a throw-away database (SQLite through aiosqlite unless
TEST_DATABASE_URL points elsewhere). Tables are created per test and emptied
afterwards. The document store, the identity provider and the AI service are
replaced through ``app.dependency_overrides``:

- InMemoryDocumentStore for Firestore
- FakeIdentityProvider for Firebase Authentication
- httpx.MockTransport for the AI service
"""
from __future__ import annotations

import os
import tempfile
from typing import Any, AsyncGenerator, Callable, List

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

# Override settings *before* any app module is imported, so that
# settings.DATABASE_URL and the global engine point at the test DB.
TEST_DATABASE_URL = os.environ.get(
    "TEST_DATABASE_URL",
    "sqlite+aiosqlite:///" + os.path.join(tempfile.gettempdir(), "workspace_hub_test.db"),
)
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["USE_IN_MEMORY_DOCUMENT_STORE"] = "true"
os.environ["AI_API_BASE_URL"] = "http://ai.test"

from app.database import Base, get_db  # noqa: E402
from app.dependencies.services import (  # noqa: E402
    get_ai_client,
    get_document_store,
    get_identity_provider,
)
from app.main import app  # noqa: E402
from app.models import database_models  # noqa: E402,F401
from app.services.ai_client import AIServiceClient  # noqa: E402
from app.services.document_store import InMemoryDocumentStore  # noqa: E402
from tests.fakes import FakeIdentityProvider  # noqa: E402


# ---------------------------------------------------------------------------
# Known users
# ---------------------------------------------------------------------------

USER1 = {"uid": "test-user-1", "email": "test1@example.com", "name": "Test User 1"}
USER2 = {"uid": "test-user-2", "email": "test2@example.com", "name": "Test User 2"}
USER3 = {"uid": "test-user-3", "email": "test3@example.com", "name": "Test User 3"}

AUTH_HEADERS = {"Authorization": f"Bearer token-{USER1['uid']}"}
AUTH_HEADERS_USER2 = {"Authorization": f"Bearer token-{USER2['uid']}"}
AUTH_HEADERS_USER3 = {"Authorization": f"Bearer token-{USER3['uid']}"}


class AIServiceStub:
    """Programmable AI service behind an httpx.MockTransport."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.handler: Callable[[httpx.Request], httpx.Response] = (
            lambda request: httpx.Response(200, json={})
        )

    def respond_with(self, status_code: int = 200, json: Any = None, content: bytes = None) -> None:
        if content is not None:
            self.handler = lambda request: httpx.Response(status_code, content=content)
        else:
            self.handler = lambda request: httpx.Response(status_code, json=json)

    def raise_error(self, exc: Exception) -> None:
        def _handler(request: httpx.Request) -> httpx.Response:
            raise exc

        self.handler = _handler

    def _dispatch(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def client(self) -> AIServiceClient:
        return AIServiceClient(
            base_url="http://ai.test",
            api_key="test-ai-key",
            max_retries=0,
            transport=httpx.MockTransport(self._dispatch),
        )


# ---------------------------------------------------------------------------
# Per-test fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a DB session for each test. After the test, all tables are emptied
    so each test starts with a clean slate.
    """
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    # Children first
    async with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            await conn.execute(table.delete())

    await engine.dispose()


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def identity() -> FakeIdentityProvider:
    provider = FakeIdentityProvider()
    for user in (USER1, USER2, USER3):
        provider.issue_token(user["uid"], user["email"], user["name"])
    return provider


@pytest.fixture
def ai_service() -> AIServiceStub:
    return AIServiceStub()


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    document_store: InMemoryDocumentStore,
    identity: FakeIdentityProvider,
    ai_service: AIServiceStub,
) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx AsyncClient wired to the FastAPI app with the DB, document store,
    identity provider and AI client dependencies overridden.
    """

    async def _override_get_db():
        yield db_session

    ai_client = ai_service.client()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_document_store] = lambda: document_store
    app.dependency_overrides[get_identity_provider] = lambda: identity
    app.dependency_overrides[get_ai_client] = lambda: ai_client

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def create_workspace(client: AsyncClient, name: str = "Team Space", headers=None, **extra) -> dict:
    resp = await client.post(
        "/api/workspaces",
        json={"name": name, **extra},
        headers=headers or AUTH_HEADERS,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def touch_user(client: AsyncClient, headers) -> None:
    """Make sure the caller has a local users row."""
    resp = await client.get("/api/users/me", headers=headers)
    assert resp.status_code == 200, resp.text


async def add_member(client: AsyncClient, workspace_id: int, email: str, role: str = "member", headers=None) -> dict:
    resp = await client.post(
        f"/api/workspaces/{workspace_id}/members",
        json={"email": email, "role": role},
        headers=headers or AUTH_HEADERS,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()
