"""Shared test fixtures - async SQLite, fakeredis and an in-process API client."""

import json

import httpx
import pytest
from fakeredis import FakeAsyncRedis
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from campaign_keeper.client.remote import RemoteDataService
from campaign_keeper.db.database import Base, get_db
from campaign_keeper.db.redis import get_redis
from campaign_keeper.services.mail_service import MagicLinkMailer, get_mailer
from campaign_keeper.stores.workspace import Workspace

# In-memory SQLite for tests (no Docker needed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///file::memory:?cache=shared&uri=true"

MAIL_WEBHOOK_URL = "http://mail.test/magic-link"
PASSWORD = "secret123"

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False)
test_session_factory = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)


async def _override_get_db():
    async with test_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


class Outbox:
    """Stands in for the mail webhook; remembers every delivered link."""

    def __init__(self):
        self.messages: list[dict] = []
        self.rejected: set[str] = set()

    def handle(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        if payload["email"] in self.rejected:
            return httpx.Response(503, json={"error": "mailbox unavailable"})
        self.messages.append(payload)
        return httpx.Response(202, json={"queued": True})

    def sent_to(self, email: str) -> list[dict]:
        return [m for m in self.messages if m["email"] == email]

    def link_for(self, email: str) -> str:
        return self.sent_to(email)[-1]["link"]


@pytest.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after."""
    # Import all models so Base.metadata knows about them
    import campaign_keeper.models  # noqa: F401

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def db():
    """Direct async DB session for service-level tests."""
    async with test_session_factory() as session:
        yield session
        await session.commit()


@pytest.fixture
async def redis():
    client = FakeAsyncRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def outbox():
    return Outbox()


@pytest.fixture
async def client(redis, outbox):
    """Async HTTP test client with test DB, fake Redis and a recording mailer."""
    from campaign_keeper.main import app

    async def _override_get_redis():
        return redis

    def _override_get_mailer():
        return MagicLinkMailer(
            webhook_url=MAIL_WEBHOOK_URL, transport=httpx.MockTransport(outbox.handle)
        )

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_redis] = _override_get_redis
    app.dependency_overrides[get_mailer] = _override_get_mailer
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def make_workspace(client):
    """Factory for independent client workspaces talking to the same app."""

    def _make() -> Workspace:
        return Workspace(RemoteDataService(client=client))

    return _make


@pytest.fixture
async def workspace(make_workspace):
    """Workspace signed in as the game master gm@example.com."""
    ws = make_workspace()
    assert await ws.auth.sign_up("gm@example.com", PASSWORD, PASSWORD)
    return ws


@pytest.fixture
async def other_workspace(make_workspace):
    """A second, unrelated account."""
    ws = make_workspace()
    assert await ws.auth.sign_up("rival@example.com", PASSWORD, PASSWORD)
    return ws


@pytest.fixture
async def campaign(workspace):
    record = await workspace.campaigns.create(
        {"title": "Lost Mines", "description": "intro adventure"}
    )
    assert record is not None
    return record


@pytest.fixture
def register(client):
    """Register an account directly against the API; returns its auth headers."""

    async def _register(email: str) -> dict:
        resp = await client.post("/auth/signup", json={"email": email, "password": PASSWORD})
        assert resp.status_code == 200
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}

    return _register
