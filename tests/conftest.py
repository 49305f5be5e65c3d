"""Pytest configuration and fixtures."""

from typing import AsyncGenerator, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import cocreate.models  # noqa: F401  (registers tables)
from cocreate.api.auth import create_access_token
from cocreate.api.cocreate import get_claude_client
from cocreate.main import app
from cocreate.prompts.builder import clear_template_cache
from cocreate.services.database import Base, get_db, get_session_factory


# Create in-memory SQLite for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def fresh_templates():
    """Each test sees templates loaded from disk."""
    clear_template_cache()
    yield
    clear_template_cache()


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get a test database session."""
    async with TestSessionLocal() as session:
        yield session


@pytest.fixture
def override_get_db(db_session: AsyncSession):
    """Override the get_db dependency."""
    async def _override_get_db():
        yield db_session
    return _override_get_db


@pytest.fixture
def make_claude_response() -> Callable[[str], MagicMock]:
    """Build an object shaped like an Anthropic messages response."""
    def _make(text: str) -> MagicMock:
        response = MagicMock()
        response.content = [MagicMock(text=text)]
        return response
    return _make


@pytest.fixture
def mock_claude_client(make_claude_response):
    """AsyncAnthropic stand-in whose messages.create returns '{}' by default."""
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=make_claude_response("{}"))
    return client


@pytest.fixture
def scripted_claude(make_claude_response):
    """
    Claude stand-in that answers by stage.

    Usage: scripted_claude({"sufficiency": "...", "draft": "...", "review": "...",
    "analysis": "..."}). A value may be an Exception instance to raise.
    Calls are recorded per stage in client.calls.
    """
    stage_markers = [
        ("sufficiency", "# Sufficiency Check"),
        ("review", "# Quality Review"),
        ("draft", "# Write The Post"),
        ("analysis", "expert writing analyst"),
        ("refine", "Refine the post based on the feedback"),
    ]

    def _build(answers: dict):
        client = MagicMock()
        client.calls = []

        async def create(**kwargs):
            prompt = kwargs["messages"][0]["content"]
            stage = next((name for name, marker in stage_markers if marker in prompt), "unknown")
            client.calls.append((stage, kwargs))
            answer = answers.get(stage)
            if isinstance(answer, Exception):
                raise answer
            if answer is None:
                raise RuntimeError(f"No scripted answer for stage {stage}")
            return make_claude_response(answer)

        client.messages.create = AsyncMock(side_effect=create)
        return client

    return _build


@pytest.fixture
def auth_headers() -> Callable[[str], dict]:
    """Bearer headers for a user id."""
    def _headers(user_id: str = "user-a") -> dict:
        token, _ = create_access_token(user_id)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
async def client(override_get_db) -> AsyncGenerator[AsyncClient, None]:
    """Get async test client."""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestSessionLocal
    app.dependency_overrides[get_claude_client] = lambda: None

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def sample_posts() -> list[str]:
    """Past LinkedIn posts with a recognisable style."""
    return [
        "Shipping beats perfect.\n\nWe launched v2 on Tuesday.\n\nThree bugs in prod.\n\nZero regrets. 🚀 #buildinpublic",
        "What's the one meeting you'd cancel forever?\n\nMine: status updates.\n\nWrite it down instead.\n\nWho agrees? #productivity",
        "Hiring is a product problem.\n\nYour job post is the landing page.\n\nYour interview is the onboarding.\n\nTreat it that way. 💡",
        "I used to think more features meant more value. They don't. Focus wins.",
    ]
