"""
Shared fixtures for the Tier Advisor tests.

Settings are validated at import time, so the environment is filled in here
before anything under ``app`` is imported.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("IDENTITY_PROVIDER_URL", "https://auth.example.test")
os.environ.setdefault("IDENTITY_PROVIDER_ANON_KEY", "anon-test-key")
os.environ.setdefault("IDENTITY_PROVIDER_JWT_SECRET", "identity-provider-test-secret-0123456789")
os.environ.setdefault("JWT_SECRET", "local-session-test-secret-0123456789abcdef")
os.environ.setdefault("ANTHROPIC_API_KEY", "sk-ant-test")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_123")
os.environ.setdefault("STRIPE_PUBLISHABLE_KEY", "pk_test_123")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_123")

from unittest.mock import AsyncMock, MagicMock
import uuid

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from app.db import Database
from app.main import app
from app.services.anthropic_service import get_anthropic_service
from app.services.auth_service import create_access_token

from tests.factories import bearer, default_tiers, llm_reply


@pytest_asyncio.fixture
async def database():
    """Fresh in-memory database attached to the app for each test"""
    db = Database(os.environ["DATABASE_URL"])
    await db.create_all()
    app.state.db = db
    yield db
    app.state.db = None
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database: Database):
    """Get a database session"""
    async with database.session() as session:
        yield session


@pytest_asyncio.fixture
async def seeded_tiers(db_session):
    tiers = default_tiers()
    db_session.add_all(tiers)
    await db_session.commit()
    return tiers


@pytest.fixture
def fake_llm():
    """LLM stand-in; set ``fake_llm.chat.return_value`` per test"""
    llm = MagicMock()
    llm.chat = AsyncMock(return_value=llm_reply(
        'Great, noted.\n<answers>{"blockchains": ["ethereum"], "request_volume_per_month": 500000, '
        '"archive_needs": "none", "geo_preference": "US", "budget_monthly_cents": 10000}</answers>'
    ))
    app.dependency_overrides[get_anthropic_service] = lambda: llm
    yield llm
    app.dependency_overrides.pop(get_anthropic_service, None)


@pytest_asyncio.fixture
async def client(database: Database):
    """Create an async test client"""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def user_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def auth_headers(user_id: str) -> dict:
    """Session token for a user that does not exist yet (created on first call)"""
    return bearer(create_access_token(user_id, f"{user_id[:8]}@example.com"))
