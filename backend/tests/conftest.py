"""
DevHabit Backend — Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the whole suite.
How:   Environment variables are set BEFORE anything from `devhabit` is
       imported, so the engine and settings singletons pick up the test
       SQLite database and signing key.

Fixture Hierarchy:
    Function-scoped (fresh for each test):
    ├── mock_db_session: AsyncMock session for service unit tests
    ├── database:        creates every table, drops them afterwards
    ├── app:             a new FastAPI instance (fresh ETag/idempotency state)
    ├── client:          HTTPX AsyncClient over ASGITransport (needs database)
    ├── token_factory:   make_token, for expired or foreign tokens
    ├── auth_headers:    Bearer token for user "u_test"
    └── other_auth_headers: Bearer token for a second user
"""

import os
import tempfile
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Dict
from unittest.mock import AsyncMock, MagicMock

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient


# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

_TEST_DB_DIR = tempfile.mkdtemp(prefix="devhabit_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DB_DIR}/test.db"
os.environ["JWT_KEY"] = "test-signing-key-that-is-long-enough-for-hs256"
os.environ["LOG_LEVEL"] = "WARNING"

TEST_USER_ID = "u_test"
OTHER_USER_ID = "u_other"


def make_token(
    user_id: str = TEST_USER_ID,
    expires_in: timedelta = timedelta(minutes=30),
    **overrides,
) -> str:
    """Mint an access token the way the identity service would."""
    from devhabit.config import settings

    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": now,
        "exp": now + expires_in,
    }
    payload.update(overrides)
    return jwt.encode(payload, settings.jwt_key, algorithm=settings.jwt_algorithm)


# ══════════════════════════════════════════════════════════════════════════
# Unit-test Fixtures
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def mock_db_session():
    """
    A MagicMock standing in for AsyncSession.

    Usage:
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = tag
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    session.add_all = MagicMock()
    return session


# ══════════════════════════════════════════════════════════════════════════
# API Fixtures
# ══════════════════════════════════════════════════════════════════════════


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[None, None]:
    """Empty schema per test; SQLite file lives in a temp directory."""
    import devhabit.models  # noqa: F401  (registers tables)
    from devhabit.database import Base, engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def app():
    from devhabit.main import create_app

    return create_app()


@pytest_asyncio.fixture
async def client(app, database) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTPX AsyncClient talking to the app in-process.

    Usage:
        async def test_health(client):
            response = await client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def token_factory():
    """Callable minting tokens; use for expired or otherwise unusual tokens."""
    return make_token


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def other_auth_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(OTHER_USER_ID)}"}


@pytest.fixture
def habit_payload() -> Dict:
    """A valid CreateHabitDto body."""
    return {
        "name": "Read books",
        "description": "Read every evening",
        "type": 2,
        "frequency": {"type": 1, "timesPerPeriod": 1},
        "target": {"value": 30, "unit": "pages"},
    }
