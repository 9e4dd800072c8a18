"""
Shared fixtures: settings pointed at tmp_path, an in-memory SQLite remote
tier, users, and a provider gateway wired to httpx.MockTransport.
"""

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from encore.core.auth import AuthenticatedUser
from encore.core.config import Settings
from encore.core.database import Base, create_session_factory
from encore.core.storage import LocalStore
from encore.services.providers import PreferenceStore, ProviderGateway


@pytest.fixture
def settings(tmp_path):
    return Settings(
        LOCAL_STORAGE_PATH=str(tmp_path / "local"),
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        GROQ_API_KEY="groq-test-key",
        GEMINI_API_KEY="gemini-test-key",
        JWT_SECRET="test-secret",
    )


@pytest.fixture
def local(tmp_path):
    return LocalStore(str(tmp_path / "local"))


@pytest.fixture
def user():
    return AuthenticatedUser(user_id="user-1", email="manager@example.com")


@pytest.fixture
def admin():
    return AuthenticatedUser(user_id="admin-1", email="admin@example.com", roles=["admin"])


@pytest_asyncio.fixture
async def session_factory():
    """Remote tier backed by a single in-memory SQLite connection."""
    from encore import models  # noqa: F401

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield create_session_factory(engine)
    await engine.dispose()


def openai_reply(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def gemini_reply(content: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": content}], "role": "model"}}]}


class RecordingHandler:
    """MockTransport handler that records requests and replays canned responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def make_gateway(settings, local, handler) -> ProviderGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ProviderGateway(settings, PreferenceStore(local), client=client)
