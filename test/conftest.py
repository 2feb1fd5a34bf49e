import sys
from pathlib import Path
import logging

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from asgi_lifespan import LifespanManager

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from session import SessionConfig, SessionManager, MemorySessionStore

TEST_SECRET = "test-secret-key"


class FakeClock:
    """Settable epoch-millisecond clock for expiry tests."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    """Configure logging for tests."""
    logging.basicConfig(level=logging.INFO)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store(clock):
    return MemorySessionStore(clock=clock)


@pytest.fixture
def session_config():
    return SessionConfig(secret=TEST_SECRET, max_age_ms=3_600_000, secure=False)


@pytest.fixture
def manager(session_config, memory_store):
    return SessionManager(session_config, store=memory_store)


@pytest_asyncio.fixture
async def client(manager):
    from service import create_app

    app = create_app(manager)
    async with LifespanManager(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost:5000") as client:
            yield client
