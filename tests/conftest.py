"""
Shared fixtures for the Flock test suite.

Every test gets its own temporary data directory, an initialized
Database handle, an in-memory object store and a deterministic clock.
"""

import tempfile

import pytest
import pytest_asyncio

from backend.flock_server.config import AuthConfig, RequestConfig, ServerConfig, StorageConfig
from backend.flock_server.media import InMemoryObjectStorage
from backend.flock_server.service import FlockService
from backend.flock_server.store import Database

# Fast hashing keeps registration cheap in tests
TEST_HASH_METHOD = "pbkdf2:sha256:1000"


class FakeClock:
    """Deterministic Unix-ms clock that advances on every read."""

    def __init__(self, start: int = 1_700_000_000_000, step: int = 1000) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> int:
        value = self.now
        self.now += self.step
        return value

    def advance(self, ms: int) -> None:
        self.now += ms


def make_config(data_dir: str) -> ServerConfig:
    return ServerConfig(
        storage=StorageConfig(data_dir=data_dir),
        auth=AuthConfig(password_hash_method=TEST_HASH_METHOD),
        request=RequestConfig(retry_delay_ms=0),
    )


@pytest.fixture
def data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config(data_dir):
    return make_config(data_dir)


@pytest_asyncio.fixture
async def db(config):
    """Initialized database handle, closed after the test."""
    handle = Database.from_config(config.storage)
    await handle.initialize()
    yield handle
    await handle.close()


@pytest.fixture
def storage():
    return InMemoryObjectStorage()


@pytest_asyncio.fixture
async def service(db, config, storage, clock):
    await storage.connect()
    yield FlockService(db, config, storage, clock=clock)
    await storage.close()


@pytest.fixture
def make_user(service):
    """Factory registering a user and returning its id."""

    async def _make_user(handle: str, name: str | None = None) -> str:
        session = await service.register(
            name or handle.capitalize(), handle, f"{handle}@example.com", "secret-pw"
        )
        return session.user.user_id

    return _make_user
