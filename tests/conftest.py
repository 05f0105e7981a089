"""
Shared test fixtures and configuration for pytest
"""
import os
import tempfile

# Keep log files out of the home directory; must be set before velo is imported
os.environ.setdefault("VELO_LOG_DIR", tempfile.mkdtemp(prefix="velo-logs-"))

from unittest.mock import AsyncMock

import pytest

from velo.core.actions.dispatcher import ActionDispatcher
from velo.core.connectivity import ConnectivityState
from velo.core.database import EngineManager, PendingOperationRepository, QuickStepRepository
from velo.core.events import EventBus
from velo.core.ports import EmailProvider, ThreadService
from velo.core.providers import ProviderRegistry
from velo.core.stores.thread_store import ThreadStore
from velo.utils.config import ConfigManager

from .test_helpers import ACCOUNT, FakeClock, ThreadTestHelper


@pytest.fixture(autouse=True)
def reset_config_manager():
    """Drop the ConfigManager singleton around each test"""
    ConfigManager.reset()
    yield
    ConfigManager.reset()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_path(tmp_path):
    """Temporary SQLite database path"""
    return tmp_path / "velo_test.db"


@pytest.fixture
async def engine_mgr(db_path):
    """Engine manager over a fresh schema."""
    manager = EngineManager(db_path)
    await manager.init_schema()

    yield manager

    await manager.close()


@pytest.fixture
def repo(engine_mgr, clock):
    """PendingOperationRepository with a fake clock."""
    return PendingOperationRepository(
        engine_mgr,
        max_retries=10,
        backoff_base_seconds=2.0,
        backoff_max_seconds=300.0,
        clock=clock,
    )


@pytest.fixture
def quick_step_repo(engine_mgr):
    return QuickStepRepository(engine_mgr)


@pytest.fixture
def threads():
    """Thread store with two unread, unstarred inbox threads."""
    return ThreadStore(
        [
            ThreadTestHelper.create_thread("t1", subject="Quarterly numbers"),
            ThreadTestHelper.create_thread("t2", subject="Lunch?"),
        ]
    )


@pytest.fixture
def provider():
    """Mock provider whose calls all succeed."""
    mock = AsyncMock(spec=EmailProvider)
    mock.send_message.return_value = {"id": "msg-1"}
    mock.create_draft.return_value = {"draftId": "draft-1"}
    mock.update_draft.return_value = {"draftId": "draft-1"}
    return mock


@pytest.fixture
def providers(provider):
    registry = ProviderRegistry()
    registry.register(ACCOUNT, provider)
    return registry


@pytest.fixture
def thread_service():
    return AsyncMock(spec=ThreadService)


@pytest.fixture
def connectivity():
    return ConnectivityState(online=True)


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def dispatcher(providers, repo, connectivity, threads, events):
    return ActionDispatcher(providers, repo, connectivity, threads, events)
