"""Shared utilities for CLI commands"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator

from velo.core.database import EngineManager, PendingOperationRepository, QuickStepRepository
from velo.utils.config import ConfigManager
from velo.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Repositories:
    """Repositories opened for one CLI command."""

    operations: PendingOperationRepository
    quick_steps: QuickStepRepository


@asynccontextmanager
async def open_repositories(config_manager: ConfigManager) -> AsyncIterator[Repositories]:
    """Open the configured database and yield its repositories.

    The schema is created on first use and the engine is disposed on exit.
    """
    db_path = Path(config_manager.get_config("database.database_path")).expanduser()
    queue = config_manager.config.queue

    async with EngineManager(db_path) as engine_mgr:
        logger.debug(f"Opened database {db_path}")
        yield Repositories(
            operations=PendingOperationRepository(
                engine_mgr,
                max_retries=queue.max_retries,
                backoff_base_seconds=queue.backoff_base_seconds,
                backoff_max_seconds=queue.backoff_max_seconds,
            ),
            quick_steps=QuickStepRepository(engine_mgr),
        )
