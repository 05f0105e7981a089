"""Owner of the async engine for one database file."""

import asyncio
from pathlib import Path
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from velo.core.database.base import create_engine, dispose_engine, metadata
from velo.core.database.config import DatabaseConfig, get_config
from velo.utils.errors import DatabaseConnectionError, DatabaseError
from velo.utils.logging import get_logger

logger = get_logger(__name__)


class EngineManager:
    """Creates the engine lazily and the schema once.

    Repositories share one manager; ``async with`` opens the schema and
    disposes the engine on exit.
    """

    def __init__(self, db_path: Path, config: Optional[DatabaseConfig] = None) -> None:
        self.db_path = Path(db_path)
        self.config = config or get_config()

        self._engine: Optional[AsyncEngine] = None
        self._engine_lock = asyncio.Lock()
        self._schema_ready = False

    async def get_engine(self) -> AsyncEngine:
        """Return the engine, creating it on first call.

        Raises:
            DatabaseConnectionError: If the engine cannot be created
        """
        async with self._engine_lock:
            if self._engine is None:
                try:
                    self._engine = create_engine(self.db_path, config=self.config)
                except Exception as e:
                    raise DatabaseConnectionError(
                        f"Cannot open database at {self.db_path}",
                        details={"db_path": str(self.db_path), "error": str(e)},
                    ) from e
                logger.info(f"Opened database {self.db_path}")

        return self._engine

    async def init_schema(self) -> None:
        """Create the queue and quick step tables if missing."""
        if self._schema_ready:
            return

        engine = await self.get_engine()
        try:
            async with engine.begin() as conn:
                await conn.run_sync(metadata.create_all)
        except Exception as e:
            raise DatabaseError(
                f"Cannot create schema in {self.db_path}",
                details={"db_path": str(self.db_path), "error": str(e)},
            ) from e

        self._schema_ready = True
        logger.debug(f"Schema ready: {', '.join(sorted(metadata.tables))}")

    async def close(self) -> None:
        if self._engine is None:
            return
        await dispose_engine(self._engine)
        self._engine = None
        self._schema_ready = False

    async def __aenter__(self) -> "EngineManager":
        await self.init_schema()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        try:
            await self.close()
        except Exception as e:
            if exc_type is None:
                raise
            logger.error(f"Error closing {self.db_path} after {exc_type.__name__}: {e}")
        return False
