"""Explicit transaction scope for multi-statement queue updates."""

import time
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncTransaction

from velo.core.database.config import get_config
from velo.utils.errors import DatabaseTransactionError
from velo.utils.logging import get_logger

logger = get_logger(__name__)


class TransactionManager:
    """Holds one connection and one BEGIN..COMMIT around a block.

    Used where a read must be followed by writes that depend on it, e.g.
    re-reading a row before bumping its retry count, or snapshotting the
    queue before deleting compacted rows.

    Usage:
        async with TransactionManager(engine, name="compact") as tx:
            rows = await tx.connection.execute(query)
    """

    def __init__(self, engine: AsyncEngine, name: str = "transaction", timeout: Optional[float] = None):
        self.engine = engine
        self.name = name
        self.config = get_config()
        self.timeout = timeout or self.config.transaction_timeout

        self._connection: Optional[AsyncConnection] = None
        self._transaction: Optional[AsyncTransaction] = None
        self._started: float = 0.0

    @property
    def connection(self) -> AsyncConnection:
        """Connection bound to the open transaction.

        Raises:
            RuntimeError: If used outside ``async with``
        """
        if self._connection is None:
            raise RuntimeError(f"{self.name}: no open transaction")
        return self._connection

    async def __aenter__(self) -> "TransactionManager":
        self._started = time.monotonic()
        try:
            self._connection = await self.engine.connect()
            self._transaction = await self._connection.begin()
        except Exception as e:
            if self._connection is not None:
                await self._connection.close()
                self._connection = None
            raise DatabaseTransactionError(
                f"Could not begin {self.name}", details={"error": str(e)}
            ) from e
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        elapsed = time.monotonic() - self._started

        try:
            if exc_type is not None:
                await self._transaction.rollback()
                logger.warning(f"{self.name} rolled back after {elapsed:.2f}s: {exc_val!r}")
                return False

            if elapsed > self.timeout:
                await self._transaction.rollback()
                raise DatabaseTransactionError(
                    f"{self.name} exceeded {self.timeout:.0f}s and was rolled back",
                    details={"elapsed": elapsed, "timeout": self.timeout},
                )

            await self._transaction.commit()
            if elapsed > self.config.slow_transaction_threshold:
                logger.warning(f"Slow {self.name}: {elapsed:.2f}s")
        finally:
            await self._connection.close()
            self._connection = None

        return False
