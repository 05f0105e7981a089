"""Pending operation repository with SQLAlchemy Core queries."""

import asyncio
import json
import uuid
from functools import wraps
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError

from velo.core.database.engine_manager import EngineManager
from velo.core.database.models import get_table
from velo.core.database.transaction import TransactionManager
from velo.core.models.pending_operation import (
    DEFAULT_MAX_RETRIES,
    OperationStatus,
    PendingOperation,
    now_ms,
)
from velo.core.queue.compaction import plan_compaction
from velo.utils.errors import DatabaseError, VeloError
from velo.utils.logging import get_logger, log_event

logger = get_logger(__name__)


def _db_errors(method):
    """Surface driver failures as DatabaseError with the failing method name."""

    @wraps(method)
    async def wrapper(*args, **kwargs):
        try:
            return await method(*args, **kwargs)
        except VeloError:
            raise
        except SQLAlchemyError as e:
            raise DatabaseError(
                f"Pending operation store failed in {method.__name__}: {e}",
                details={"method": method.__name__},
            ) from e

    return wrapper


class PendingOperationRepository:
    """Repository for PendingOperation rows using SQLAlchemy Core.

    Provides:
    - FIFO listing by ``(created_at, seq)``
    - Retry bookkeeping with exponential backoff
    - Compaction of cancelling and superseded operations
    - Writes serialised by one lock per repository
    """

    def __init__(
        self,
        engine_manager: EngineManager,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_base_seconds: float = 2.0,
        backoff_max_seconds: float = 300.0,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize repository.

        Args:
            engine_manager: Engine manager for database access
            max_retries: Retry budget stamped on newly enqueued rows
            backoff_base_seconds: First retry delay, doubled per attempt
            backoff_max_seconds: Upper bound on the retry delay
            clock: Source of epoch milliseconds (injectable for tests)
        """
        self.engine_mgr = engine_manager
        self.max_retries = max_retries
        self.backoff_base_seconds = backoff_base_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self._clock = clock
        self._table = get_table("pending_operations")
        self._lock = asyncio.Lock()

    def backoff_delay_ms(self, retry_count: int) -> int:
        """Delay before the next attempt after ``retry_count`` failures."""
        delay = min(
            self.backoff_base_seconds * (2 ** retry_count),
            self.backoff_max_seconds,
        )
        return int(delay * 1000)

    def _ordered(self, query):
        return query.order_by(self._table.c.created_at, self._table.c.seq)

    async def _fetch(self, query) -> List[PendingOperation]:
        engine = await self.engine_mgr.get_engine()
        async with engine.connect() as conn:
            result = await conn.execute(query)
            return [PendingOperation.from_row(row) for row in result.mappings().all()]

    async def _count(self, *conditions) -> int:
        engine = await self.engine_mgr.get_engine()
        query = select(func.count()).select_from(self._table).where(*conditions)
        async with engine.connect() as conn:
            result = await conn.execute(query)
            return result.scalar_one()

    ## Writes

    @_db_errors
    async def enqueue(
        self,
        account_id: str,
        operation_type: str,
        resource_id: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Insert a new pending operation.

        Returns:
            The generated operation id
        """
        op_id = str(uuid.uuid4())
        values = {
            "id": op_id,
            "account_id": account_id,
            "operation_type": operation_type,
            "resource_id": resource_id,
            "params": json.dumps(params or {}),
            "status": OperationStatus.PENDING.value,
            "retry_count": 0,
            "max_retries": self.max_retries,
            "next_retry_at": None,
            "created_at": self._clock(),
            "error_message": None,
        }

        engine = await self.engine_mgr.get_engine()
        async with self._lock:
            async with engine.begin() as conn:
                await conn.execute(self._table.insert().values(**values))

        log_event(
            "operation_enqueued",
            f"Queued {operation_type} for {resource_id}",
            account_id=account_id,
            operation_id=op_id,
        )
        return op_id

    @_db_errors
    async def delete(self, op_id: str) -> bool:
        """Delete one operation. A missing row is not an error.

        Returns:
            True if a row was deleted
        """
        engine = await self.engine_mgr.get_engine()
        async with self._lock:
            async with engine.begin() as conn:
                result = await conn.execute(
                    delete(self._table).where(self._table.c.id == op_id)
                )

        deleted = result.rowcount > 0
        if deleted:
            logger.debug(f"Deleted pending operation {op_id}")
        return deleted

    @_db_errors
    async def update_status(
        self,
        op_id: str,
        status: OperationStatus | str,
        error_message: Optional[str] = None,
    ) -> None:
        """Set status and error text; the error is cleared when not given."""
        if isinstance(status, str):
            status = OperationStatus.from_string(status)

        engine = await self.engine_mgr.get_engine()
        async with self._lock:
            async with engine.begin() as conn:
                await conn.execute(
                    update(self._table)
                    .where(self._table.c.id == op_id)
                    .values(status=status.value, error_message=error_message)
                )

    @_db_errors
    async def increment_retry(self, op_id: str) -> Optional[OperationStatus]:
        """Record one more failed attempt.

        The row is re-read inside the transaction. When the budget is spent the
        row becomes ``failed`` with ``retry_count`` clamped to ``max_retries``;
        otherwise the count goes up and the next attempt is pushed out by the
        backoff delay.

        Returns:
            The resulting status, or None if the row no longer exists
        """
        table = self._table
        engine = await self.engine_mgr.get_engine()

        async with self._lock:
            async with TransactionManager(engine, name="increment_retry") as tx:
                result = await tx.connection.execute(
                    select(table.c.retry_count, table.c.max_retries).where(
                        table.c.id == op_id
                    )
                )
                row = result.first()
                if row is None:
                    logger.debug(f"increment_retry: operation {op_id} already gone")
                    return None

                retry_count, max_retries = row
                if retry_count + 1 >= max_retries:
                    values = {
                        "status": OperationStatus.FAILED.value,
                        "retry_count": max_retries,
                        "next_retry_at": None,
                    }
                    status = OperationStatus.FAILED
                else:
                    values = {
                        "retry_count": retry_count + 1,
                        "next_retry_at": self._clock() + self.backoff_delay_ms(retry_count),
                    }
                    status = OperationStatus.PENDING

                await tx.connection.execute(
                    update(table).where(table.c.id == op_id).values(**values)
                )

        if status is OperationStatus.FAILED:
            log_event(
                "operation_exhausted",
                f"Operation {op_id} failed after {max_retries} attempts",
                level="WARNING",
                operation_id=op_id,
            )
        return status

    @_db_errors
    async def clear_failed(self, account_id: Optional[str] = None) -> int:
        """Delete failed operations, optionally for one account.

        Returns:
            Number of rows deleted
        """
        conditions = [self._table.c.status == OperationStatus.FAILED.value]
        if account_id is not None:
            conditions.append(self._table.c.account_id == account_id)

        engine = await self.engine_mgr.get_engine()
        async with self._lock:
            async with engine.begin() as conn:
                result = await conn.execute(delete(self._table).where(*conditions))

        cleared = result.rowcount
        log_event(
            "failed_cleared",
            f"Cleared {cleared} failed operations",
            account_id=account_id,
        )
        return cleared

    @_db_errors
    async def retry_failed(self) -> int:
        """Move every failed operation back to pending.

        ``retry_count`` is kept; ``next_retry_at`` is cleared so the rows are
        due on the next drain.

        Returns:
            Number of rows reset
        """
        engine = await self.engine_mgr.get_engine()
        async with self._lock:
            async with engine.begin() as conn:
                result = await conn.execute(
                    update(self._table)
                    .where(self._table.c.status == OperationStatus.FAILED.value)
                    .values(
                        status=OperationStatus.PENDING.value,
                        next_retry_at=None,
                    )
                )

        reset = result.rowcount
        log_event("failed_retried", f"Reset {reset} failed operations to pending")
        return reset

    @_db_errors
    async def compact(self) -> int:
        """Delete pending operations made redundant by later ones.

        Reads a snapshot of all pending rows and deletes the planned ids in
        the same transaction.

        Returns:
            Number of rows deleted
        """
        table = self._table
        engine = await self.engine_mgr.get_engine()

        async with self._lock:
            async with TransactionManager(engine, name="compact") as tx:
                result = await tx.connection.execute(
                    self._ordered(
                        select(table).where(
                            table.c.status == OperationStatus.PENDING.value
                        )
                    )
                )
                snapshot = [
                    PendingOperation.from_row(row) for row in result.mappings().all()
                ]

                plan = plan_compaction(snapshot)
                if plan.is_empty:
                    return 0

                await tx.connection.execute(
                    delete(table).where(table.c.id.in_(plan.delete_ids))
                )

        log_event(
            "queue_compacted",
            f"Compacted {plan.removed_count} of {len(snapshot)} pending operations "
            f"(toggles={plan.cancelled_toggles}, labels={plan.cancelled_labels}, "
            f"collapsed={plan.collapsed})",
        )
        return plan.removed_count

    ## Reads

    @_db_errors
    async def get(self, op_id: str) -> Optional[PendingOperation]:
        """Find one operation by id."""
        rows = await self._fetch(select(self._table).where(self._table.c.id == op_id))
        return rows[0] if rows else None

    @_db_errors
    async def list_pending(self, account_id: Optional[str] = None) -> List[PendingOperation]:
        """Pending operations in FIFO order, optionally for one account."""
        conditions = [self._table.c.status == OperationStatus.PENDING.value]
        if account_id is not None:
            conditions.append(self._table.c.account_id == account_id)

        return await self._fetch(self._ordered(select(self._table).where(*conditions)))

    @_db_errors
    async def list_due(
        self,
        now: Optional[int] = None,
        account_id: Optional[str] = None,
    ) -> List[PendingOperation]:
        """Pending operations whose backoff has elapsed, in FIFO order."""
        now = self._clock() if now is None else now
        table = self._table
        conditions = [
            table.c.status == OperationStatus.PENDING.value,
            or_(table.c.next_retry_at.is_(None), table.c.next_retry_at <= now),
        ]
        if account_id is not None:
            conditions.append(table.c.account_id == account_id)

        return await self._fetch(self._ordered(select(table).where(and_(*conditions))))

    @_db_errors
    async def list_failed(self, account_id: Optional[str] = None) -> List[PendingOperation]:
        """Operations that exhausted their retries, oldest first."""
        conditions = [self._table.c.status == OperationStatus.FAILED.value]
        if account_id is not None:
            conditions.append(self._table.c.account_id == account_id)

        return await self._fetch(self._ordered(select(self._table).where(*conditions)))

    @_db_errors
    async def list_for_resource(
        self, account_id: str, resource_id: str
    ) -> List[PendingOperation]:
        """Pending operations touching one thread or draft."""
        table = self._table
        query = select(table).where(
            table.c.account_id == account_id,
            table.c.resource_id == resource_id,
            table.c.status == OperationStatus.PENDING.value,
        )
        return await self._fetch(self._ordered(query))

    @_db_errors
    async def count_pending(self, account_id: Optional[str] = None) -> int:
        conditions = [self._table.c.status == OperationStatus.PENDING.value]
        if account_id is not None:
            conditions.append(self._table.c.account_id == account_id)
        return await self._count(*conditions)

    @_db_errors
    async def count_failed(self, account_id: Optional[str] = None) -> int:
        conditions = [self._table.c.status == OperationStatus.FAILED.value]
        if account_id is not None:
            conditions.append(self._table.c.account_id == account_id)
        return await self._count(*conditions)
