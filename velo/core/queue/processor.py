"""Drain loop replaying queued operations against the provider."""

import asyncio
from dataclasses import dataclass
from typing import Optional, Set

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from velo.core.actions.dispatcher import ActionDispatcher
from velo.core.database.repositories.pending_operations import PendingOperationRepository
from velo.core.events import EventBus, PendingCountChanged, SyncDone
from velo.core.models.pending_operation import OperationStatus, PendingOperation
from velo.core.ports import ConnectivitySignal
from velo.utils.errors import ValidationError
from velo.utils.logging import async_log_call, get_logger, log_event
from velo.utils.network_errors import classify_error

logger = get_logger(__name__)

JOB_ID = "queue_drain"


@dataclass
class DrainResult:
    """Counts from one drain pass."""

    skipped: bool = False
    compacted: int = 0
    succeeded: int = 0
    retried: int = 0
    failed: int = 0
    interrupted: bool = False

    @property
    def attempted(self) -> int:
        return self.succeeded + self.retried + self.failed


class QueueProcessor:
    """Replays due pending operations when the network is available.

    A pass compacts the queue, then replays each due operation oldest first:
    success deletes the row, a retryable error schedules another attempt
    with backoff and a permanent error marks the row failed.
    """

    def __init__(
        self,
        operations: PendingOperationRepository,
        dispatcher: ActionDispatcher,
        connectivity: ConnectivitySignal,
        events: Optional[EventBus] = None,
        interval_seconds: int = 30,
        drain_on_reconnect: bool = True,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        """Initialize processor.

        Args:
            operations: Pending operation store
            dispatcher: Replays queued rows against the provider
            connectivity: Online/offline signal
            events: Bus for PendingCountChanged and SyncDone
            interval_seconds: Period of the scheduled drain
            drain_on_reconnect: Flush as soon as connectivity returns
            scheduler: Scheduler to register the drain job on
        """
        if interval_seconds <= 0:
            raise ValidationError(
                f"Invalid drain interval: {interval_seconds} (must be positive)"
            )

        self.operations = operations
        self.dispatcher = dispatcher
        self.connectivity = connectivity
        self.events = events or EventBus()
        self.interval_seconds = interval_seconds
        self.drain_on_reconnect = drain_on_reconnect
        self.scheduler = scheduler or AsyncIOScheduler()

        self._flushing = False
        self._tasks: Set[asyncio.Task] = set()

    @property
    def is_flushing(self) -> bool:
        return self._flushing

    async def _replay(self, op: PendingOperation, result: DrainResult) -> None:
        op_logger = get_logger(__name__, account_id=op.account_id, operation_id=op.id)

        try:
            await self.dispatcher.execute_queued_action(
                op.account_id, op.operation_type, op.params
            )
        except Exception as e:
            classified = classify_error(e)

            if classified.is_retryable:
                await self.operations.update_status(
                    op.id, OperationStatus.PENDING, classified.message
                )
                status = await self.operations.increment_retry(op.id)
                if status is OperationStatus.FAILED:
                    result.failed += 1
                else:
                    result.retried += 1
                op_logger.info(
                    f"Retryable failure replaying {op.operation_type}: "
                    f"{classified.message}"
                )
                return

            await self.operations.update_status(
                op.id, OperationStatus.FAILED, classified.message
            )
            result.failed += 1
            op_logger.error(
                f"Permanent failure replaying {op.operation_type}: "
                f"{classified.message}"
            )
            return

        await self.operations.delete(op.id)
        result.succeeded += 1

    @async_log_call
    async def flush(self) -> DrainResult:
        """Run one drain pass.

        Does nothing while offline or while another pass is running.
        """
        if not self.connectivity.is_online():
            logger.debug("Skipping queue drain: offline")
            return DrainResult(skipped=True)

        if self._flushing:
            logger.debug("Skipping queue drain: already running")
            return DrainResult(skipped=True)

        self._flushing = True
        result = DrainResult()

        try:
            result.compacted = await self.operations.compact()

            for op in await self.operations.list_due():
                if not self.connectivity.is_online():
                    logger.info("Connectivity lost, stopping queue drain")
                    result.interrupted = True
                    break
                await self._replay(op, result)

            count = await self.operations.count_pending()
            self.events.publish(PendingCountChanged(count=count))
            if result.succeeded:
                self.events.publish(SyncDone())

        finally:
            self._flushing = False

        if result.attempted or result.compacted:
            log_event(
                "queue_drained",
                f"Queue drain: {result.succeeded} succeeded, {result.retried} retrying, "
                f"{result.failed} failed, {result.compacted} compacted",
            )
        return result

    ## Scheduling

    def _on_reconnect(self) -> None:
        task = asyncio.get_running_loop().create_task(self.flush())
        self._tasks.add(task)
        task.add_done_callback(self._reconnect_done)

    def _reconnect_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Queue drain after reconnect failed: {task.exception()}")

    def start(self) -> None:
        """Schedule the periodic drain and hook reconnect events.

        Must be called from within a running event loop.
        """
        self.scheduler.add_job(
            self.flush,
            "interval",
            seconds=self.interval_seconds,
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        if not self.scheduler.running:
            self.scheduler.start()

        if self.drain_on_reconnect and hasattr(self.connectivity, "on_reconnect"):
            self.connectivity.on_reconnect(self._on_reconnect)

        logger.info(f"Queue processor started (interval: {self.interval_seconds}s)")

    def stop(self) -> None:
        if self.scheduler.get_job(JOB_ID) is not None:
            self.scheduler.remove_job(JOB_ID)
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

        if hasattr(self.connectivity, "remove_reconnect_listener"):
            self.connectivity.remove_reconnect_listener(self._on_reconnect)

        logger.info("Queue processor stopped")
