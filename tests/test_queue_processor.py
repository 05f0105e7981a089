"""Tests for the queue drain loop."""

import asyncio

import pytest

from velo.core.database import PendingOperationRepository
from velo.core.events import PendingCountChanged, SyncDone
from velo.core.models.pending_operation import OperationStatus
from velo.core.queue.processor import JOB_ID, QueueProcessor
from velo.utils.errors import NetworkError, ProviderRejectedError, ValidationError

from .test_helpers import ACCOUNT, EventRecorder


@pytest.fixture
def processor(repo, dispatcher, connectivity, events):
    return QueueProcessor(repo, dispatcher, connectivity, events, interval_seconds=30)


class TestFlush:
    """Tests for a single drain pass"""

    @pytest.mark.asyncio
    async def test_skips_when_offline(self, processor, connectivity, repo, provider):
        await repo.enqueue(ACCOUNT, "archive", "t1", {"threadId": "t1"})
        connectivity.set_online(False)

        result = await processor.flush()

        assert result.skipped is True
        provider.archive.assert_not_called()
        assert await repo.count_pending() == 1

    @pytest.mark.asyncio
    async def test_success_deletes_row_and_publishes(self, processor, repo, provider, events):
        recorder = EventRecorder(events, PendingCountChanged, SyncDone)
        await repo.enqueue(ACCOUNT, "archive", "t1", {"threadId": "t1", "messageIds": ["m1"]})

        result = await processor.flush()

        assert result.succeeded == 1
        provider.archive.assert_awaited_once_with("t1", ["m1"])
        assert await repo.count_pending() == 0
        assert recorder.of_type(PendingCountChanged) == [PendingCountChanged(count=0)]
        assert len(recorder.of_type(SyncDone)) == 1

    @pytest.mark.asyncio
    async def test_compacts_before_replay(self, processor, repo, provider):
        """Test a cancelled star pair never reaches the provider"""
        await repo.enqueue(ACCOUNT, "star", "t1", {"threadId": "t1", "starred": True})
        await repo.enqueue(ACCOUNT, "star", "t1", {"threadId": "t1", "starred": False})

        result = await processor.flush()

        assert result.compacted == 2
        assert result.attempted == 0
        provider.star.assert_not_called()

    @pytest.mark.asyncio
    async def test_collapsed_move_replays_latest(self, processor, repo, provider, clock):
        for folder in ("A", "B", "C"):
            await repo.enqueue(ACCOUNT, "moveToFolder", "t1", {"threadId": "t1", "folderPath": folder})
            clock.advance(1)

        await processor.flush()

        provider.move_to_folder.assert_awaited_once_with("t1", [], "C")

    @pytest.mark.asyncio
    async def test_retryable_failure_schedules_retry(self, processor, repo, provider, clock, events):
        recorder = EventRecorder(events, PendingCountChanged, SyncDone)
        provider.archive.side_effect = NetworkError("Failed to fetch")
        op_id = await repo.enqueue(ACCOUNT, "archive", "t1", {"threadId": "t1"})

        result = await processor.flush()

        op = await repo.get(op_id)
        assert result.retried == 1
        assert op.status is OperationStatus.PENDING
        assert op.retry_count == 1
        assert op.error_message == "Failed to fetch"
        assert op.next_retry_at == clock.now + 2_000
        assert recorder.of_type(PendingCountChanged) == [PendingCountChanged(count=1)]
        assert recorder.of_type(SyncDone) == []

    @pytest.mark.asyncio
    async def test_backoff_skips_row_until_due(self, processor, repo, provider, clock):
        provider.archive.side_effect = NetworkError("timeout")
        await repo.enqueue(ACCOUNT, "archive", "t1", {"threadId": "t1"})
        await processor.flush()
        provider.archive.reset_mock()

        result = await processor.flush()
        assert result.attempted == 0
        provider.archive.assert_not_called()

        clock.advance(2_000)
        result = await processor.flush()
        assert result.retried == 1
        provider.archive.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_retries_exhaust_to_failed(self, engine_mgr, dispatcher, connectivity, events, provider, clock):
        repo = PendingOperationRepository(engine_mgr, max_retries=2, clock=clock)
        processor = QueueProcessor(repo, dispatcher, connectivity, events)
        provider.trash.side_effect = NetworkError("timeout")
        op_id = await repo.enqueue(ACCOUNT, "trash", "t1", {"threadId": "t1"})

        first = await processor.flush()
        clock.advance(10_000)
        second = await processor.flush()

        assert first.retried == 1
        assert second.failed == 1
        op = await repo.get(op_id)
        assert op.status is OperationStatus.FAILED
        assert op.retry_count == 2

    @pytest.mark.asyncio
    async def test_permanent_failure_marks_failed(self, processor, repo, provider):
        provider.star.side_effect = ProviderRejectedError("Invalid thread", status=400)
        op_id = await repo.enqueue(ACCOUNT, "star", "t1", {"threadId": "t1", "starred": True})

        result = await processor.flush()

        op = await repo.get(op_id)
        assert result.failed == 1
        assert op.status is OperationStatus.FAILED
        assert op.error_message == "Invalid thread"
        assert op.retry_count == 0

    @pytest.mark.asyncio
    async def test_unknown_type_marks_failed(self, processor, repo):
        op_id = await repo.enqueue(ACCOUNT, "frobnicate", "t1", {"threadId": "t1"})

        await processor.flush()

        assert (await repo.get(op_id)).status is OperationStatus.FAILED

    @pytest.mark.asyncio
    async def test_replays_in_fifo_order(self, processor, repo, provider, clock):
        calls = []
        provider.archive.side_effect = lambda thread_id, ids: calls.append(("archive", thread_id))
        provider.trash.side_effect = lambda thread_id, ids: calls.append(("trash", thread_id))
        await repo.enqueue(ACCOUNT, "trash", "t2", {"threadId": "t2"})
        clock.advance(1)
        await repo.enqueue(ACCOUNT, "archive", "t1", {"threadId": "t1"})
        clock.advance(1)
        await repo.enqueue(ACCOUNT, "archive", "t3", {"threadId": "t3"})

        await processor.flush()

        assert calls == [("trash", "t2"), ("archive", "t1"), ("archive", "t3")]

    @pytest.mark.asyncio
    async def test_stops_when_connectivity_drops(self, processor, repo, provider, connectivity):
        """Test remaining rows stay queued once the network goes away mid-drain"""

        def go_offline(thread_id, ids):
            connectivity.set_online(False)

        provider.archive.side_effect = go_offline
        await repo.enqueue(ACCOUNT, "archive", "t1", {"threadId": "t1"})
        await repo.enqueue(ACCOUNT, "archive", "t2", {"threadId": "t2"})

        result = await processor.flush()

        assert result.succeeded == 1
        assert result.interrupted is True
        assert provider.archive.await_count == 1
        assert await repo.count_pending() == 1

    @pytest.mark.asyncio
    async def test_concurrent_flush_is_skipped(self, processor, repo, provider):
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_archive(thread_id, ids):
            started.set()
            await release.wait()

        provider.archive.side_effect = slow_archive
        await repo.enqueue(ACCOUNT, "archive", "t1", {"threadId": "t1"})

        first = asyncio.create_task(processor.flush())
        await started.wait()
        assert processor.is_flushing is True

        second = await processor.flush()
        release.set()
        first_result = await first

        assert second.skipped is True
        assert first_result.succeeded == 1
        assert processor.is_flushing is False
        assert provider.archive.await_count == 1

    @pytest.mark.asyncio
    async def test_flag_reset_after_store_error(self, processor, repo, monkeypatch):
        async def broken_compact():
            raise RuntimeError("boom")

        monkeypatch.setattr(repo, "compact", broken_compact)

        with pytest.raises(RuntimeError):
            await processor.flush()
        assert processor.is_flushing is False


class TestScheduling:
    """Tests for the scheduled drain and reconnect trigger"""

    def test_rejects_non_positive_interval(self, repo, dispatcher, connectivity):
        with pytest.raises(ValidationError):
            QueueProcessor(repo, dispatcher, connectivity, interval_seconds=0)

    @pytest.mark.asyncio
    async def test_start_and_stop(self, processor):
        processor.start()
        try:
            job = processor.scheduler.get_job(JOB_ID)
            assert job is not None
            assert job.trigger.interval.total_seconds() == 30
            assert processor.scheduler.running is True
        finally:
            processor.stop()

        assert processor.scheduler.get_job(JOB_ID) is None

    @pytest.mark.asyncio
    async def test_reconnect_triggers_flush(self, processor, connectivity, repo, provider):
        await repo.enqueue(ACCOUNT, "archive", "t1", {"threadId": "t1"})
        connectivity.set_online(False)
        processor.start()
        try:
            connectivity.set_online(True)
            for _ in range(50):
                if await repo.count_pending() == 0:
                    break
                await asyncio.sleep(0.01)
        finally:
            processor.stop()

        provider.archive.assert_awaited_once()
        assert await repo.count_pending() == 0

    @pytest.mark.asyncio
    async def test_stop_removes_reconnect_listener(self, processor, connectivity, repo, provider):
        processor.start()
        processor.stop()

        await repo.enqueue(ACCOUNT, "archive", "t1", {"threadId": "t1"})
        connectivity.set_online(False)
        connectivity.set_online(True)
        await asyncio.sleep(0.05)

        provider.archive.assert_not_called()
