"""Tests for the quick step chain interpreter."""

from unittest.mock import MagicMock

import pytest

from velo.core.events import InlineReplyRequested, SyncDone
from velo.core.models.quick_step import QuickStep, QuickStepAction
from velo.core.quicksteps import QuickStepExecutor
from velo.core.stores.thread_store import ThreadStore
from velo.utils.errors import InvalidQuickStepError, ProviderRejectedError

from .test_helpers import ACCOUNT, EventRecorder, ThreadTestHelper


def make_step(*actions, continue_on_error=False, name="Test step"):
    return QuickStep(
        id="qs-1",
        account_id=ACCOUNT,
        name=name,
        actions=[
            a if isinstance(a, QuickStepAction) else QuickStepAction(a) for a in actions
        ],
        continue_on_error=continue_on_error,
    )


@pytest.fixture
def executor(providers, threads, thread_service, events, clock):
    return QuickStepExecutor(providers, threads, thread_service, events, clock=clock)


class TestValidation:
    """Tests for chain validation before any side effect"""

    @pytest.mark.asyncio
    async def test_empty_chain_succeeds(self, executor, provider):
        result = await executor.execute(make_step(), ["t1"], ACCOUNT)

        assert result.success is True
        assert result.completed_actions == 0
        assert result.total_actions == 0
        provider.modify_thread.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_type_rejected_before_side_effects(self, executor, provider):
        step = make_step("archive", "explode")

        with pytest.raises(InvalidQuickStepError) as exc_info:
            await executor.execute(step, ["t1"], ACCOUNT)

        assert exc_info.value.details["index"] == 1
        provider.modify_thread.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_required_param(self, executor, provider):
        step = make_step("markRead", QuickStepAction("applyLabel", {}))

        with pytest.raises(InvalidQuickStepError) as exc_info:
            await executor.execute(step, ["t1"], ACCOUNT)

        assert exc_info.value.details["param"] == "labelId"
        provider.modify_thread.assert_not_called()

    def test_validate_chain_returns_types(self):
        types = QuickStepExecutor.validate_chain(
            [QuickStepAction("star"), QuickStepAction("snooze", {"snoozeDuration": 3_600_000})]
        )
        assert [t.value for t in types] == ["star", "snooze"]


class TestLabelActions:
    """Tests for actions expressed as label changes"""

    @pytest.mark.asyncio
    async def test_mark_read_and_star(self, executor, provider, threads):
        result = await executor.execute(make_step("markRead", "star"), ["t1"], ACCOUNT)

        assert result.success is True
        assert result.completed_actions == 2
        assert provider.modify_thread.await_args_list[0].args == ("t1", None, ["UNREAD"])
        assert provider.modify_thread.await_args_list[1].args == ("t1", ["STARRED"], None)
        thread = threads.get_thread("t1")
        assert thread.is_read is True
        assert thread.is_starred is True

    @pytest.mark.asyncio
    async def test_spam_label_effect(self, executor, provider, threads):
        await executor.execute(make_step("spam"), ["t1"], ACCOUNT)

        provider.modify_thread.assert_awaited_once_with("t1", ["SPAM"], ["INBOX"])
        assert threads.get_thread("t1") is None

    @pytest.mark.asyncio
    async def test_apply_label(self, executor, provider, threads):
        step = make_step(QuickStepAction("applyLabel", {"labelId": "Label_9"}))

        await executor.execute(step, ["t1"], ACCOUNT)

        provider.modify_thread.assert_awaited_once_with("t1", ["Label_9"], None)
        assert "Label_9" in threads.get_thread("t1").label_ids

    @pytest.mark.asyncio
    async def test_remove_label(self, executor, provider, threads):
        step = make_step(QuickStepAction("removeLabel", {"labelId": "UNREAD"}))

        await executor.execute(step, ["t1"], ACCOUNT)

        provider.modify_thread.assert_awaited_once_with("t1", None, ["UNREAD"])
        assert threads.get_thread("t1").label_ids == ("INBOX",)


class TestServiceActions:
    """Tests for actions delegated to the thread service"""

    @pytest.mark.asyncio
    async def test_pin(self, executor, thread_service, threads):
        await executor.execute(make_step("pin"), ["t1"], ACCOUNT)

        thread_service.pin_thread.assert_awaited_once_with(ACCOUNT, "t1")
        assert threads.get_thread("t1").is_pinned is True

    @pytest.mark.asyncio
    async def test_snooze_uses_one_deadline(self, executor, thread_service, threads, clock):
        step = make_step(QuickStepAction("snooze", {"snoozeDuration": 3_600_000}))

        result = await executor.execute(step, ["t1", "t2"], ACCOUNT)

        until = clock.now + 3_600_000
        assert result.completed_actions == 2
        assert [c.args for c in thread_service.snooze_thread.await_args_list] == [
            (ACCOUNT, "t1", until),
            (ACCOUNT, "t2", until),
        ]
        assert threads.threads == []

    @pytest.mark.asyncio
    async def test_move_to_category_publishes_sync_once(self, executor, thread_service, events):
        recorder = EventRecorder(events, SyncDone)
        step = make_step(QuickStepAction("moveToCategory", {"category": "Promotions"}))

        await executor.execute(step, ["t1", "t2"], ACCOUNT)

        assert thread_service.set_thread_category.await_count == 2
        thread_service.set_thread_category.assert_any_await(ACCOUNT, "t2", "Promotions")
        assert len(recorder.of_type(SyncDone)) == 1

    @pytest.mark.asyncio
    async def test_reply_only_for_first_thread(self, executor, events):
        recorder = EventRecorder(events, InlineReplyRequested)

        result = await executor.execute(make_step("replyAll"), ["t2", "t1"], ACCOUNT)

        assert result.completed_actions == 2
        assert recorder.events == [
            InlineReplyRequested(thread_id="t2", account_id=ACCOUNT, mode="replyAll")
        ]


class TestErrorHandling:
    """Tests for fail-fast and continue-on-error chains"""

    @pytest.mark.asyncio
    async def test_fail_fast_stops_chain(self, executor, provider, thread_service):
        provider.modify_thread.side_effect = ProviderRejectedError("Label missing", status=400)

        result = await executor.execute(make_step("star", "pin"), ["t1"], ACCOUNT)

        assert result.success is False
        assert result.completed_actions == 0
        assert result.failed_action_index == 0
        assert result.error == "Label missing"
        thread_service.pin_thread.assert_not_called()

    @pytest.mark.asyncio
    async def test_continue_on_error_runs_rest(self, executor, provider, thread_service):
        provider.modify_thread.side_effect = ProviderRejectedError("Label missing", status=400)
        step = make_step("star", "pin", continue_on_error=True)

        result = await executor.execute(step, ["t1"], ACCOUNT)

        assert result.success is True
        assert result.completed_actions == 1
        assert result.failed_action_index is None
        thread_service.pin_thread.assert_awaited_once_with(ACCOUNT, "t1")

    @pytest.mark.asyncio
    async def test_fail_fast_after_archive_still_removes(self, executor, provider, thread_service, threads):
        """Test a thread archived before the failing step still leaves the view"""
        thread_service.pin_thread.side_effect = RuntimeError("pin store unavailable")

        result = await executor.execute(make_step("archive", "pin"), ["t1"], ACCOUNT)

        assert result.success is False
        assert result.completed_actions == 1
        assert result.failed_action_index == 1
        assert threads.get_thread("t1") is None

    @pytest.mark.asyncio
    async def test_failure_on_one_thread_does_not_stop_others(self, executor, provider):
        async def modify(thread_id, add, remove):
            if thread_id == "t1":
                raise ProviderRejectedError("Thread not found", status=404)

        provider.modify_thread.side_effect = modify

        result = await executor.execute(make_step("markRead", "star"), ["t1", "t2"], ACCOUNT)

        assert result.success is False
        assert result.failed_action_index == 0
        assert result.completed_actions == 2
        assert [c.args[0] for c in provider.modify_thread.await_args_list] == ["t1", "t2", "t2"]


class TestDeferredRemoval:
    """Tests for removing threads only after the chain has run"""

    @pytest.mark.asyncio
    async def test_thread_stays_in_view_until_chain_ends(self, providers, thread_service, events, clock):
        seen = []
        store = ThreadStore(ThreadTestHelper.create_threads(2))

        async def pin(account_id, thread_id):
            seen.append(store.get_thread(thread_id) is not None)

        thread_service.pin_thread.side_effect = pin
        executor = QuickStepExecutor(providers, store, thread_service, events, clock=clock)

        await executor.execute(make_step("archive", "pin"), ["t1"], ACCOUNT)

        assert seen == [True]
        assert store.get_thread("t1") is None

    @pytest.mark.asyncio
    async def test_removed_in_one_batch(self, providers, thread_service, events, clock):
        store = MagicMock(spec=ThreadStore)
        store.get_thread.return_value = None
        executor = QuickStepExecutor(providers, store, thread_service, events, clock=clock)

        result = await executor.execute(make_step("markRead", "archive"), ["t1", "t2"], ACCOUNT)

        assert result.completed_actions == 4
        store.remove_threads.assert_called_once_with(["t1", "t2"])
        store.remove_thread.assert_not_called()

    @pytest.mark.asyncio
    async def test_nothing_removed_without_removal_action(self, providers, thread_service, events, clock):
        store = MagicMock(spec=ThreadStore)
        executor = QuickStepExecutor(providers, store, thread_service, events, clock=clock)

        await executor.execute(make_step("star"), ["t1"], ACCOUNT)

        store.remove_threads.assert_not_called()
