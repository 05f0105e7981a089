"""Quick step chain interpreter."""

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from velo.core.events import EventBus, InlineReplyRequested, SyncDone
from velo.core.models.pending_operation import now_ms
from velo.core.models.quick_step import (
    ACTION_TYPE_METADATA,
    QuickStep,
    QuickStepAction,
    QuickStepActionType,
    QuickStepExecutionResult,
)
from velo.core.ports import ThreadService, ThreadStorePort
from velo.core.providers import ProviderRegistry
from velo.utils.errors import InvalidQuickStepError, error_message
from velo.utils.logging import get_logger, log_event

logger = get_logger(__name__)

# Label changes per action type as (add, remove)
LABEL_EFFECTS: Dict[QuickStepActionType, Tuple[Tuple[str, ...], Tuple[str, ...]]] = {
    QuickStepActionType.ARCHIVE: ((), ("INBOX",)),
    QuickStepActionType.TRASH: (("TRASH",), ("INBOX",)),
    QuickStepActionType.MARK_READ: ((), ("UNREAD",)),
    QuickStepActionType.MARK_UNREAD: (("UNREAD",), ()),
    QuickStepActionType.STAR: (("STARRED",), ()),
    QuickStepActionType.UNSTAR: ((), ("STARRED",)),
    QuickStepActionType.SPAM: (("SPAM",), ("INBOX",)),
    QuickStepActionType.NOT_SPAM: (("INBOX",), ("SPAM",)),
}

# Local thread fields set once the provider accepts the label change
STORE_UPDATES: Dict[QuickStepActionType, Dict[str, bool]] = {
    QuickStepActionType.MARK_READ: {"is_read": True},
    QuickStepActionType.MARK_UNREAD: {"is_read": False},
    QuickStepActionType.STAR: {"is_starred": True},
    QuickStepActionType.UNSTAR: {"is_starred": False},
}

REPLY_MODES = {
    QuickStepActionType.REPLY: "reply",
    QuickStepActionType.REPLY_ALL: "replyAll",
    QuickStepActionType.FORWARD: "forward",
}


@dataclass
class _ChainRun:
    """Mutable state of one ``execute`` call."""

    account_id: str
    first_thread_id: Optional[str]
    snooze_until: Optional[int] = None
    completed: int = 0
    failed_index: Optional[int] = None
    error: Optional[str] = None
    categories_changed: bool = False
    to_remove: List[str] = field(default_factory=list)


Handler = Callable[[_ChainRun, str, QuickStepAction], Awaitable[None]]


class QuickStepExecutor:
    """Runs a quick step's actions against a set of threads.

    Each thread runs the whole chain before the next thread starts. Actions
    that take a thread out of view only mark it; the marked threads are
    removed together once every thread has run.
    """

    def __init__(
        self,
        providers: ProviderRegistry,
        threads: ThreadStorePort,
        thread_service: ThreadService,
        events: Optional[EventBus] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.providers = providers
        self.threads = threads
        self.thread_service = thread_service
        self.events = events or EventBus()
        self._clock = clock or now_ms

        self._handlers: Dict[QuickStepActionType, Handler] = {
            QuickStepActionType.PIN: self._pin,
            QuickStepActionType.UNPIN: self._unpin,
            QuickStepActionType.APPLY_LABEL: self._apply_label,
            QuickStepActionType.REMOVE_LABEL: self._remove_label,
            QuickStepActionType.MOVE_TO_CATEGORY: self._move_to_category,
            QuickStepActionType.SNOOZE: self._snooze,
        }
        for action_type in LABEL_EFFECTS:
            self._handlers[action_type] = self._modify_labels
        for action_type in REPLY_MODES:
            self._handlers[action_type] = self._request_reply

    ## Validation

    @staticmethod
    def validate_chain(actions: Sequence[QuickStepAction]) -> List[QuickStepActionType]:
        """Check every action before anything runs.

        Returns:
            The parsed action types, in chain order

        Raises:
            InvalidQuickStepError: On an unknown type or a missing required param
        """
        parsed = []
        for index, action in enumerate(actions):
            try:
                action_type = QuickStepActionType(action.type)
            except ValueError:
                raise InvalidQuickStepError(
                    f"Unknown action type '{action.type}' at position {index}",
                    details={"index": index, "type": action.type},
                )

            required = ACTION_TYPE_METADATA[action_type].required_param
            if required and not action.params.get(required):
                raise InvalidQuickStepError(
                    f"Action '{action.type}' at position {index} requires '{required}'",
                    details={"index": index, "type": action.type, "param": required},
                )
            parsed.append(action_type)

        return parsed

    ## Handlers

    async def _modify_labels(self, run: _ChainRun, thread_id: str, action: QuickStepAction) -> None:
        action_type = QuickStepActionType(action.type)
        add, remove = LABEL_EFFECTS[action_type]
        provider = self.providers.get(run.account_id)
        await provider.modify_thread(thread_id, list(add) or None, list(remove) or None)

        updates = STORE_UPDATES.get(action_type)
        if updates:
            self.threads.update_thread(thread_id, **updates)

    async def _apply_label(self, run: _ChainRun, thread_id: str, action: QuickStepAction) -> None:
        label_id = action.params["labelId"]
        provider = self.providers.get(run.account_id)
        await provider.modify_thread(thread_id, [label_id], None)

        thread = self.threads.get_thread(thread_id)
        if thread is not None and label_id not in thread.label_ids:
            self.threads.update_thread(thread_id, label_ids=(*thread.label_ids, label_id))

    async def _remove_label(self, run: _ChainRun, thread_id: str, action: QuickStepAction) -> None:
        label_id = action.params["labelId"]
        provider = self.providers.get(run.account_id)
        await provider.modify_thread(thread_id, None, [label_id])

        thread = self.threads.get_thread(thread_id)
        if thread is not None:
            self.threads.update_thread(
                thread_id, label_ids=tuple(label for label in thread.label_ids if label != label_id)
            )

    async def _pin(self, run: _ChainRun, thread_id: str, action: QuickStepAction) -> None:
        await self.thread_service.pin_thread(run.account_id, thread_id)
        self.threads.update_thread(thread_id, is_pinned=True)

    async def _unpin(self, run: _ChainRun, thread_id: str, action: QuickStepAction) -> None:
        await self.thread_service.unpin_thread(run.account_id, thread_id)
        self.threads.update_thread(thread_id, is_pinned=False)

    async def _move_to_category(self, run: _ChainRun, thread_id: str, action: QuickStepAction) -> None:
        await self.thread_service.set_thread_category(
            run.account_id, thread_id, action.params["category"]
        )
        run.categories_changed = True

    async def _snooze(self, run: _ChainRun, thread_id: str, action: QuickStepAction) -> None:
        if run.snooze_until is None:
            run.snooze_until = self._clock() + int(action.params["snoozeDuration"])
        await self.thread_service.snooze_thread(run.account_id, thread_id, run.snooze_until)

    async def _request_reply(self, run: _ChainRun, thread_id: str, action: QuickStepAction) -> None:
        # The composer opens for the first selected thread only
        if thread_id != run.first_thread_id:
            return
        mode = REPLY_MODES[QuickStepActionType(action.type)]
        self.events.publish(
            InlineReplyRequested(thread_id=thread_id, account_id=run.account_id, mode=mode)
        )

    ## Execution

    async def _run_thread(
        self,
        run: _ChainRun,
        quick_step: QuickStep,
        thread_id: str,
        types: List[QuickStepActionType],
    ) -> None:
        removal_pending = False

        for index, (action, action_type) in enumerate(zip(quick_step.actions, types)):
            try:
                await self._handlers[action_type](run, thread_id, action)
            except Exception as e:
                message = error_message(e)
                if not quick_step.continue_on_error:
                    logger.warning(
                        f"Quick step '{quick_step.name}' stopped at action {index} "
                        f"({action.type}) on {thread_id}: {message}"
                    )
                    if run.failed_index is None:
                        run.failed_index = index
                        run.error = message
                    break

                logger.warning(
                    f"Quick step '{quick_step.name}' action {index} ({action.type}) "
                    f"failed on {thread_id}, continuing: {message}"
                )
                continue

            run.completed += 1
            if ACTION_TYPE_METADATA[action_type].removes_from_view:
                removal_pending = True

        if removal_pending:
            run.to_remove.append(thread_id)

    async def execute(
        self,
        quick_step: QuickStep,
        thread_ids: Sequence[str],
        account_id: str,
    ) -> QuickStepExecutionResult:
        """Run a quick step on the given threads.

        Args:
            quick_step: The chain to run
            thread_ids: Threads to act on, in order
            account_id: Owning account

        Returns:
            Aggregate result over all threads

        Raises:
            InvalidQuickStepError: If the chain fails validation; nothing runs
        """
        types = self.validate_chain(quick_step.actions)
        total = len(quick_step.actions)

        if total == 0:
            return QuickStepExecutionResult(success=True, completed_actions=0, total_actions=0)

        run = _ChainRun(
            account_id=account_id,
            first_thread_id=thread_ids[0] if thread_ids else None,
        )

        for thread_id in thread_ids:
            await self._run_thread(run, quick_step, thread_id, types)

        if run.to_remove:
            self.threads.remove_threads(run.to_remove)
        if run.categories_changed:
            self.events.publish(SyncDone())

        result = QuickStepExecutionResult(
            success=run.failed_index is None,
            completed_actions=run.completed,
            total_actions=total,
            failed_action_index=run.failed_index,
            error=run.error,
        )

        log_event(
            "quick_step_executed",
            f"Quick step '{quick_step.name}' ran on {len(thread_ids)} threads: "
            f"{run.completed} actions completed",
            account_id=account_id,
            context=result.to_dict(),
        )
        return result
