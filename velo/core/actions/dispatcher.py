"""Optimistic action dispatcher.

Applies the local thread update first, then either calls the provider or
queues the mutation, and reverts the local update only when the provider
rejects the action for good.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from velo.core.database.repositories.pending_operations import PendingOperationRepository
from velo.core.events import EventBus, SyncDone
from velo.core.ports import ConnectivitySignal, ThreadStorePort
from velo.core.providers import ProviderRegistry
from velo.utils.errors import DatabaseError
from velo.utils.logging import get_logger
from velo.utils.network_errors import classify_error

from .types import (
    ActionSpec,
    AddLabelAction,
    ArchiveAction,
    CreateDraftAction,
    DeleteDraftAction,
    EmailAction,
    MarkReadAction,
    MoveToFolderAction,
    PayloadAction,
    PermanentDeleteAction,
    RemoveLabelAction,
    SendMessageAction,
    SnoozeAction,
    SpamAction,
    StarAction,
    ThreadAction,
    TrashAction,
    UpdateDraftAction,
    action_from_params,
    spec_for,
)

logger = get_logger(__name__)


@dataclass
class ActionResult:
    """Outcome reported to the caller of an action.

    ``queued`` results are successes: the mutation will reach the provider
    when the queue drains.
    """

    success: bool
    queued: bool = False
    error: Optional[str] = None
    data: Any = None


class ActionDispatcher:
    """Runs email actions against the provider with offline queueing."""

    def __init__(
        self,
        providers: ProviderRegistry,
        operations: PendingOperationRepository,
        connectivity: ConnectivitySignal,
        threads: ThreadStorePort,
        events: Optional[EventBus] = None,
    ):
        self.providers = providers
        self.operations = operations
        self.connectivity = connectivity
        self.threads = threads
        self.events = events or EventBus()

    ## Local state

    def _apply_optimistic(
        self, spec: ActionSpec, action: ThreadAction
    ) -> Optional[Dict[str, Any]]:
        """Apply the optimistic update and return the prior field values."""
        if spec.optimistic is None:
            return None

        thread = self.threads.get_thread(action.thread_id)
        if thread is None:
            return None

        updates = spec.optimistic(thread, action)
        if not updates:
            return None

        prior = {name: getattr(thread, name) for name in updates}
        self.threads.update_thread(action.thread_id, **updates)
        return prior

    def _revert(self, action: ThreadAction, prior: Optional[Dict[str, Any]]) -> None:
        if prior:
            self.threads.update_thread(action.thread_id, **prior)
            logger.debug(f"Reverted {action.operation_type} on {action.thread_id}")

    def _remove_from_view(self, spec: ActionSpec, action: ThreadAction) -> None:
        if spec.removes_from_view:
            self.threads.remove_thread(action.thread_id)

    async def _queue(
        self,
        account_id: str,
        action: ThreadAction,
        spec: ActionSpec,
        prior: Optional[Dict[str, Any]],
    ) -> ActionResult:
        try:
            await self.operations.enqueue(
                account_id,
                action.operation_type,
                action.resource_id,
                action.to_params(),
            )
        except DatabaseError as e:
            self._revert(action, prior)
            logger.error(f"Could not queue {action.operation_type} for {action.thread_id}: {e.message}")
            return ActionResult(success=False, error=e.message)

        self._remove_from_view(spec, action)
        return ActionResult(success=True, queued=True)

    ## Entry points

    async def dispatch(self, account_id: str, action: EmailAction) -> ActionResult:
        """Run a thread mutation with optimistic update and offline queueing.

        Args:
            account_id: Owning account
            action: The mutation to apply

        Returns:
            ActionResult; ``queued=True`` when the provider call was deferred
        """
        if isinstance(action, PayloadAction):
            return await self.execute_email_action(account_id, action)

        spec = spec_for(action)

        # Must happen before the first await so updates land in call order
        prior = self._apply_optimistic(spec, action)

        if not self.connectivity.is_online():
            logger.info(f"Offline: queueing {action.operation_type} for {action.thread_id}")
            return await self._queue(account_id, action, spec, prior)

        try:
            provider = self.providers.get(account_id)
            data = await spec.invoke(provider, action)

        except Exception as e:
            classified = classify_error(e)

            if classified.is_retryable:
                logger.warning(
                    f"{action.operation_type} on {action.thread_id} failed "
                    f"({classified.type.value}), queueing for retry: {classified.message}"
                )
                return await self._queue(account_id, action, spec, prior)

            self._revert(action, prior)
            logger.error(
                f"{action.operation_type} on {action.thread_id} failed permanently: "
                f"{classified.message}"
            )
            return ActionResult(success=False, error=classified.message)

        self._remove_from_view(spec, action)
        return ActionResult(success=True, data=data)

    async def execute_email_action(self, account_id: str, action: EmailAction) -> ActionResult:
        """Run a send or draft action directly against the provider.

        There is no optimistic state and no queueing: offline calls and
        provider failures both come back as ``success=False``.
        """
        if isinstance(action, ThreadAction):
            return await self.dispatch(account_id, action)

        spec = spec_for(action)

        if not self.connectivity.is_online():
            return ActionResult(success=False, error=f"Cannot {spec.description} while offline")

        try:
            provider = self.providers.get(account_id)
            data = await spec.invoke(provider, action)
        except Exception as e:
            classified = classify_error(e)
            logger.error(f"{action.operation_type} failed: {classified.message}")
            return ActionResult(success=False, error=classified.message)

        if isinstance(action, SendMessageAction):
            self.events.publish(SyncDone())

        return ActionResult(success=True, data=data)

    async def execute_queued_action(
        self, account_id: str, operation_type: str, params: Dict[str, Any]
    ) -> Any:
        """Replay a queued row against the provider. Errors propagate."""
        action = action_from_params(operation_type, params)
        provider = self.providers.get(account_id)
        return await spec_for(action).invoke(provider, action)

    ## Convenience wrappers

    async def archive_thread(
        self, account_id: str, thread_id: str, message_ids: Sequence[str] = ()
    ) -> ActionResult:
        return await self.dispatch(
            account_id, ArchiveAction(thread_id=thread_id, message_ids=tuple(message_ids))
        )

    async def trash_thread(
        self, account_id: str, thread_id: str, message_ids: Sequence[str] = ()
    ) -> ActionResult:
        return await self.dispatch(
            account_id, TrashAction(thread_id=thread_id, message_ids=tuple(message_ids))
        )

    async def permanent_delete_thread(
        self, account_id: str, thread_id: str, message_ids: Sequence[str] = ()
    ) -> ActionResult:
        return await self.dispatch(
            account_id,
            PermanentDeleteAction(thread_id=thread_id, message_ids=tuple(message_ids)),
        )

    async def mark_thread_read(
        self,
        account_id: str,
        thread_id: str,
        read: bool = True,
        message_ids: Sequence[str] = (),
    ) -> ActionResult:
        return await self.dispatch(
            account_id,
            MarkReadAction(thread_id=thread_id, message_ids=tuple(message_ids), read=read),
        )

    async def star_thread(
        self,
        account_id: str,
        thread_id: str,
        starred: bool = True,
        message_ids: Sequence[str] = (),
    ) -> ActionResult:
        return await self.dispatch(
            account_id,
            StarAction(thread_id=thread_id, message_ids=tuple(message_ids), starred=starred),
        )

    async def spam_thread(
        self,
        account_id: str,
        thread_id: str,
        is_spam: bool = True,
        message_ids: Sequence[str] = (),
    ) -> ActionResult:
        return await self.dispatch(
            account_id,
            SpamAction(thread_id=thread_id, message_ids=tuple(message_ids), is_spam=is_spam),
        )

    async def move_thread(
        self,
        account_id: str,
        thread_id: str,
        folder_path: str,
        message_ids: Sequence[str] = (),
    ) -> ActionResult:
        return await self.dispatch(
            account_id,
            MoveToFolderAction(
                thread_id=thread_id, message_ids=tuple(message_ids), folder_path=folder_path
            ),
        )

    async def add_thread_label(self, account_id: str, thread_id: str, label_id: str) -> ActionResult:
        return await self.dispatch(
            account_id, AddLabelAction(thread_id=thread_id, label_id=label_id)
        )

    async def remove_thread_label(
        self, account_id: str, thread_id: str, label_id: str
    ) -> ActionResult:
        return await self.dispatch(
            account_id, RemoveLabelAction(thread_id=thread_id, label_id=label_id)
        )

    async def snooze_thread(
        self,
        account_id: str,
        thread_id: str,
        snooze_until: int,
        message_ids: Sequence[str] = (),
    ) -> ActionResult:
        return await self.dispatch(
            account_id,
            SnoozeAction(
                thread_id=thread_id, message_ids=tuple(message_ids), snooze_until=snooze_until
            ),
        )

    async def send_email(
        self, account_id: str, raw_base64url: str, thread_id: Optional[str] = None
    ) -> ActionResult:
        return await self.execute_email_action(
            account_id, SendMessageAction(raw_base64url=raw_base64url, thread_id=thread_id)
        )

    async def create_draft(
        self, account_id: str, raw_base64url: str, thread_id: Optional[str] = None
    ) -> ActionResult:
        return await self.execute_email_action(
            account_id, CreateDraftAction(raw_base64url=raw_base64url, thread_id=thread_id)
        )

    async def update_draft(
        self,
        account_id: str,
        draft_id: str,
        raw_base64url: str,
        thread_id: Optional[str] = None,
    ) -> ActionResult:
        return await self.execute_email_action(
            account_id,
            UpdateDraftAction(draft_id=draft_id, raw_base64url=raw_base64url, thread_id=thread_id),
        )

    async def delete_draft(self, account_id: str, draft_id: str) -> ActionResult:
        return await self.execute_email_action(account_id, DeleteDraftAction(draft_id=draft_id))
