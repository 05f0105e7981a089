"""Email action variants and the table that drives their dispatch.

Each action kind is a frozen dataclass tagged with ``operation_type``, the
string stored on queued rows. ``ACTION_SPECS`` maps every kind to its
provider call, its optimistic thread update and whether it takes the
thread out of the current view. Adding a kind means adding a class and one
table entry.
"""

from dataclasses import dataclass, fields
from typing import Any, Awaitable, Callable, ClassVar, Dict, Optional, Tuple, Type

from velo.core.ports import EmailProvider
from velo.utils.errors import UnknownActionError, ValidationError

# Stored param keys that don't follow plain camelCase conversion
_PARAM_ALIASES = {"raw_base64url": "rawBase64Url"}


def _param_key(name: str) -> str:
    if name in _PARAM_ALIASES:
        return _PARAM_ALIASES[name]
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


## Variants


@dataclass(frozen=True, kw_only=True)
class EmailAction:
    """Base for every action kind."""

    operation_type: ClassVar[str] = ""

    @property
    def resource_id(self) -> Optional[str]:
        return None

    def to_params(self) -> Dict[str, Any]:
        """Params as stored on a queued row (camelCase keys)."""
        params: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            params[_param_key(f.name)] = list(value) if isinstance(value, tuple) else value
        return params


@dataclass(frozen=True, kw_only=True)
class ThreadAction(EmailAction):
    """A mutation of one thread, optionally narrowed to some of its messages."""

    thread_id: str
    message_ids: Tuple[str, ...] = ()

    @property
    def resource_id(self) -> str:
        return self.thread_id


@dataclass(frozen=True, kw_only=True)
class ArchiveAction(ThreadAction):
    operation_type: ClassVar[str] = "archive"


@dataclass(frozen=True, kw_only=True)
class TrashAction(ThreadAction):
    operation_type: ClassVar[str] = "trash"


@dataclass(frozen=True, kw_only=True)
class PermanentDeleteAction(ThreadAction):
    operation_type: ClassVar[str] = "permanentDelete"


@dataclass(frozen=True, kw_only=True)
class MarkReadAction(ThreadAction):
    operation_type: ClassVar[str] = "markRead"
    read: bool = True


@dataclass(frozen=True, kw_only=True)
class StarAction(ThreadAction):
    operation_type: ClassVar[str] = "star"
    starred: bool = True


@dataclass(frozen=True, kw_only=True)
class SpamAction(ThreadAction):
    operation_type: ClassVar[str] = "spam"
    is_spam: bool = True


@dataclass(frozen=True, kw_only=True)
class MoveToFolderAction(ThreadAction):
    operation_type: ClassVar[str] = "moveToFolder"
    folder_path: str


@dataclass(frozen=True, kw_only=True)
class AddLabelAction(ThreadAction):
    operation_type: ClassVar[str] = "addLabel"
    label_id: str


@dataclass(frozen=True, kw_only=True)
class RemoveLabelAction(ThreadAction):
    operation_type: ClassVar[str] = "removeLabel"
    label_id: str


@dataclass(frozen=True, kw_only=True)
class SnoozeAction(ThreadAction):
    operation_type: ClassVar[str] = "snooze"
    snooze_until: int


@dataclass(frozen=True, kw_only=True)
class PayloadAction(EmailAction):
    """Send and draft operations on raw messages. Never queued."""


@dataclass(frozen=True, kw_only=True)
class SendMessageAction(PayloadAction):
    operation_type: ClassVar[str] = "sendMessage"
    raw_base64url: str
    thread_id: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class CreateDraftAction(PayloadAction):
    operation_type: ClassVar[str] = "createDraft"
    raw_base64url: str
    thread_id: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class UpdateDraftAction(PayloadAction):
    operation_type: ClassVar[str] = "updateDraft"
    draft_id: str
    raw_base64url: str
    thread_id: Optional[str] = None

    @property
    def resource_id(self) -> str:
        return self.draft_id


@dataclass(frozen=True, kw_only=True)
class DeleteDraftAction(PayloadAction):
    operation_type: ClassVar[str] = "deleteDraft"
    draft_id: str

    @property
    def resource_id(self) -> str:
        return self.draft_id


## Dispatch table

Invoke = Callable[[EmailProvider, Any], Awaitable[Any]]
# Given the current thread and the action, the fields to set optimistically
Optimistic = Callable[[Any, Any], Dict[str, Any]]


@dataclass(frozen=True)
class ActionSpec:
    """How one action kind reaches the provider and the local store."""

    invoke: Invoke
    optimistic: Optional[Optimistic] = None
    removes_from_view: bool = False
    description: str = ""


def _with_label(thread, action) -> Dict[str, Any]:
    if action.label_id in thread.label_ids:
        return {}
    return {"label_ids": tuple(thread.label_ids) + (action.label_id,)}


def _without_label(thread, action) -> Dict[str, Any]:
    if action.label_id not in thread.label_ids:
        return {}
    return {"label_ids": tuple(label for label in thread.label_ids if label != action.label_id)}


ACTION_SPECS: Dict[Type[EmailAction], ActionSpec] = {
    ArchiveAction: ActionSpec(
        invoke=lambda p, a: p.archive(a.thread_id, list(a.message_ids)),
        removes_from_view=True,
        description="archive thread",
    ),
    TrashAction: ActionSpec(
        invoke=lambda p, a: p.trash(a.thread_id, list(a.message_ids)),
        removes_from_view=True,
        description="trash thread",
    ),
    PermanentDeleteAction: ActionSpec(
        invoke=lambda p, a: p.permanent_delete(a.thread_id, list(a.message_ids)),
        removes_from_view=True,
        description="delete thread",
    ),
    MarkReadAction: ActionSpec(
        invoke=lambda p, a: p.mark_read(a.thread_id, list(a.message_ids), a.read),
        optimistic=lambda t, a: {"is_read": a.read},
        description="mark thread read",
    ),
    StarAction: ActionSpec(
        invoke=lambda p, a: p.star(a.thread_id, list(a.message_ids), a.starred),
        optimistic=lambda t, a: {"is_starred": a.starred},
        description="star thread",
    ),
    SpamAction: ActionSpec(
        invoke=lambda p, a: p.spam(a.thread_id, list(a.message_ids), a.is_spam),
        removes_from_view=True,
        description="report spam",
    ),
    MoveToFolderAction: ActionSpec(
        invoke=lambda p, a: p.move_to_folder(a.thread_id, list(a.message_ids), a.folder_path),
        removes_from_view=True,
        description="move thread",
    ),
    AddLabelAction: ActionSpec(
        invoke=lambda p, a: p.add_label(a.thread_id, a.label_id),
        optimistic=_with_label,
        description="add label",
    ),
    RemoveLabelAction: ActionSpec(
        invoke=lambda p, a: p.remove_label(a.thread_id, a.label_id),
        optimistic=_without_label,
        description="remove label",
    ),
    SnoozeAction: ActionSpec(
        invoke=lambda p, a: p.snooze(a.thread_id, list(a.message_ids), a.snooze_until),
        removes_from_view=True,
        description="snooze thread",
    ),
    SendMessageAction: ActionSpec(
        invoke=lambda p, a: p.send_message(a.raw_base64url, a.thread_id),
        description="send message",
    ),
    CreateDraftAction: ActionSpec(
        invoke=lambda p, a: p.create_draft(a.raw_base64url, a.thread_id),
        description="create draft",
    ),
    UpdateDraftAction: ActionSpec(
        invoke=lambda p, a: p.update_draft(a.draft_id, a.raw_base64url, a.thread_id),
        description="update draft",
    ),
    DeleteDraftAction: ActionSpec(
        invoke=lambda p, a: p.delete_draft(a.draft_id),
        description="delete draft",
    ),
}

ACTIONS_BY_TYPE: Dict[str, Type[EmailAction]] = {
    cls.operation_type: cls for cls in ACTION_SPECS
}


def spec_for(action: EmailAction) -> ActionSpec:
    """Look up the dispatch entry for an action instance.

    Raises:
        UnknownActionError: If the action kind has no table entry
    """
    try:
        return ACTION_SPECS[type(action)]
    except KeyError:
        raise UnknownActionError(
            f"No handler for action {type(action).__name__}",
            details={"action": type(action).__name__},
        )


def action_from_params(operation_type: str, params: Dict[str, Any]) -> EmailAction:
    """Rebuild an action from a queued row's type and params.

    Raises:
        UnknownActionError: If the operation type is not known
        ValidationError: If the params do not fit the action
    """
    cls = ACTIONS_BY_TYPE.get(operation_type)
    if cls is None:
        raise UnknownActionError(
            f"Unknown operation type: {operation_type}",
            details={"operation_type": operation_type},
        )

    kwargs: Dict[str, Any] = {}
    for f in fields(cls):
        key = _param_key(f.name)
        if key in params:
            value = params[key]
            kwargs[f.name] = tuple(value) if isinstance(value, list) else value

    try:
        return cls(**kwargs)
    except TypeError as e:
        raise ValidationError(
            f"Invalid params for {operation_type}: {e}",
            details={"operation_type": operation_type},
        ) from e
