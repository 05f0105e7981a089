"""Optimistic email actions."""

from .dispatcher import ActionDispatcher, ActionResult
from .types import (
    ACTION_SPECS,
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
)

__all__ = [
    "ActionDispatcher",
    "ActionResult",
    "ACTION_SPECS",
    "ActionSpec",
    "AddLabelAction",
    "ArchiveAction",
    "CreateDraftAction",
    "DeleteDraftAction",
    "EmailAction",
    "MarkReadAction",
    "MoveToFolderAction",
    "PayloadAction",
    "PermanentDeleteAction",
    "RemoveLabelAction",
    "SendMessageAction",
    "SnoozeAction",
    "SpamAction",
    "StarAction",
    "ThreadAction",
    "TrashAction",
    "UpdateDraftAction",
    "action_from_params",
]
