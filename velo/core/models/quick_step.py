"""Quick step domain models"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class QuickStepActionType(Enum):
    """Action kinds a quick step chain may contain."""

    ARCHIVE = "archive"
    TRASH = "trash"
    MARK_READ = "markRead"
    MARK_UNREAD = "markUnread"
    STAR = "star"
    UNSTAR = "unstar"
    PIN = "pin"
    UNPIN = "unpin"
    APPLY_LABEL = "applyLabel"
    REMOVE_LABEL = "removeLabel"
    MOVE_TO_CATEGORY = "moveToCategory"
    REPLY = "reply"
    REPLY_ALL = "replyAll"
    FORWARD = "forward"
    SNOOZE = "snooze"
    SPAM = "spam"
    NOT_SPAM = "notSpam"


@dataclass(frozen=True)
class ActionTypeInfo:
    """Display and behaviour metadata for one action type."""

    label: str
    icon: str
    requires_params: bool = False
    removes_from_view: bool = False
    required_param: Optional[str] = None


ACTION_TYPE_METADATA: Dict[QuickStepActionType, ActionTypeInfo] = {
    QuickStepActionType.ARCHIVE: ActionTypeInfo("Archive", "Archive", removes_from_view=True),
    QuickStepActionType.TRASH: ActionTypeInfo("Trash", "Trash2", removes_from_view=True),
    QuickStepActionType.MARK_READ: ActionTypeInfo("Mark as Read", "MailOpen"),
    QuickStepActionType.MARK_UNREAD: ActionTypeInfo("Mark as Unread", "Mail"),
    QuickStepActionType.STAR: ActionTypeInfo("Star", "Star"),
    QuickStepActionType.UNSTAR: ActionTypeInfo("Remove Star", "Star"),
    QuickStepActionType.PIN: ActionTypeInfo("Pin", "Pin"),
    QuickStepActionType.UNPIN: ActionTypeInfo("Unpin", "Pin"),
    QuickStepActionType.APPLY_LABEL: ActionTypeInfo("Apply Label", "Tag", True, required_param="labelId"),
    QuickStepActionType.REMOVE_LABEL: ActionTypeInfo("Remove Label", "Tag", True, required_param="labelId"),
    QuickStepActionType.MOVE_TO_CATEGORY: ActionTypeInfo("Move to Category", "Layers", True, required_param="category"),
    QuickStepActionType.REPLY: ActionTypeInfo("Reply", "Reply"),
    QuickStepActionType.REPLY_ALL: ActionTypeInfo("Reply All", "ReplyAll"),
    QuickStepActionType.FORWARD: ActionTypeInfo("Forward", "Forward"),
    QuickStepActionType.SNOOZE: ActionTypeInfo("Snooze", "Clock", True, True, required_param="snoozeDuration"),
    QuickStepActionType.SPAM: ActionTypeInfo("Report Spam", "Ban", removes_from_view=True),
    QuickStepActionType.NOT_SPAM: ActionTypeInfo("Not Spam", "Ban", removes_from_view=True),
}


@dataclass
class QuickStepAction:
    """One step of a chain. ``type`` stays a raw string until validated."""

    type: str
    params: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "QuickStepAction":
        return cls(type=data.get("type", ""), params=dict(data.get("params") or {}))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type}
        if self.params:
            data["params"] = self.params
        return data


@dataclass
class QuickStep:
    """A named, ordered chain of actions owned by one account."""

    id: str
    account_id: str
    name: str
    actions: List[QuickStepAction] = field(default_factory=list)
    continue_on_error: bool = False
    is_enabled: bool = True
    description: Optional[str] = None
    shortcut: Optional[str] = None
    icon: Optional[str] = None
    sort_order: int = 0
    created_at: int = 0

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "QuickStep":
        """Build from a ``quick_steps`` row mapping."""
        try:
            raw_actions = json.loads(row["actions_json"] or "[]")
        except json.JSONDecodeError:
            raw_actions = []

        return cls(
            id=row["id"],
            account_id=row["account_id"],
            name=row["name"],
            actions=[QuickStepAction.from_dict(a) for a in raw_actions],
            continue_on_error=bool(row["continue_on_error"]),
            is_enabled=bool(row["is_enabled"]),
            description=row["description"],
            shortcut=row["shortcut"],
            icon=row["icon"],
            sort_order=row["sort_order"],
            created_at=row["created_at"],
        )

    def actions_json(self) -> str:
        return json.dumps([a.to_dict() for a in self.actions])


@dataclass
class QuickStepExecutionResult:
    """Outcome of one quick step run. Never persisted."""

    success: bool
    completed_actions: int
    total_actions: int
    failed_action_index: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "completed_actions": self.completed_actions,
            "total_actions": self.total_actions,
        }
        if self.failed_action_index is not None:
            data["failed_action_index"] = self.failed_action_index
        if self.error is not None:
            data["error"] = self.error
        return data
