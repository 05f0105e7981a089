"""Pure compaction planning over a snapshot of pending operations.

Operations are grouped by ``(account_id, resource_id)`` and ordered by
``(created_at, seq)``. Three rules apply inside a group:

- ``star`` toggles: a repeated ``starred`` value supersedes the earlier
  star, and a star that negates the one still standing cancels it (both
  dropped). At most the last star survives.
- label pairs: ``addLabel`` and ``removeLabel`` for the same ``labelId``
  reduce the same way. Different labels never interact.
- destination collapse: for ``moveToFolder`` and ``snooze`` only the most
  recent operation survives.

The planner never looks across groups and never reorders survivors, so a
second pass over its own output removes nothing.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from velo.core.models.pending_operation import PendingOperation

STAR = "star"
ADD_LABEL = "addLabel"
REMOVE_LABEL = "removeLabel"

COLLAPSE_TYPES = frozenset({"moveToFolder", "snooze"})


@dataclass
class CompactionPlan:
    """Row ids to delete, plus per-rule tallies for logging."""

    delete_ids: List[str] = field(default_factory=list)
    cancelled_toggles: int = 0
    cancelled_labels: int = 0
    collapsed: int = 0

    @property
    def removed_count(self) -> int:
        return len(self.delete_ids)

    @property
    def is_empty(self) -> bool:
        return not self.delete_ids


def _sort_key(op: PendingOperation) -> Tuple[int, int]:
    return (op.created_at, op.seq)


def _net_out(
    ops: List[PendingOperation], value_of
) -> Tuple[List[str], List[str]]:
    """Reduce a same-field sequence to at most its final operation.

    Walking in order with at most one survivor held: a repeat of the held
    value supersedes it, an opposite value cancels it and both go. Whatever
    is held at the end carries the value of the last operation, so replay
    ends where the user left off.

    ``value_of`` returns a hashable polarity, or None for rows that carry no
    usable value; those are left alone.

    Returns:
        (superseded ids, cancelled ids)
    """
    held: Optional[Tuple[PendingOperation, object]] = None
    superseded: List[str] = []
    cancelled: List[str] = []

    for op in ops:
        value = value_of(op)
        if value is None:
            continue
        if held is None:
            held = (op, value)
        elif held[1] == value:
            superseded.append(held[0].id)
            held = (op, value)
        else:
            cancelled.extend([held[0].id, op.id])
            held = None

    return superseded, cancelled


def _star_value(op: PendingOperation) -> Optional[bool]:
    starred = op.params.get("starred")
    return starred if isinstance(starred, bool) else None


def _compact_group(ops: List[PendingOperation], plan: CompactionPlan) -> None:
    stars = [op for op in ops if op.operation_type == STAR]
    superseded, cancelled = _net_out(stars, _star_value)
    plan.delete_ids.extend(superseded + cancelled)
    plan.cancelled_toggles += len(cancelled)
    plan.collapsed += len(superseded)

    by_label: Dict[str, List[PendingOperation]] = defaultdict(list)
    for op in ops:
        if op.operation_type in (ADD_LABEL, REMOVE_LABEL):
            label_id = op.params.get("labelId")
            if label_id is not None:
                by_label[label_id].append(op)

    for label_ops in by_label.values():
        superseded, cancelled = _net_out(label_ops, lambda op: op.operation_type)
        plan.delete_ids.extend(superseded + cancelled)
        plan.cancelled_labels += len(cancelled)
        plan.collapsed += len(superseded)

    by_type: Dict[str, List[PendingOperation]] = defaultdict(list)
    for op in ops:
        if op.operation_type in COLLAPSE_TYPES:
            by_type[op.operation_type].append(op)

    for collapse_ops in by_type.values():
        superseded = [op.id for op in collapse_ops[:-1]]
        plan.delete_ids.extend(superseded)
        plan.collapsed += len(superseded)


def plan_compaction(operations: Iterable[PendingOperation]) -> CompactionPlan:
    """Work out which pending operations are provably redundant.

    Args:
        operations: Snapshot of pending rows (any order, any accounts)

    Returns:
        CompactionPlan listing the ids to delete
    """
    groups: Dict[Tuple[str, str], List[PendingOperation]] = defaultdict(list)
    for op in operations:
        if op.is_pending:
            groups[op.group_key].append(op)

    plan = CompactionPlan()
    for group in groups.values():
        group.sort(key=_sort_key)
        _compact_group(group, plan)

    return plan
