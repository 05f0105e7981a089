"""Tests for compaction planning over pending operation snapshots."""

import itertools

from velo.core.models.pending_operation import OperationStatus, PendingOperation
from velo.core.queue.compaction import plan_compaction

_seq = itertools.count(1)


def op(op_type, params=None, resource="t1", account="a1", created_at=None, status=OperationStatus.PENDING):
    seq = next(_seq)
    return PendingOperation(
        id=f"op-{seq}",
        account_id=account,
        operation_type=op_type,
        resource_id=resource,
        params=params or {},
        status=status,
        created_at=seq if created_at is None else created_at,
        seq=seq,
    )


def survivors(ops):
    plan = plan_compaction(ops)
    return [o for o in ops if o.id not in plan.delete_ids]


class TestStarToggles:
    """Tests for cancelling star pairs"""

    def test_star_then_unstar_cancels(self):
        ops = [op("star", {"starred": True}), op("star", {"starred": False})]
        plan = plan_compaction(ops)
        assert plan.removed_count == 2
        assert set(plan.delete_ids) == {ops[0].id, ops[1].id}

    def test_repeated_star_keeps_latest(self):
        ops = [op("star", {"starred": True}), op("star", {"starred": True})]
        plan = plan_compaction(ops)
        assert plan.delete_ids == [ops[0].id]
        assert plan.cancelled_toggles == 0

    def test_repeat_then_unstar_never_replays_a_star(self):
        """Test star, star, unstar does not leave a star behind"""
        ops = [
            op("star", {"starred": True}),
            op("star", {"starred": True}),
            op("star", {"starred": False}),
        ]
        remaining = survivors(ops)
        assert remaining == []

    def test_survivor_matches_last_star(self):
        ops = [
            op("star", {"starred": False}),
            op("star", {"starred": True}),
            op("star", {"starred": True}),
            op("star", {"starred": True}),
        ]
        remaining = survivors(ops)
        assert [o.id for o in remaining] == [ops[3].id]

    def test_odd_toggle_count_leaves_latest(self):
        ops = [
            op("star", {"starred": True}),
            op("star", {"starred": False}),
            op("star", {"starred": True}),
        ]
        assert [o.id for o in survivors(ops)] == [ops[2].id]

    def test_star_without_value_is_never_matched(self):
        ops = [op("star", {}), op("star", {"starred": False})]
        assert plan_compaction(ops).removed_count == 0

    def test_mark_read_toggles_are_not_cancelled(self):
        ops = [op("markRead", {"read": True}), op("markRead", {"read": False})]
        assert plan_compaction(ops).removed_count == 0


class TestLabelPairs:
    """Tests for cancelling addLabel/removeLabel pairs"""

    def test_add_add_remove_leaves_label_removed(self):
        """Test a repeated add followed by a remove never replays an add"""
        ops = [
            op("addLabel", {"labelId": "L1"}),
            op("addLabel", {"labelId": "L1"}),
            op("removeLabel", {"labelId": "L1"}),
        ]
        assert [o.operation_type for o in survivors(ops)] == []

    def test_remove_add_add_keeps_last_add(self):
        ops = [
            op("removeLabel", {"labelId": "L1"}),
            op("addLabel", {"labelId": "L1"}),
            op("addLabel", {"labelId": "L1"}),
        ]
        remaining = survivors(ops)
        assert [o.id for o in remaining] == [ops[2].id]
        assert remaining[0].operation_type == "addLabel"

    def test_add_then_remove_same_label_cancels(self):
        ops = [op("addLabel", {"labelId": "L1"}), op("removeLabel", {"labelId": "L1"})]
        assert plan_compaction(ops).removed_count == 2

    def test_remove_then_add_same_label_cancels(self):
        ops = [op("removeLabel", {"labelId": "L1"}), op("addLabel", {"labelId": "L1"})]
        assert plan_compaction(ops).removed_count == 2

    def test_different_labels_do_not_interact(self):
        ops = [op("addLabel", {"labelId": "L1"}), op("removeLabel", {"labelId": "L2"})]
        assert plan_compaction(ops).removed_count == 0

    def test_only_matching_pair_removed(self):
        ops = [
            op("addLabel", {"labelId": "L1"}),
            op("addLabel", {"labelId": "L2"}),
            op("removeLabel", {"labelId": "L1"}),
        ]
        assert [o.id for o in survivors(ops)] == [ops[1].id]


class TestCollapse:
    """Tests for latest-wins collapse of destination-setting operations"""

    def test_moves_collapse_to_latest(self):
        ops = [
            op("moveToFolder", {"folderPath": "A"}),
            op("moveToFolder", {"folderPath": "B"}),
            op("moveToFolder", {"folderPath": "C"}),
        ]
        plan = plan_compaction(ops)
        assert plan.removed_count == 2
        assert plan.collapsed == 2

        remaining = survivors(ops)
        assert len(remaining) == 1
        assert remaining[0].params["folderPath"] == "C"

    def test_latest_is_by_created_at_not_input_order(self):
        late = op("moveToFolder", {"folderPath": "late"}, created_at=200)
        early = op("moveToFolder", {"folderPath": "early"}, created_at=100)
        assert [o.params["folderPath"] for o in survivors([late, early])] == ["late"]

    def test_created_at_ties_broken_by_insertion(self):
        first = op("moveToFolder", {"folderPath": "first"}, created_at=5)
        second = op("moveToFolder", {"folderPath": "second"}, created_at=5)
        assert [o.params["folderPath"] for o in survivors([second, first])] == ["second"]

    def test_snoozes_collapse(self):
        ops = [op("snooze", {"snoozeUntil": 1}), op("snooze", {"snoozeUntil": 2})]
        assert [o.id for o in survivors(ops)] == [ops[1].id]

    def test_single_move_survives(self):
        assert plan_compaction([op("moveToFolder", {"folderPath": "A"})]).is_empty


class TestScoping:
    """Tests that compaction stays inside one resource of one account"""

    def test_other_resources_untouched(self):
        ops = [op("star", {"starred": True}, resource="t1"), op("star", {"starred": False}, resource="t2")]
        assert plan_compaction(ops).removed_count == 0

    def test_other_accounts_untouched(self):
        ops = [
            op("moveToFolder", {"folderPath": "A"}, account="a1"),
            op("moveToFolder", {"folderPath": "B"}, account="a2"),
        ]
        assert plan_compaction(ops).removed_count == 0

    def test_failed_rows_ignored(self):
        ops = [
            op("star", {"starred": True}, status=OperationStatus.FAILED),
            op("star", {"starred": False}),
        ]
        assert plan_compaction(ops).removed_count == 0

    def test_unrelated_operations_survive_in_order(self):
        ops = [
            op("archive"),
            op("star", {"starred": True}),
            op("markRead", {"read": True}),
            op("star", {"starred": False}),
            op("trash"),
        ]
        assert [o.operation_type for o in survivors(ops)] == ["archive", "markRead", "trash"]


def test_compaction_is_idempotent():
    """A second pass over the survivors removes nothing"""
    ops = [
        op("star", {"starred": True}),
        op("star", {"starred": True}),
        op("star", {"starred": False}),
        op("addLabel", {"labelId": "L1"}),
        op("addLabel", {"labelId": "L1"}),
        op("removeLabel", {"labelId": "L1"}),
        op("moveToFolder", {"folderPath": "A"}),
        op("moveToFolder", {"folderPath": "B"}),
        op("archive", resource="t2"),
    ]
    first = survivors(ops)
    assert len(first) < len(ops)
    assert plan_compaction(first).removed_count == 0


def test_empty_snapshot():
    plan = plan_compaction([])
    assert plan.is_empty
    assert plan.removed_count == 0
