"""Pending-operation queue: compaction and draining."""

from .compaction import CompactionPlan, plan_compaction

__all__ = ["CompactionPlan", "plan_compaction"]
