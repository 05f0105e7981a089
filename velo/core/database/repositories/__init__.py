"""Repositories over the Velo database."""

from .pending_operations import PendingOperationRepository
from .quick_steps import QuickStepRepository

__all__ = ["PendingOperationRepository", "QuickStepRepository"]
