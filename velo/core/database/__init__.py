"""Database access layer - public API."""

from .base import create_engine, dispose_engine, metadata
from .engine_manager import EngineManager
from .models import ALL_TABLES, get_table, pending_operations, quick_steps
from .repositories import PendingOperationRepository, QuickStepRepository
from .transaction import TransactionManager

__all__ = [
    "ALL_TABLES",
    "EngineManager",
    "PendingOperationRepository",
    "QuickStepRepository",
    "TransactionManager",
    "create_engine",
    "dispose_engine",
    "get_table",
    "metadata",
    "pending_operations",
    "quick_steps",
]
