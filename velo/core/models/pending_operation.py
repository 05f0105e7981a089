"""Pending operation domain model"""

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

DEFAULT_MAX_RETRIES = 10


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class OperationStatus(Enum):
    """Lifecycle states of a queued mutation.

    Confirmed operations are deleted, so there is no terminal success state.
    """

    PENDING = "pending"
    FAILED = "failed"

    @classmethod
    def from_string(cls, value: str) -> "OperationStatus":
        try:
            return cls(value.lower())
        except ValueError:
            raise ValueError(f"Invalid operation status: {value}")


@dataclass
class PendingOperation:
    """A durably queued mutation awaiting provider confirmation."""

    id: str
    account_id: str
    operation_type: str
    resource_id: str
    params: Dict[str, Any] = field(default_factory=dict)
    status: OperationStatus = OperationStatus.PENDING
    retry_count: int = 0
    max_retries: int = DEFAULT_MAX_RETRIES
    created_at: int = 0
    next_retry_at: Optional[int] = None
    error_message: Optional[str] = None
    seq: int = 0

    @property
    def is_pending(self) -> bool:
        return self.status is OperationStatus.PENDING

    @property
    def group_key(self) -> tuple[str, str]:
        """Compaction group: operations only interact within one resource."""
        return (self.account_id, self.resource_id)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PendingOperation":
        """Build from a ``pending_operations`` row mapping."""
        raw_params = row["params"] or "{}"
        try:
            params = json.loads(raw_params)
        except json.JSONDecodeError:
            params = {}

        return cls(
            id=row["id"],
            account_id=row["account_id"],
            operation_type=row["operation_type"],
            resource_id=row["resource_id"],
            params=params,
            status=OperationStatus.from_string(row["status"]),
            retry_count=row["retry_count"],
            max_retries=row["max_retries"],
            created_at=row["created_at"],
            next_retry_at=row["next_retry_at"],
            error_message=row["error_message"],
            seq=row["seq"],
        )
