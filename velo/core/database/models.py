"""SQLAlchemy table definitions with proper types and constraints."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Index,
    Integer,
    String,
    Table,
    Text,
)

from velo.core.database.base import metadata

pending_operations = Table(
    "pending_operations",
    metadata,
    # Insertion sequence breaks ties between rows created in the same millisecond
    Column("seq", Integer, primary_key=True, autoincrement=True),
    Column("id", String(36), unique=True, nullable=False, index=True),
    Column("account_id", String(255), nullable=False),
    Column("operation_type", String(64), nullable=False),
    Column("resource_id", String(255), nullable=False),
    Column("params", Text, nullable=False, default="{}", server_default="{}"),
    Column("status", String(16), nullable=False, default="pending", server_default="pending"),
    Column("retry_count", Integer, nullable=False, default=0, server_default="0"),
    Column("max_retries", Integer, nullable=False, default=10, server_default="10"),
    Column("next_retry_at", Integer, nullable=True),  # epoch milliseconds
    Column("created_at", Integer, nullable=False),  # epoch milliseconds
    Column("error_message", Text, nullable=True),
    CheckConstraint("status IN ('pending', 'failed')", name="status_values"),
    Index("ix_pending_operations_resource", "account_id", "resource_id"),
    Index("ix_pending_operations_status_created", "status", "created_at"),
)

quick_steps = Table(
    "quick_steps",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("account_id", String(255), nullable=False, index=True),
    Column("name", String(255), nullable=False),
    Column("description", Text, nullable=True),
    Column("shortcut", String(32), nullable=True),
    Column("actions_json", Text, nullable=False, default="[]", server_default="[]"),
    Column("icon", String(64), nullable=True),
    Column("is_enabled", Boolean, nullable=False, default=True, server_default="1"),
    Column("continue_on_error", Boolean, nullable=False, default=False, server_default="0"),
    Column("sort_order", Integer, nullable=False, default=0, server_default="0"),
    Column("created_at", Integer, nullable=False),  # epoch milliseconds
)

# Export all tables
ALL_TABLES = {
    "pending_operations": pending_operations,
    "quick_steps": quick_steps,
}


def get_table(name: str) -> Table:
    """Get table by name with validation.

    Raises:
        ValueError: If table name is invalid
    """
    if name not in ALL_TABLES:
        raise ValueError(
            f"Invalid table name: {name}. Must be one of: {', '.join(ALL_TABLES.keys())}"
        )

    return ALL_TABLES[name]
