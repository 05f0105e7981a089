"""Quick step repository with SQLAlchemy Core queries."""

import uuid
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError

from velo.core.database.engine_manager import EngineManager
from velo.core.database.models import get_table
from velo.core.database.transaction import TransactionManager
from velo.core.models.pending_operation import now_ms
from velo.core.models.quick_step import QuickStep, QuickStepAction
from velo.utils.errors import DatabaseError, QuickStepNotFoundError
from velo.utils.logging import get_logger

logger = get_logger(__name__)

_UPDATABLE = {
    "name",
    "description",
    "shortcut",
    "icon",
    "is_enabled",
    "continue_on_error",
}


class QuickStepRepository:
    """Repository for QuickStep definitions, ordered by ``sort_order``."""

    def __init__(self, engine_manager: EngineManager):
        self.engine_mgr = engine_manager
        self._table = get_table("quick_steps")

    async def _fetch(self, query) -> List[QuickStep]:
        engine = await self.engine_mgr.get_engine()
        try:
            async with engine.connect() as conn:
                result = await conn.execute(query)
                return [QuickStep.from_row(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to load quick steps: {e}") from e

    async def list_for_account(self, account_id: str) -> List[QuickStep]:
        """All quick steps for an account in display order."""
        table = self._table
        query = (
            select(table)
            .where(table.c.account_id == account_id)
            .order_by(table.c.sort_order, table.c.created_at)
        )
        return await self._fetch(query)

    async def list_enabled(self, account_id: str) -> List[QuickStep]:
        """Enabled quick steps for an account in display order."""
        table = self._table
        query = (
            select(table)
            .where(table.c.account_id == account_id, table.c.is_enabled.is_(True))
            .order_by(table.c.sort_order, table.c.created_at)
        )
        return await self._fetch(query)

    async def get(self, step_id: str) -> Optional[QuickStep]:
        steps = await self._fetch(select(self._table).where(self._table.c.id == step_id))
        return steps[0] if steps else None

    async def insert(
        self,
        account_id: str,
        name: str,
        actions: Sequence[QuickStepAction],
        description: Optional[str] = None,
        shortcut: Optional[str] = None,
        icon: Optional[str] = None,
        is_enabled: bool = True,
        continue_on_error: bool = False,
        sort_order: int = 0,
    ) -> str:
        """Insert a new quick step.

        Returns:
            The generated quick step id
        """
        step = QuickStep(
            id=str(uuid.uuid4()),
            account_id=account_id,
            name=name,
            actions=list(actions),
            continue_on_error=continue_on_error,
            is_enabled=is_enabled,
            description=description,
            shortcut=shortcut,
            icon=icon,
            sort_order=sort_order,
            created_at=now_ms(),
        )

        values = {
            "id": step.id,
            "account_id": step.account_id,
            "name": step.name,
            "description": step.description,
            "shortcut": step.shortcut,
            "actions_json": step.actions_json(),
            "icon": step.icon,
            "is_enabled": step.is_enabled,
            "continue_on_error": step.continue_on_error,
            "sort_order": step.sort_order,
            "created_at": step.created_at,
        }

        engine = await self.engine_mgr.get_engine()
        try:
            async with engine.begin() as conn:
                await conn.execute(self._table.insert().values(**values))
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to save quick step '{name}': {e}") from e

        logger.info(f"Created quick step '{name}' for account {account_id}")
        return step.id

    async def update(
        self,
        step_id: str,
        actions: Optional[Sequence[QuickStepAction]] = None,
        **fields: Any,
    ) -> None:
        """Update selected columns of a quick step.

        Args:
            step_id: Quick step id
            actions: Replacement action chain, if any
            **fields: Any of name, description, shortcut, icon, is_enabled,
                continue_on_error

        Raises:
            QuickStepNotFoundError: If the quick step does not exist
            ValueError: If an unknown field is given
        """
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update quick step fields: {', '.join(sorted(unknown))}")

        values: Dict[str, Any] = dict(fields)
        if actions is not None:
            values["actions_json"] = QuickStep(
                id=step_id, account_id="", name="", actions=list(actions)
            ).actions_json()

        if not values:
            return

        engine = await self.engine_mgr.get_engine()
        try:
            async with engine.begin() as conn:
                result = await conn.execute(
                    update(self._table).where(self._table.c.id == step_id).values(**values)
                )
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to update quick step {step_id}: {e}") from e

        if result.rowcount == 0:
            raise QuickStepNotFoundError(
                f"Quick step {step_id} not found", details={"id": step_id}
            )

    async def delete(self, step_id: str) -> None:
        engine = await self.engine_mgr.get_engine()
        try:
            async with engine.begin() as conn:
                await conn.execute(delete(self._table).where(self._table.c.id == step_id))
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to delete quick step {step_id}: {e}") from e

    async def reorder(self, account_id: str, ordered_ids: Sequence[str]) -> None:
        """Rewrite ``sort_order`` to follow ``ordered_ids``."""
        table = self._table
        engine = await self.engine_mgr.get_engine()

        async with TransactionManager(engine, name="reorder_quick_steps") as tx:
            for position, step_id in enumerate(ordered_ids):
                await tx.connection.execute(
                    update(table)
                    .where(table.c.id == step_id, table.c.account_id == account_id)
                    .values(sort_order=position)
                )

        logger.debug(f"Reordered {len(ordered_ids)} quick steps for {account_id}")
