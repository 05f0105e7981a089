"""Default quick steps offered to new accounts."""

from typing import Any, Dict, List

from velo.core.database.repositories.quick_steps import QuickStepRepository
from velo.core.models.quick_step import QuickStepAction
from velo.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_QUICK_STEPS: List[Dict[str, Any]] = [
    {
        "name": "Reply & Archive",
        "actions": [QuickStepAction("reply"), QuickStepAction("archive")],
        "icon": "Reply",
    },
    {
        "name": "Mark Read & Archive",
        "actions": [QuickStepAction("markRead"), QuickStepAction("archive")],
        "icon": "MailOpen",
    },
    {
        "name": "Star & Pin",
        "actions": [QuickStepAction("star"), QuickStepAction("pin")],
        "icon": "Star",
    },
]


async def seed_default_quick_steps(repo: QuickStepRepository, account_id: str) -> int:
    """Insert the default quick steps if the account has none yet.

    Returns:
        Number of quick steps inserted (0 when the account already has some)
    """
    existing = await repo.list_for_account(account_id)
    if existing:
        logger.debug(f"Account {account_id} already has {len(existing)} quick steps")
        return 0

    for position, step in enumerate(DEFAULT_QUICK_STEPS):
        await repo.insert(
            account_id=account_id,
            name=step["name"],
            actions=[QuickStepAction(a.type, dict(a.params)) for a in step["actions"]],
            icon=step["icon"],
            sort_order=position,
        )

    logger.info(f"Seeded {len(DEFAULT_QUICK_STEPS)} default quick steps for {account_id}")
    return len(DEFAULT_QUICK_STEPS)
