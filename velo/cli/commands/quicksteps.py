"""Quick steps command - list and seed quick steps"""

from rich.console import Console

from velo.cli.output import QuickStepTable, report
from velo.core.quicksteps.defaults import seed_default_quick_steps
from velo.utils.config import ConfigManager
from velo.utils.logging import async_log_call, get_logger, log_event

from .command_utils import open_repositories

logger = get_logger(__name__)


@async_log_call
async def handle_quicksteps_command(args, config_manager: ConfigManager, console: Console) -> bool:
    """Run a ``velo quicksteps`` subcommand.

    Returns:
        True on success
    """
    async with open_repositories(config_manager) as repos:
        if args.quicksteps_command == "list":
            if getattr(args, "enabled", False):
                steps = await repos.quick_steps.list_enabled(args.account_id)
            else:
                steps = await repos.quick_steps.list_for_account(args.account_id)
            QuickStepTable(console).display(steps, title=f"Quick steps for {args.account_id}")
            return True

        if args.quicksteps_command == "seed":
            if not config_manager.get_config("quick_steps.seed_defaults", True):
                report(console, "Default quick steps are disabled in the configuration.", "warning")
                return True

            created = await seed_default_quick_steps(repos.quick_steps, args.account_id)
            if created:
                report(console, f"Created {created} default quick steps for {args.account_id}.")
                log_event("quick_steps_seeded", f"Seeded {created} quick steps", account_id=args.account_id)
            else:
                report(console, f"{args.account_id} already has quick steps.", "warning")
            return True

    raise ValueError(f"Unknown quicksteps command: {args.quicksteps_command}")
