"""Queue command - inspect and manage pending operations"""

from rich.console import Console

from velo.cli.output import OperationTable, report
from velo.utils.config import ConfigManager
from velo.utils.logging import async_log_call, get_logger

from .command_utils import Repositories, open_repositories

logger = get_logger(__name__)


async def _status(repos: Repositories, args, console: Console) -> None:
    account_id = getattr(args, "account_id", None)
    pending = await repos.operations.count_pending(account_id)
    failed = await repos.operations.count_failed(account_id)

    scope = f" for {account_id}" if account_id else ""
    console.print(f"Pending operations{scope}: [cyan]{pending}[/cyan]")
    if failed:
        console.print(f"Failed operations{scope}: [red]{failed}[/red]")
        console.print("Run 'velo queue retry' to try them again or 'velo queue clear' to drop them.")
    else:
        console.print(f"Failed operations{scope}: 0")


async def _list(repos: Repositories, args, console: Console) -> None:
    account_id = getattr(args, "account_id", None)
    if getattr(args, "failed", False):
        operations = await repos.operations.list_failed(account_id)
        title = "Failed operations"
    else:
        operations = await repos.operations.list_pending(account_id)
        title = "Pending operations"

    OperationTable(console).display(operations, title=title)


async def _compact(repos: Repositories, args, console: Console) -> None:
    removed = await repos.operations.compact()
    if removed:
        report(console, f"Removed {removed} redundant operations.")
    else:
        report(console, "Nothing to compact.", "warning")


async def _retry(repos: Repositories, args, console: Console) -> None:
    reset = await repos.operations.retry_failed()
    if reset:
        report(console, f"Moved {reset} failed operations back to pending.")
    else:
        report(console, "No failed operations to retry.", "warning")


async def _clear(repos: Repositories, args, console: Console) -> None:
    cleared = await repos.operations.clear_failed(getattr(args, "account_id", None))
    if cleared:
        report(console, f"Deleted {cleared} failed operations.")
    else:
        report(console, "No failed operations to clear.", "warning")


QUEUE_COMMANDS = {
    "status": _status,
    "list": _list,
    "compact": _compact,
    "retry": _retry,
    "clear": _clear,
}


@async_log_call
async def handle_queue_command(args, config_manager: ConfigManager, console: Console) -> bool:
    """Run a ``velo queue`` subcommand.

    Returns:
        True on success
    """
    handler = QUEUE_COMMANDS.get(args.queue_command)
    if handler is None:
        raise ValueError(f"Unknown queue command: {args.queue_command}")

    async with open_repositories(config_manager) as repos:
        await handler(repos, args, console)

    return True
