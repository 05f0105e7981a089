"""Main CLI entry point."""

import asyncio

from rich.console import Console

from velo.utils.config import ConfigManager
from velo.utils.errors import ErrorHandler, VeloError, format_error_message
from velo.utils.logging import async_log_call, get_logger, init_logging

from .cli_parser import setup_argument_parser
from .commands.queue import handle_queue_command
from .commands.quicksteps import handle_quicksteps_command
from .output import report

logger = get_logger(__name__)

COMMANDS = {
    "queue": handle_queue_command,
    "quicksteps": handle_quicksteps_command,
}


@async_log_call
async def dispatch_command(args, config_manager: ConfigManager, console: Console) -> int:
    """Dispatch a parsed command to its handler.

    Returns:
        Exit code (0 = success, 1 = error)
    """
    handler = COMMANDS.get(args.command)

    try:
        if handler is None:
            raise ValueError(f"Unknown command: {args.command}")

        success = await handler(args, config_manager, console)
        return 0 if success else 1

    except ValueError as e:
        logger.error(f"Invalid command: {e}")
        report(console, f"Error: {e}", "error")
        return 1

    except VeloError as e:
        ErrorHandler.handle(e, f"velo {args.command}", log_traceback=False)
        report(console, f"Error: {format_error_message(e)}", "error")
        return 1


def main(argv=None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code
    """
    console = Console()

    try:
        parser = setup_argument_parser()
        args = parser.parse_args(argv)

        try:
            config_manager = ConfigManager()
        except VeloError as e:
            logger.error(f"Configuration error: {e.message}")
            report(console, f"Configuration error: {e.message}", "error")
            return 1

        log_level = args.log_level or config_manager.get_config("logging.log_level", "INFO")
        init_logging().set_level(log_level)

        return asyncio.run(dispatch_command(args, config_manager, console))

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        return 130

    except Exception as e:
        logger.error(f"Fatal error: {e}")
        report(console, f"Fatal error: {e}", "error")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
