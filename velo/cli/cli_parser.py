"""Argument parser configuration for the Velo CLI"""

import argparse


## Argument Adding Utilities

def add_account_argument(parser: argparse.ArgumentParser, required: bool = False) -> None:
    """Add an account filter argument to the parser."""

    parser.add_argument(
        "--account",
        dest="account_id",
        required=required,
        help="Limit to one account id"
    )


## Command Setup Functions

def setup_queue_commands(subparsers) -> None:
    """Setup pending-operation queue commands."""

    queue_parser = subparsers.add_parser(
        "queue",
        help="Inspect and manage the pending operation queue",
        description="Show, compact, retry or clear queued mutations"
    )

    queue_subparsers = queue_parser.add_subparsers(
        dest="queue_command",
        required=True,
        help="Queue operation to perform"
    )

    status_parser = queue_subparsers.add_parser(
        "status",
        help="Show pending and failed counts",
    )
    add_account_argument(status_parser)

    list_parser = queue_subparsers.add_parser(
        "list",
        help="List queued operations",
    )
    add_account_argument(list_parser)
    list_parser.add_argument(
        "--failed",
        action="store_true",
        help="List operations that exhausted their retries instead"
    )

    queue_subparsers.add_parser(
        "compact",
        help="Remove redundant queued operations",
    )

    queue_subparsers.add_parser(
        "retry",
        help="Move failed operations back to pending",
    )

    clear_parser = queue_subparsers.add_parser(
        "clear",
        help="Delete failed operations",
    )
    add_account_argument(clear_parser)


def setup_quickstep_commands(subparsers) -> None:
    """Setup quick step commands."""

    quicksteps_parser = subparsers.add_parser(
        "quicksteps",
        help="Manage quick steps",
        description="List quick steps or seed the defaults for an account"
    )

    quicksteps_subparsers = quicksteps_parser.add_subparsers(
        dest="quicksteps_command",
        required=True,
        help="Quick step operation to perform"
    )

    list_parser = quicksteps_subparsers.add_parser(
        "list",
        help="List quick steps for an account",
    )
    list_parser.add_argument("account_id", help="Account id")
    list_parser.add_argument(
        "--enabled",
        action="store_true",
        help="Show only enabled quick steps"
    )

    seed_parser = quicksteps_subparsers.add_parser(
        "seed",
        help="Create the default quick steps if the account has none",
    )
    seed_parser.add_argument("account_id", help="Account id")


## Main Parser Setup

def setup_argument_parser() -> argparse.ArgumentParser:
    """Setup and return the main argument parser."""

    parser = argparse.ArgumentParser(
        prog="velo",
        description="Velo - offline mail mutation engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="File log level for this run"
    )

    subparsers = parser.add_subparsers(
        dest="command",
        required=True,
        help="Command to run"
    )

    setup_queue_commands(subparsers)
    setup_quickstep_commands(subparsers)

    return parser
