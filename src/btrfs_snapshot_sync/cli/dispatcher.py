"""CLI dispatcher routing subcommands to their handlers."""

import argparse
import sys
from typing import Callable

from .common import add_node_args, add_transfer_args, add_verbosity_args


def create_subcommand_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="btrfs-snapshot-sync",
        description="Incrementally replicate btrfs snapshots to another host",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    add_verbosity_args(parser)

    parser.add_argument(
        "-V",
        "--version",
        action="store_true",
        help="Show version and exit",
    )

    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        help="Path to configuration file",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands (use 'command --help' for details)",
    )

    # sync command
    sync_parser = subparsers.add_parser(
        "sync",
        help="Send new snapshots to the destination",
        description="Send every source snapshot newer than the destination's "
        "newest snapshot, each incrementally against its predecessor",
    )
    add_node_args(sync_parser)
    add_transfer_args(sync_parser)

    # list command
    list_parser = subparsers.add_parser(
        "list",
        help="Show snapshots and pending transfers",
        description="List the snapshots of both nodes and what sync would send",
    )
    add_node_args(list_parser)

    # config command with subcommands
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
        description="Validate or initialize configuration",
    )
    config_subs = config_parser.add_subparsers(dest="config_action")

    config_subs.add_parser(
        "validate",
        help="Validate configuration file",
    )

    init_parser = config_subs.add_parser(
        "init",
        help="Generate example configuration",
    )
    init_parser.add_argument(
        "-o",
        "--output",
        metavar="FILE",
        help="Output file (default: stdout)",
    )

    return parser


def run_subcommand(args: argparse.Namespace) -> int:
    """Run the specified subcommand.

    Args:
        args: Parsed arguments

    Returns:
        Exit code
    """
    from .. import __version__

    if args.version:
        print(f"btrfs-snapshot-sync {__version__}")
        return 0

    if not args.command:
        print("No command specified. Use --help for usage information.")
        return 1

    handlers: dict[str, Callable] = {
        "sync": cmd_sync,
        "list": cmd_list,
        "config": cmd_config,
    }

    handler = handlers.get(args.command)
    if handler:
        return handler(args)
    else:
        print(f"Unknown command: {args.command}")
        return 1


def cmd_sync(args: argparse.Namespace) -> int:
    """Execute sync command."""
    from .sync_cmd import execute_sync

    return execute_sync(args)


def cmd_list(args: argparse.Namespace) -> int:
    """Execute list command."""
    from .list_cmd import execute_list

    return execute_list(args)


def cmd_config(args: argparse.Namespace) -> int:
    """Execute config command."""
    from .config_cmd import execute_config

    return execute_config(args)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for btrfs-snapshot-sync CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = create_subcommand_parser()
    args = parser.parse_args(argv)

    return run_subcommand(args)
