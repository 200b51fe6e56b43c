"""List command: Show snapshots of both nodes and the pending transfers."""

import argparse
import logging

from .. import __util__
from ..__logger__ import create_logger
from ..config import ConfigError
from ..core.planning import plan_transfers
from .common import build_nodes, get_log_level, resolve_config

logger = logging.getLogger(__name__)


def execute_list(args: argparse.Namespace) -> int:
    """Execute the list command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    log_level = get_log_level(args)
    create_logger(log_level)

    try:
        config, warnings = resolve_config(args)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1

    for warning in warnings:
        logger.warning("Config: %s", warning)

    _, source, destination = build_nodes(config)
    try:
        source_snapshots = source.list_snapshots()
        destination_snapshots = destination.list_snapshots()
    except (
        __util__.CommandError,
        __util__.MalformedListingError,
        __util__.DuplicateSnapshotError,
    ) as e:
        logger.error("%s", e)
        return 1

    print(f"source ({source}):")
    for snapshot in source_snapshots:
        print(f"  {snapshot}")
    print(f"\ndestination ({destination}):")
    for snapshot in destination_snapshots:
        print(f"  {snapshot}")

    if not destination_snapshots:
        print("\nDestination holds no snapshots, seed it with a full copy first.")
        return 0

    anchor = destination_snapshots[-1]
    if anchor not in source_snapshots:
        print(f"\nNo common ancestor: {anchor} is missing at the source.")
        return 0

    tasks = plan_transfers(source_snapshots, destination_snapshots)
    print(f"\npending ({len(tasks)}):")
    for task in tasks:
        print(f"  {task}")
    return 0
