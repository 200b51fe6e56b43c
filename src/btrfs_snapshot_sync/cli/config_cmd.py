"""Config command: check or create the configuration file."""

import argparse
import logging
from pathlib import Path

from ..__logger__ import create_logger
from ..config import Config, ConfigError, find_config_file, load_config, loader
from .common import build_nodes, get_log_level

logger = logging.getLogger(__name__)


def execute_config(args: argparse.Namespace) -> int:
    """Execute the config command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    create_logger(get_log_level(args))

    actions = {"validate": _validate_config, "init": _init_config}
    action = actions.get(getattr(args, "config_action", None))
    if action is None:
        print("Usage: btrfs-snapshot-sync config <validate|init>")
        return 1
    return action(args)


def _describe(config: Config) -> list[str]:
    """Summarize how the configuration will be applied."""
    _, source, destination = build_nodes(config)
    global_config = config.global_config
    lines = []
    for label, node in (("Source", source), ("Destination", destination)):
        where = "remote, via ssh" if node.is_remote else "local"
        lines.append(f"  {label + ':':<13}{node} ({where})")
        lines.append(f"  {'':<13}snapshots in {node.snapshot_root}")
        lines.append(f"  {'':<13}matching {node.name_pattern}")
    timeout = global_config.timeout
    lines.append(f"  {'Timeout:':<13}{f'{timeout:g}s per transfer' if timeout else 'none'}")
    lines.append(f"  {'Lock file:':<13}{global_config.lock_file}")
    return lines


def _validate_config(args: argparse.Namespace) -> int:
    """Load the configuration and report problems."""
    try:
        config_path = find_config_file(getattr(args, "config", None))
        if config_path is None:
            print("No configuration file found.")
            print("Searched locations:")
            for path in loader.CONFIG_PATHS:
                print(f"  {path}")
            return 1

        print(f"Validating: {config_path}")
        config, warnings = load_config(config_path)
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return 1

    if warnings:
        print("\nWarnings:")
        for warning in warnings:
            print(f"  - {warning}")

    print("\nConfiguration is valid.")
    for line in _describe(config):
        print(line)
    return 0


def _init_config(args: argparse.Namespace) -> int:
    """Print or write an example configuration."""
    content = loader.generate_example_config()

    output = getattr(args, "output", None)
    if not output:
        print(content)
        return 0

    try:
        Path(output).write_text(content)
    except OSError as e:
        print(f"Error writing file: {e}")
        return 1
    print(f"Example configuration written to: {output}")
    logger.debug("Wrote %d bytes to %s", len(content), output)
    return 0
