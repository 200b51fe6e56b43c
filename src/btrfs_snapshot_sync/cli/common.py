"""Shared CLI utilities and argument parsers."""

import argparse
import re

from ..config import Config, ConfigError, find_config_file, load_config, parse_config
from ..endpoint import CommandRunner, Node, choose_node, parse_node_spec


def add_verbosity_args(parser: argparse.ArgumentParser) -> None:
    """Add verbosity-related arguments to a parser."""
    group = parser.add_argument_group("Output options")
    group.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    group.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )
    group.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output",
    )


def add_node_args(parser: argparse.ArgumentParser) -> None:
    """Add source/destination arguments overriding the configuration file."""
    parser.add_argument(
        "source",
        nargs="?",
        help="Source node, e.g. /mnt (overrides config)",
    )
    parser.add_argument(
        "destination",
        nargs="?",
        help="Destination node, e.g. backup-host:22/mnt (overrides config)",
    )
    parser.add_argument(
        "--snapshot-dir",
        metavar="DIR",
        help="Snapshot directory below the source mount point (overrides config)",
    )
    parser.add_argument(
        "--destination-snapshot-dir",
        metavar="DIR",
        help="Snapshot directory below the destination mount point (overrides config)",
    )
    parser.add_argument(
        "--pattern",
        metavar="REGEX",
        help="Snapshot name pattern for both nodes (overrides config)",
    )


def non_negative_seconds(value: str) -> float:
    """Argument type for durations; rejects negative and non-numeric values."""
    try:
        seconds = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number of seconds: {value!r}")
    if seconds < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {value!r}")
    return seconds


def add_transfer_args(parser: argparse.ArgumentParser) -> None:
    """Add arguments controlling how transfers run."""
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be sent without sending anything",
    )
    parser.add_argument(
        "--progress",
        action="store_true",
        help="Report transferred bytes once per second",
    )
    parser.add_argument(
        "--timeout",
        type=non_negative_seconds,
        metavar="SECONDS",
        help="Abort a single transfer after this many seconds, 0 for no deadline "
        "(overrides config)",
    )


def get_log_level(args: argparse.Namespace) -> str:
    """Determine log level from parsed arguments.

    Args:
        args: Parsed command line arguments

    Returns:
        Log level string (DEBUG, INFO, WARNING, ERROR)
    """
    if getattr(args, "debug", False):
        return "DEBUG"
    elif getattr(args, "quiet", False):
        return "WARNING"
    elif getattr(args, "verbose", False):
        return "DEBUG"
    else:
        return "INFO"


def resolve_config(args: argparse.Namespace) -> tuple[Config, list[str]]:
    """Load the configuration and apply command line overrides.

    Node specifications given on the command line replace the configured
    ones; without a configuration file both must be given.

    Raises:
        ConfigError: If no usable configuration results.
    """
    source = getattr(args, "source", None)
    destination = getattr(args, "destination", None)
    if bool(source) != bool(destination):
        raise ConfigError("Both SOURCE and DESTINATION must be given")

    config_path = find_config_file(getattr(args, "config", None))
    if config_path is not None:
        config, warnings = load_config(config_path)
    elif source:
        config, warnings = parse_config(
            {"source": {"node": source}, "destination": {"node": destination}}
        )
    else:
        raise ConfigError(
            "No configuration file found and no SOURCE and DESTINATION given"
        )

    if source:
        for spec in (source, destination):
            try:
                parse_node_spec(spec)
            except ValueError as e:
                raise ConfigError(f"Invalid node: {e}")
        config.source.node = source
        config.destination.node = destination

    for option, node_config in (
        ("snapshot_dir", config.source),
        ("destination_snapshot_dir", config.destination),
    ):
        snapshot_dir = getattr(args, option, None)
        if snapshot_dir is None:
            continue
        if snapshot_dir.startswith("/"):
            raise ConfigError(
                f"Snapshot directory {snapshot_dir!r} must be relative to the mount point"
            )
        node_config.snapshot_dir = snapshot_dir

    pattern = getattr(args, "pattern", None)
    if pattern is not None:
        try:
            re.compile(pattern)
        except re.error as e:
            raise ConfigError(f"Invalid pattern {pattern!r}: {e}")
        config.source.name_pattern = pattern
        config.destination.name_pattern = pattern

    return config, warnings


def build_nodes(config: Config) -> tuple[CommandRunner, Node, Node]:
    """Create the shared runner and both nodes described by ``config``."""
    global_config = config.global_config
    runner = CommandRunner(ssh=global_config.ssh, ssh_opts=global_config.ssh_opts)
    nodes = [
        choose_node(
            node_config.node,
            runner,
            snapshot_dir=node_config.snapshot_dir,
            name_pattern=node_config.name_pattern,
            btrfs=global_config.btrfs,
        )
        for node_config in (config.source, config.destination)
    ]
    return runner, nodes[0], nodes[1]
