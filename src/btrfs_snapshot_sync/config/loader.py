"""TOML configuration loading and validation.

Handles config file discovery, parsing, and validation with helpful error messages.
"""

import re
import tomllib
from pathlib import Path
from typing import Any

from ..endpoint import parse_node_spec
from .schema import DEFAULT_LOCK_FILE, Config, GlobalConfig, NodeConfig


class ConfigError(Exception):
    """Configuration loading or validation error."""

    pass


# Config file search paths in priority order
CONFIG_PATHS = [
    Path.home() / ".config" / "btrfs-snapshot-sync" / "config.toml",
    Path("/etc/btrfs-snapshot-sync/config.toml"),
]


def find_config_file(explicit_path: str | None = None) -> Path | None:
    """Find configuration file.

    Args:
        explicit_path: Explicitly specified config path (highest priority)

    Returns:
        Path to config file, or None if not found
    """
    if explicit_path:
        path = Path(explicit_path)
        if path.exists():
            return path
        raise ConfigError(f"Config file not found: {explicit_path}")

    for path in CONFIG_PATHS:
        if path.exists():
            return path

    return None


def _parse_node(data: dict[str, Any], section: str) -> NodeConfig:
    """Parse a source or destination section."""
    if "node" not in data:
        raise ConfigError(f"[{section}] missing required 'node' field")

    node = NodeConfig(
        node=data["node"],
        snapshot_dir=data.get("snapshot_dir", ""),
        name_pattern=data.get("name_pattern", NodeConfig.name_pattern),
    )

    if not isinstance(node.snapshot_dir, str) or node.snapshot_dir.startswith("/"):
        raise ConfigError(
            f"[{section}] snapshot_dir {node.snapshot_dir!r} must be a path "
            "relative to the mount point"
        )

    try:
        parse_node_spec(node.node)
    except ValueError as e:
        raise ConfigError(f"[{section}] invalid node: {e}")

    try:
        re.compile(node.name_pattern)
    except re.error as e:
        raise ConfigError(f"[{section}] invalid name_pattern {node.name_pattern!r}: {e}")

    return node


def _parse_global(data: dict[str, Any]) -> GlobalConfig:
    """Parse global configuration from dict."""
    timeout = data.get("timeout", 0)
    if not isinstance(timeout, (int, float)) or timeout < 0:
        raise ConfigError(f"timeout must be a non-negative number, got {timeout!r}")

    ssh_opts = data.get("ssh_opts", [])
    if not isinstance(ssh_opts, list):
        raise ConfigError("ssh_opts must be a list of strings")

    return GlobalConfig(
        btrfs=data.get("btrfs", "btrfs"),
        ssh=data.get("ssh", "ssh"),
        ssh_opts=[str(opt) for opt in ssh_opts],
        progress=data.get("progress", False),
        dry_run=data.get("dry_run", False),
        timeout=timeout or None,
        lock_file=data.get("lock_file", DEFAULT_LOCK_FILE),
    )


def _validate_config(config: Config) -> list[str]:
    """Validate configuration and return list of warnings."""
    warnings = []

    if parse_node_spec(config.source.node) == parse_node_spec(config.destination.node):
        warnings.append("Source and destination refer to the same filesystem")

    for section, node in (("source", config.source), ("destination", config.destination)):
        if re.fullmatch(node.name_pattern, ""):
            warnings.append(
                f"[{section}] name_pattern matches the empty string, "
                "every subvolume will be treated as a snapshot"
            )

    return warnings


def parse_config(data: dict[str, Any]) -> tuple[Config, list[str]]:
    """Build and validate a configuration from already parsed TOML data."""
    for section in ("source", "destination"):
        if section not in data:
            raise ConfigError(f"Missing required [{section}] section")

    config = Config(
        source=_parse_node(data["source"], "source"),
        destination=_parse_node(data["destination"], "destination"),
        global_config=_parse_global(data.get("global", {})),
    )
    return config, _validate_config(config)


def load_config(path: Path | str) -> tuple[Config, list[str]]:
    """Load and validate configuration from TOML file.

    Args:
        path: Path to configuration file

    Returns:
        Tuple of (Config object, list of warnings)

    Raises:
        ConfigError: If config is invalid or cannot be parsed
    """
    path = Path(path)

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML syntax: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read config file: {e}")

    return parse_config(data)


def generate_example_config() -> str:
    """Generate example configuration file content."""
    return """# btrfs-snapshot-sync configuration

[global]
btrfs = "btrfs"
ssh = "ssh"
# ssh_opts = ["-i", "/root/.ssh/backup_key"]
progress = true
dry_run = false
timeout = 0         # Seconds per transfer, 0 = no deadline
lock_file = "/tmp/btrfs-snapshot-sync.lock"

# Where the snapshots are taken
[source]
node = "/mnt"
snapshot_dir = "snapshot"
name_pattern = '\\d{4}-\\d{2}-\\d{2}_\\d{2}-\\d{2}'

# Where they are replicated to (host:port/path or ssh://host:port/path)
[destination]
node = "backup-host:22/mnt"
snapshot_dir = ""
name_pattern = '\\d{4}-\\d{2}-\\d{2}_\\d{2}-\\d{2}'
"""
