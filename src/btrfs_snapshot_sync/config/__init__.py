"""Configuration system for btrfs-snapshot-sync.

This module provides TOML-based configuration loading, validation,
and schema definitions.
"""

from .loader import ConfigError, find_config_file, load_config, parse_config
from .schema import Config, GlobalConfig, NodeConfig

__all__ = [
    "GlobalConfig",
    "NodeConfig",
    "Config",
    "load_config",
    "parse_config",
    "find_config_file",
    "ConfigError",
]
