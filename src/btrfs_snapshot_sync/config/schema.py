"""Configuration schema definitions using dataclasses.

Defines the structure for TOML configuration with sensible defaults.
"""

from dataclasses import dataclass, field
from typing import Optional

from ..endpoint.common import DEFAULT_NAME_PATTERN

DEFAULT_LOCK_FILE = "/tmp/btrfs-snapshot-sync.lock"


@dataclass
class NodeConfig:
    """One end of the synchronization.

    Attributes:
        node: Node specification (``/mnt``, ``host:port/mnt`` or ``ssh://host/mnt``)
        snapshot_dir: Directory below the mount point holding the snapshots
        name_pattern: Regular expression snapshot names must fully match
    """

    node: str
    snapshot_dir: str = ""
    name_pattern: str = DEFAULT_NAME_PATTERN


@dataclass
class GlobalConfig:
    """Global configuration settings.

    Attributes:
        btrfs: Name or path of the btrfs binary on both nodes
        ssh: Name or path of the ssh client
        ssh_opts: Extra arguments passed to ssh
        progress: Report transfer progress once per second
        dry_run: Only show what would be sent
        timeout: Seconds after which a single transfer is aborted (None = never)
        lock_file: Lock preventing concurrent runs
    """

    btrfs: str = "btrfs"
    ssh: str = "ssh"
    ssh_opts: list[str] = field(default_factory=list)
    progress: bool = False
    dry_run: bool = False
    timeout: Optional[float] = None
    lock_file: str = DEFAULT_LOCK_FILE


@dataclass
class Config:
    """Root configuration object."""

    source: NodeConfig
    destination: NodeConfig
    global_config: GlobalConfig = field(default_factory=GlobalConfig)
