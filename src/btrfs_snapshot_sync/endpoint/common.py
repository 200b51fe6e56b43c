# pyright: standard

"""btrfs-snapshot-sync: btrfs_snapshot_sync/endpoint/common.py
Nodes: the two ends of a synchronization, and where their commands run.
"""

import logging
import posixpath
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from btrfs_snapshot_sync.__logger__ import logger
from btrfs_snapshot_sync.core import listing

DEFAULT_NAME_PATTERN = r"\d{4}-\d{2}-\d{2}_\d{2}-\d{2}"


@dataclass(frozen=True)
class LocalAddress:
    """Commands run directly on this host."""

    def __str__(self) -> str:
        return "localhost"


@dataclass(frozen=True)
class RemoteAddress:
    """Commands run through ssh on ``host``."""

    host: str
    port: Optional[int] = None
    username: Optional[str] = None

    @property
    def destination(self) -> str:
        """The ssh destination argument, ``user@host`` or ``host``."""
        if self.username:
            return f"{self.username}@{self.host}"
        return self.host

    def __str__(self) -> str:
        if self.port:
            return f"{self.destination}:{self.port}"
        return self.destination


Address = Union[LocalAddress, RemoteAddress]

LOCAL = LocalAddress()


@dataclass(frozen=True)
class Node:
    """One end of a synchronization.

    Attributes:
        address: Where commands for this node run
        mount_point: Absolute path of the mounted btrfs filesystem
        runner: Shared command runner, see ``endpoint.runner.CommandRunner``
        snapshot_dir: Directory below ``mount_point`` holding the snapshots
        name_pattern: Regular expression a snapshot name must fully match
        btrfs: Name or path of the btrfs binary on this node
    """

    address: Address
    mount_point: str
    runner: Any = field(compare=False, repr=False)
    snapshot_dir: str = ""
    name_pattern: str = DEFAULT_NAME_PATTERN
    btrfs: str = "btrfs"

    @property
    def is_remote(self) -> bool:
        return isinstance(self.address, RemoteAddress)

    @property
    def snapshot_root(self) -> str:
        """Absolute directory the snapshots of this node live in."""
        directory = listing.normalize_snapshot_dir(self.snapshot_dir)
        if not directory:
            return self.mount_point
        return posixpath.join(self.mount_point, directory)

    def snapshot_path(self, name: str) -> str:
        return posixpath.join(self.snapshot_root, name)

    def __str__(self) -> str:
        if self.is_remote:
            return f"{self.address}{self.mount_point}"
        return self.mount_point

    def list_command(self) -> list[str]:
        return [self.btrfs, "subvolume", "list", self.mount_point]

    def send_command(self, snapshot, parent=None, quiet=None) -> list[str]:
        """Build ``btrfs send`` for ``snapshot``, incremental if ``parent`` is given."""
        if quiet is None:
            quiet = logging.getLogger().getEffectiveLevel() >= logging.WARNING
        cmd = [self.btrfs, "send"]
        if quiet:
            cmd += ["--quiet"]
        if parent:
            cmd += ["-p", self.snapshot_path(parent)]
        cmd += [self.snapshot_path(snapshot)]
        return cmd

    def receive_command(self) -> list[str]:
        return [self.btrfs, "receive", self.snapshot_root]

    def delete_command(self, names) -> list[str]:
        return [self.btrfs, "subvolume", "delete"] + [
            self.snapshot_path(name) for name in names
        ]

    def list_snapshots(self) -> list[str]:
        """Return the snapshot names of this node, ascending.

        Always queries the node; nothing is cached between calls.
        """
        logger.debug("Listing snapshots of %s in %s", self, self.snapshot_root)
        output = self.runner.exec(self.address, self.list_command())
        paths = listing.parse_subvolumes(output)
        names = listing.filter_snapshots(paths, self.snapshot_dir, self.name_pattern)
        snapshots = listing.make_snapshot_set(names)
        logger.debug(
            "Found %d snapshots among %d subvolumes of %s",
            len(snapshots),
            len(paths),
            self,
        )
        return snapshots

    def delete_snapshots(self, names) -> None:
        """Delete the given snapshots with a single ``btrfs subvolume delete``."""
        names = list(names)
        if not names:
            logger.debug("No snapshots to delete on %s", self)
            return
        self.runner.exec(self.address, self.delete_command(names))
        for name in names:
            logger.info("Deleted snapshot subvolume: %s", self.snapshot_path(name))
