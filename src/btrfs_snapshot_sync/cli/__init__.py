"""Command line interface for btrfs-snapshot-sync."""

from .dispatcher import main

__all__ = ["main"]
