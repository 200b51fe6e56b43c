"""Core synchronization logic for btrfs-snapshot-sync.

Listing and filtering of snapshots, transfer planning, and the streaming
send/receive executor with its rollback policy.
"""

from .listing import filter_snapshots, make_snapshot_set, parse_subvolumes
from .operations import (
    SyncReport,
    TransferResult,
    rollback_transfer,
    send_snapshot,
    sync_snapshots,
)
from .planning import TransferTask, plan_transfers

__all__ = [
    "parse_subvolumes",
    "filter_snapshots",
    "make_snapshot_set",
    "plan_transfers",
    "TransferTask",
    "TransferResult",
    "SyncReport",
    "send_snapshot",
    "sync_snapshots",
    "rollback_transfer",
]
