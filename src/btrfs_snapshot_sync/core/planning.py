"""Transfer planning: which snapshots to send and against which parent."""

import logging
from dataclasses import dataclass
from typing import Optional

from .. import __util__

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferTask:
    """One snapshot to send, incrementally against ``parent``."""

    snapshot: str
    parent: Optional[str] = None

    def __str__(self) -> str:
        if self.parent is None:
            return self.snapshot
        return f"{self.snapshot} (parent {self.parent})"


def find_anchor(destination_snapshots: list[str]) -> str:
    """Return the newest destination snapshot.

    Raises:
        PlanningPreconditionError: If the destination holds no snapshot yet.
    """
    if not destination_snapshots:
        raise __util__.PlanningPreconditionError(
            "destination has no snapshots, seed it with a full copy first"
        )
    return destination_snapshots[-1]


def plan_transfers(
    source_snapshots: list[str], destination_snapshots: list[str]
) -> list[TransferTask]:
    """Plan the incremental transfers bringing the destination up to date.

    Every source snapshot newer than the destination's newest snapshot (the
    anchor) is sent against its immediate predecessor. Snapshots older than
    the anchor are skipped. If the anchor does not exist at the source the
    plan is empty; callers decide whether that is an error.

    Args:
        source_snapshots: Ascending source snapshot names
        destination_snapshots: Ascending destination snapshot names

    Returns:
        Tasks in the order they must run
    """
    anchor = find_anchor(destination_snapshots)
    tasks = []
    cursor = None
    for snapshot in source_snapshots:
        if cursor is not None:
            tasks.append(TransferTask(snapshot=snapshot, parent=cursor))
            cursor = snapshot
        elif snapshot == anchor:
            cursor = anchor
    if cursor is None:
        logger.debug("Anchor %s not present in source snapshots", anchor)
    return tasks
