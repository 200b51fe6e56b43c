"""Core synchronization operations: send_snapshot, sync_snapshots."""

import logging
import shlex
import time
from dataclasses import dataclass, field
from typing import Optional

from .. import __util__
from . import progress as progress_utils
from .planning import TransferTask, find_anchor, plan_transfers

logger = logging.getLogger(__name__)


@dataclass
class TransferResult:
    """Outcome of one transfer task."""

    bytes_transmitted: int = 0
    error: Optional[__util__.TransferError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SyncReport:
    """Summary of a synchronization run."""

    source: str
    destination: str
    planned: list[TransferTask] = field(default_factory=list)
    transferred: list[TransferTask] = field(default_factory=list)
    bytes_transmitted: int = 0
    dry_run: bool = False


def describe_stage(node, command) -> str:
    """Human readable description of a command running on ``node``."""
    return f"[{node.address}] {shlex.join(command)}"


def send_snapshot(task, source, destination, runner, options=None) -> TransferResult:
    """Send one snapshot to the destination with btrfs send/receive.

    Args:
        task: The snapshot and parent to send
        source: Node holding the snapshot
        destination: Node receiving it
        runner: Command runner executing the pipeline
        options: Optional dict with ``dry_run``, ``show_progress``,
            ``timeout``, ``cancel`` and ``quiet`` (default: follow the log level)

    Returns:
        TransferResult; failures are reported through its ``error``
    """
    if options is None:
        options = {}

    producer = source.send_command(
        task.snapshot, parent=task.parent, quiet=options.get("quiet")
    )
    consumer = destination.receive_command()

    logger.info("Sending %s ...", task.snapshot)
    if task.parent:
        logger.info("  Using parent: %s", task.parent)
    else:
        logger.info("  No parent snapshot available, sending in full mode.")
    logger.info("  %s", describe_stage(source, producer))
    logger.info("  | %s", describe_stage(destination, consumer))

    if options.get("dry_run", False):
        logger.info("  Dry run, nothing sent.")
        return TransferResult()

    reporter = progress_utils.progress_reporter(
        task.snapshot, options.get("show_progress", False)
    )
    transfer_start = time.monotonic()
    try:
        with reporter as report:
            result = runner.exec_pipe(
                [(source.address, producer), (destination.address, consumer)],
                progress=report,
                timeout=options.get("timeout"),
                cancel=options.get("cancel"),
            )
    except __util__.PipelineError as e:
        for failure in e.failures:
            logger.error("  Stage failed: %s", failure)
        error = __util__.TransferError(task.snapshot, str(e))
        error.__cause__ = e
        return TransferResult(bytes_transmitted=e.bytes_transmitted, error=error)

    duration = time.monotonic() - transfer_start
    logger.info(
        "  Transmitted %s in %.1fs",
        __util__.format_bytes(result.bytes_transmitted),
        duration,
    )
    return TransferResult(bytes_transmitted=result.bytes_transmitted)


def rollback_transfer(task, destination) -> Optional[__util__.RollbackError]:
    """Remove what a failed transfer may have left at the destination.

    Returns the RollbackError if the cleanup itself failed, None otherwise.
    """
    logger.warning("Removing partially received snapshot %s", task.snapshot)
    try:
        destination.delete_snapshots([task.snapshot])
    except __util__.CommandError as e:
        error = __util__.RollbackError(task.snapshot, str(e))
        error.__cause__ = e
        logger.error("%s", error)
        return error
    return None


def sync_snapshots(source, destination, runner, options=None) -> SyncReport:
    """Bring the destination up to date with the source.

    Transfers run one by one in ascending order. The first failing transfer
    is rolled back at the destination and its error is raised; no later
    transfer is attempted.

    Raises:
        PlanningPreconditionError: If the destination has no snapshot.
        NoCommonAncestorError: If the newest destination snapshot is not
            found at the source.
        TransferError: If a transfer failed.
    """
    if options is None:
        options = {}

    logger.info(__util__.log_heading(f"{source} -> {destination}"))

    source_snapshots = source.list_snapshots()
    destination_snapshots = destination.list_snapshots()
    logger.debug("Source snapshots: %s", source_snapshots)
    logger.debug("Destination snapshots: %s", destination_snapshots)

    anchor = find_anchor(destination_snapshots)
    tasks = plan_transfers(source_snapshots, destination_snapshots)
    report = SyncReport(
        source=str(source),
        destination=str(destination),
        planned=list(tasks),
        dry_run=bool(options.get("dry_run", False)),
    )

    if not tasks:
        if anchor not in source_snapshots:
            raise __util__.NoCommonAncestorError(anchor)
        logger.info("Destination is up to date at %s.", anchor)
        return report

    logger.info("Going to transfer %d snapshot(s):", len(tasks))
    for task in tasks:
        logger.info("  %s", task)

    for task in tasks:
        if _cancelled(options):
            raise __util__.AbortError("Synchronization cancelled")
        result = send_snapshot(task, source, destination, runner, options)
        report.bytes_transmitted += result.bytes_transmitted
        if not result.ok:
            logger.error("Snapshot transfer failed for %s: %s", task.snapshot, result.error)
            result.error.rollback_error = rollback_transfer(task, destination)
            raise result.error
        report.transferred.append(task)
        logger.debug("%d snapshots left to transfer", len(tasks) - len(report.transferred))

    logger.info(
        __util__.log_heading(
            f"{len(report.transferred)} transfer(s), "
            f"{__util__.format_bytes(report.bytes_transmitted)}"
        )
    )
    return report


def _cancelled(options) -> bool:
    cancel = options.get("cancel")
    return cancel is not None and cancel.is_set()
