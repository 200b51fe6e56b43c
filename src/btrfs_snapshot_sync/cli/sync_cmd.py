"""Sync command: replicate new snapshots to the destination."""

import argparse
import contextlib
import logging
import signal
import threading

import filelock

from .. import __util__
from ..__logger__ import create_logger
from ..config import ConfigError
from ..core.operations import sync_snapshots
from .common import build_nodes, get_log_level, resolve_config

logger = logging.getLogger(__name__)

SYNC_ERRORS = (
    __util__.AbortError,
    __util__.CommandError,
    __util__.MalformedListingError,
    __util__.DuplicateSnapshotError,
    __util__.PlanningPreconditionError,
    __util__.NoCommonAncestorError,
)


@contextlib.contextmanager
def cancel_on_signals(cancel: threading.Event, signums=(signal.SIGINT, signal.SIGTERM)):
    """Set ``cancel`` instead of dying when one of ``signums`` arrives."""

    def handler(signum, frame):
        logger.warning("Received %s, cancelling ...", signal.Signals(signum).name)
        cancel.set()

    previous = {signum: signal.signal(signum, handler) for signum in signums}
    try:
        yield cancel
    finally:
        for signum, old_handler in previous.items():
            signal.signal(signum, old_handler)


def execute_sync(args: argparse.Namespace) -> int:
    """Execute the sync command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    log_level = get_log_level(args)
    create_logger(log_level)

    try:
        config, warnings = resolve_config(args)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1

    for warning in warnings:
        logger.warning("Config: %s", warning)

    global_config = config.global_config
    timeout = getattr(args, "timeout", None)
    if timeout is None:
        timeout = global_config.timeout
    else:
        # 0 disables the deadline, as in the config file
        timeout = timeout or None
    cancel = threading.Event()
    options = {
        "dry_run": getattr(args, "dry_run", False) or global_config.dry_run,
        "show_progress": getattr(args, "progress", False) or global_config.progress,
        "timeout": timeout,
        "cancel": cancel,
    }

    try:
        runner, source, destination = build_nodes(config)
        with filelock.FileLock(global_config.lock_file, timeout=0):
            with cancel_on_signals(cancel):
                report = sync_snapshots(source, destination, runner, options)
    except filelock.Timeout:
        logger.error(
            "Another synchronization is running (lock %s held)",
            global_config.lock_file,
        )
        return 1
    except __util__.TransferError as e:
        logger.error("%s", e)
        if e.rollback_error is not None:
            logger.error("Additionally: %s", e.rollback_error)
        return 1
    except SYNC_ERRORS as e:
        logger.error("%s", e)
        return 1

    if report.dry_run:
        logger.info("Dry run: %d snapshot(s) would be sent", len(report.planned))
    return 0
