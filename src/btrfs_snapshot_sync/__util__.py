# pyright: standard

"""btrfs-snapshot-sync: btrfs_snapshot_sync/__util__.py
Common errors and formatting helpers.
"""

import shlex

BYTE_UNITS = ("B", "kiB", "MiB", "GiB", "TiB")


class AbortError(Exception):
    """Exception where btrfs-snapshot-sync should abort."""


class MalformedListingError(ValueError):
    """A line of ``btrfs subvolume list`` output has an unexpected shape."""

    def __init__(self, line):
        self.line = line
        super().__init__(f"unexpected btrfs subvolume list output: {line!r}")


class DuplicateSnapshotError(ValueError):
    """The same snapshot name was listed more than once."""

    def __init__(self, names):
        self.names = sorted(names)
        super().__init__(f"duplicate snapshot names: {', '.join(self.names)}")


class CommandError(Exception):
    """A command could not be started or exited with a non-zero status."""

    def __init__(self, command, returncode=None, stderr=""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr or ""
        if returncode is None:
            message = f"{shlex.join(self.command)!r} could not be started"
        else:
            message = f"{shlex.join(self.command)!r} exited with status {returncode}"
        if self.stderr.strip():
            message += f": {self.stderr.strip()}"
        super().__init__(message)


class PipelineError(Exception):
    """One or more stages of a command pipeline failed.

    All failed stages are collected in ``failures`` so that a crashing
    producer and a crashing consumer are reported together.
    """

    def __init__(self, failures, bytes_transmitted=0, message=None):
        self.failures = list(failures)
        self.bytes_transmitted = bytes_transmitted
        if message is None:
            message = "; ".join(str(f) for f in self.failures) or "pipeline failed"
        super().__init__(message)


class PipelineInterrupted(PipelineError):
    """The pipeline was killed because of a timeout or a cancellation request."""

    def __init__(self, reason, bytes_transmitted=0):
        self.reason = reason
        super().__init__(
            [], bytes_transmitted=bytes_transmitted, message=f"pipeline {reason}"
        )


class TransferError(Exception):
    """Sending a snapshot to the destination failed."""

    def __init__(self, snapshot, message):
        self.snapshot = snapshot
        self.rollback_error = None
        super().__init__(f"transfer of {snapshot} failed: {message}")


class RollbackError(Exception):
    """Removing a partially received snapshot after a failed transfer failed."""

    def __init__(self, snapshot, message):
        self.snapshot = snapshot
        super().__init__(f"rollback of {snapshot} failed: {message}")


class PlanningPreconditionError(Exception):
    """The destination holds no snapshot to synchronize against."""


class NoCommonAncestorError(Exception):
    """The newest destination snapshot does not exist at the source."""

    def __init__(self, anchor):
        self.anchor = anchor
        super().__init__(
            f"newest destination snapshot {anchor!r} not found at the source, "
            "no common ancestor to send increments against"
        )


def format_bytes(num_bytes) -> str:
    """Return a human readable size such as ``'1.5 MiB'``."""
    value = float(num_bytes)
    unit = 0
    while value >= 1024 and unit < len(BYTE_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{value:.1f} {BYTE_UNITS[unit]}"


def log_heading(caption) -> str:
    """Formatted heading for logging output sections."""
    return f"{f'--[ {caption} ]':-<50}"
