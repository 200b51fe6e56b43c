# pyright: standard

"""btrfs-snapshot-sync: btrfs_snapshot_sync/endpoint/runner.py
Run commands and command pipelines, locally or through ssh.
"""

import contextlib
import shlex
import subprocess
import threading
import time
from dataclasses import dataclass

from btrfs_snapshot_sync import __util__
from btrfs_snapshot_sync.__logger__ import logger
from btrfs_snapshot_sync.core.progress import ByteMeter

from .common import RemoteAddress

CHUNK_SIZE = 128 * 1024
POLL_INTERVAL = 0.2


@dataclass
class PipeResult:
    """Outcome of a successful pipeline run."""

    output: str
    bytes_transmitted: int


def _decode(data) -> str:
    return bytes(data).decode("utf-8", errors="replace")


def _spawn(target, *args) -> threading.Thread:
    thread = threading.Thread(target=target, args=args, daemon=True)
    thread.start()
    return thread


def _collect(stream, buffer) -> None:
    """Read ``stream`` until EOF into ``buffer``."""
    try:
        for chunk in iter(lambda: stream.read(CHUNK_SIZE), b""):
            buffer.extend(chunk)
    finally:
        stream.close()


def _pump(source, sink, meter) -> None:
    """Copy ``source`` into ``sink`` chunk by chunk, counting what got through."""
    try:
        while True:
            chunk = source.read1(CHUNK_SIZE)
            if not chunk:
                break
            sink.write(chunk)
            sink.flush()
            if meter is not None:
                meter.update(len(chunk))
    except BrokenPipeError:
        # The consumer exited early; its exit status tells why.
        logger.debug("Pipeline consumer closed its input early")
    finally:
        source.close()
        with contextlib.suppress(BrokenPipeError):
            sink.close()


def _kill(processes) -> None:
    for process in processes:
        if process.poll() is None:
            process.kill()


def _await_reversed(processes, deadline, cancel):
    """Wait for all processes, last stage first.

    Returns None once all exited, or the reason the wait was abandoned.
    """
    for process in reversed(processes):
        while process.returncode is None:
            try:
                process.wait(timeout=POLL_INTERVAL)
            except subprocess.TimeoutExpired:
                if cancel is not None and cancel.is_set():
                    return "cancelled"
                if deadline is not None and time.monotonic() >= deadline:
                    return "timed out"
    return None


class CommandRunner:
    """Execute commands for any node.

    The runner only knows how to reach a host (the ssh binary and its
    options); it keeps no state about nodes, so one instance is shared by
    every node of a run.
    """

    def __init__(self, ssh="ssh", ssh_opts=None) -> None:
        self.ssh = ssh
        self.ssh_opts = list(ssh_opts or [])

    def wrap(self, address, command) -> list[str]:
        """Return ``command`` as it must be executed to run at ``address``."""
        if isinstance(address, RemoteAddress):
            cmd = [self.ssh, *self.ssh_opts]
            if address.port:
                cmd.extend(["-p", str(address.port)])
            cmd.append(address.destination)
            cmd.append(shlex.join(command))
            return cmd
        return list(command)

    def exec(self, address, command) -> str:
        """Run a single command and return its standard output.

        Raises:
            CommandError: If the command cannot be started or exits non-zero.
        """
        cmd = self.wrap(address, command)
        logger.debug("Executing command: %s", shlex.join(cmd))
        try:
            completed = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=False,
            )
        except OSError as e:
            raise __util__.CommandError(cmd, stderr=str(e)) from e
        if completed.returncode != 0:
            raise __util__.CommandError(
                cmd, completed.returncode, _decode(completed.stderr)
            )
        return _decode(completed.stdout)

    def exec_pipe(self, stages, progress=None, timeout=None, cancel=None) -> PipeResult:
        """Run ``stages`` as a pipeline, each stage feeding the next.

        Args:
            stages: Sequence of ``(address, command)`` pairs, producer first
            progress: Optional ``report(total_bytes, elapsed)`` callback for
                the bytes leaving the first stage
            timeout: Seconds after which all stages are killed; None or 0
                means no deadline
            cancel: ``threading.Event`` that kills all stages once set

        Returns:
            Output of the last stage and the number of bytes metered

        Raises:
            PipelineInterrupted: On timeout or cancellation.
            PipelineError: If any stage failed; lists every failed stage.
        """
        commands = [self.wrap(address, command) for address, command in stages]
        if not commands:
            raise ValueError("A pipeline needs at least one stage")
        logger.debug(
            "Executing pipeline: %s", " | ".join(shlex.join(c) for c in commands)
        )

        meter = ByteMeter(progress)
        deadline = time.monotonic() + timeout if timeout else None
        processes = self._start(commands)

        stderr_buffers = [bytearray() for _ in processes]
        output = bytearray()
        threads = [
            _spawn(_collect, process.stderr, buffer)
            for process, buffer in zip(processes, stderr_buffers)
        ]
        for index in range(len(processes) - 1):
            threads.append(
                _spawn(
                    _pump,
                    processes[index].stdout,
                    processes[index + 1].stdin,
                    meter if index == 0 else None,
                )
            )
        threads.append(_spawn(_collect, processes[-1].stdout, output))

        # Every stage is running now; the consumer only finishes after the
        # producer has been drained, so wait for the last stage first.
        try:
            reason = _await_reversed(processes, deadline, cancel)
            if reason is not None:
                logger.error("Pipeline %s, killing all stages", reason)
                _kill(processes)
        except BaseException:
            _kill(processes)
            raise
        finally:
            for thread in threads:
                thread.join()
            for process in processes:
                process.wait()

        if reason is not None:
            raise __util__.PipelineInterrupted(reason, meter.total)

        failures = [
            __util__.CommandError(command, process.returncode, _decode(buffer))
            for command, process, buffer in zip(commands, processes, stderr_buffers)
            if process.returncode != 0
        ]
        if failures:
            raise __util__.PipelineError(failures, meter.total)
        return PipeResult(output=_decode(output), bytes_transmitted=meter.total)

    @staticmethod
    def _start(commands) -> list[subprocess.Popen]:
        processes = []
        for index, command in enumerate(commands):
            try:
                process = subprocess.Popen(
                    command,
                    stdin=subprocess.DEVNULL if index == 0 else subprocess.PIPE,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                )
            except OSError as e:
                logger.error("Failed to start %s: %s", shlex.join(command), e)
                _kill(processes)
                for started in processes:
                    started.communicate()
                raise __util__.PipelineError(
                    [__util__.CommandError(command, stderr=str(e))]
                ) from e
            processes.append(process)
        return processes
